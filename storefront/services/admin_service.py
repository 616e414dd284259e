"""Admin dashboard aggregates."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.constants import PURCHASE_COMPLETED, RECENT_PURCHASES_LIMIT, SUBSCRIPTION_LIVE_STATUSES
from storefront.models.coaching import CoachingSession
from storefront.models.purchase import Purchase
from storefront.models.subscription import UserSubscription
from storefront.utils import now_utc


async def get_stats(db: AsyncSession) -> dict:
    revenue_rows = await db.execute(
        select(Purchase.test_mode, func.coalesce(func.sum(Purchase.amount), 0), func.count())
        .where(Purchase.status == PURCHASE_COMPLETED)
        .group_by(Purchase.test_mode)
    )
    live_revenue = test_revenue = 0.0
    purchase_count = 0
    for test_mode, total, count in revenue_rows.all():
        if test_mode:
            test_revenue += float(total)
        else:
            live_revenue += float(total)
        purchase_count += count

    active_subscriptions = await db.scalar(
        select(func.count())
        .select_from(UserSubscription)
        .where(UserSubscription.status.in_(SUBSCRIPTION_LIVE_STATUSES))
    )
    upcoming_sessions = await db.scalar(
        select(func.count())
        .select_from(CoachingSession)
        .where(CoachingSession.status == "scheduled", CoachingSession.scheduled_at >= now_utc())
    )
    return {
        "revenue": round(live_revenue, 2),
        "test_revenue": round(test_revenue, 2),
        "completed_purchases": purchase_count,
        "active_subscriptions": active_subscriptions or 0,
        "upcoming_sessions": upcoming_sessions or 0,
    }


async def recent_purchases(db: AsyncSession, limit: int = RECENT_PURCHASES_LIMIT) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .options(selectinload(Purchase.product))
        .order_by(Purchase.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
