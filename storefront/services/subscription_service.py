"""Coaching subscriptions: Stripe checkout, webhook sync and the monthly session allotment."""

import logging
from datetime import datetime

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.constants import (
    SUBSCRIPTION_CANCEL_PATH,
    SUBSCRIPTION_LIVE_STATUSES,
    SUBSCRIPTION_SUCCESS_PATH,
)
from storefront.exceptions import NotFoundError, UpstreamError, ValidationError
from storefront.models.coaching import CoachingSubscriptionPlan
from storefront.models.profile import Profile
from storefront.models.subscription import UserSubscription
from storefront.schemas.auth import AuthUser
from storefront.schemas.checkout import CheckoutSessionResponse
from storefront.services import stripe_service
from storefront.utils import from_unix, split_ids, to_cents

logger = logging.getLogger(__name__)


def _get_period_timestamps(stripe_sub) -> tuple[int | None, int | None]:
    """Extract current_period_start/end, handling Stripe API version differences.

    Newer API versions (2024-06-20+) moved these fields to items.data[0].
    """
    try:
        start, end = stripe_sub["current_period_start"], stripe_sub["current_period_end"]
        if start:
            return start, end
    except (KeyError, TypeError):
        pass
    try:
        item = stripe_sub["items"]["data"][0]
        return item["current_period_start"], item["current_period_end"]
    except (KeyError, TypeError, IndexError):
        pass
    return None, None


def _apply_stripe_state(
    sub: UserSubscription, stripe_sub, plan: CoachingSubscriptionPlan | None
) -> None:
    """Copy status and period bounds; a new billing period restores the allotment."""
    period_start, period_end = _get_period_timestamps(stripe_sub)
    new_start = from_unix(period_start)
    sub.status = stripe_sub["status"]
    if new_start and _period_moved(sub.current_period_start, new_start):
        if sub.current_period_start is not None and plan is not None:
            sub.sessions_remaining = plan.sessions_per_month
            logger.info(f"Subscription {sub.id} renewed: sessions reset to {plan.sessions_per_month}")
        sub.current_period_start = new_start
    if period_end:
        sub.current_period_end = from_unix(period_end)


def _period_moved(current: datetime | None, new: datetime) -> bool:
    if current is None:
        return True
    # SQLite hands back naive datetimes
    if current.tzinfo is None:
        new = new.replace(tzinfo=None)
    return current != new


async def _get_by_stripe_id(db: AsyncSession, subscription_id: str) -> UserSubscription | None:
    result = await db.execute(
        select(UserSubscription).where(UserSubscription.stripe_subscription_id == subscription_id)
    )
    return result.scalar_one_or_none()


async def _ensure_customer(db: AsyncSession, user: AuthUser) -> str:
    profile = await db.get(Profile, user.id)
    if profile and profile.stripe_customer_id:
        return profile.stripe_customer_id

    customer = await stripe_service.create_customer(user.email, user.full_name, user.id)
    if not profile:
        profile = Profile(id=user.id, email=user.email or "", full_name=user.full_name)
        db.add(profile)
    profile.stripe_customer_id = customer["id"]
    await db.commit()
    return customer["id"]


async def has_live_subscription(db: AsyncSession, user_id: str, plan_id: str) -> bool:
    result = await db.execute(
        select(UserSubscription.id).where(
            UserSubscription.user_id == user_id,
            UserSubscription.plan_id == plan_id,
            UserSubscription.status.in_(SUBSCRIPTION_LIVE_STATUSES),
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def create_subscription_checkout(
    db: AsyncSession, user: AuthUser, plan_id: str, preferred_days: list[str] | None = None
) -> CheckoutSessionResponse:
    """Subscription-mode Stripe session for a coaching plan."""
    settings = get_settings()
    plan = await db.get(CoachingSubscriptionPlan, plan_id)
    if not plan:
        raise NotFoundError("Subscription plan not found")
    if await has_live_subscription(db, user.id, plan_id):
        raise ValidationError("You already have an active subscription to this plan")

    metadata = {"user_id": user.id, "plan_id": plan.id}
    if preferred_days:
        metadata["preferred_days"] = ",".join(preferred_days)
    try:
        customer_id = await _ensure_customer(db, user)
        price_id = await stripe_service.find_or_create_plan_price(
            plan.id,
            plan.title,
            plan.description,
            to_cents(plan.price_per_month),
            settings.currency,
        )
        session = await stripe_service.create_checkout_session(
            mode="subscription",
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            client_reference_id=user.id,
            metadata=metadata,
            subscription_data={"metadata": metadata},
            success_url=f"{settings.site_url}{SUBSCRIPTION_SUCCESS_PATH}",
            cancel_url=f"{settings.site_url}{SUBSCRIPTION_CANCEL_PATH}",
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe subscription checkout failed for user {user.id}, plan {plan_id}: {e}")
        raise UpstreamError("An error occurred while creating the subscription") from e

    return CheckoutSessionResponse(session_id=session["id"], url=session.get("url"))


async def _create_from_stripe(
    db: AsyncSession, stripe_sub, user_id: str, plan_id: str, preferred_days: list[str] | None
) -> UserSubscription | None:
    plan = await db.get(CoachingSubscriptionPlan, plan_id)
    if not plan:
        logger.error(f"Subscription {stripe_sub['id']} references unknown plan {plan_id}")
        return None
    period_start, period_end = _get_period_timestamps(stripe_sub)
    sub = UserSubscription(
        user_id=user_id,
        plan_id=plan.id,
        stripe_subscription_id=stripe_sub["id"],
        status=stripe_sub["status"],
        current_period_start=from_unix(period_start),
        current_period_end=from_unix(period_end),
        sessions_remaining=plan.sessions_per_month,
        preferred_days=preferred_days,
    )
    db.add(sub)
    return sub


async def handle_checkout_completed(session_data: dict, db: AsyncSession) -> None:
    """Handle a subscription-mode checkout.session.completed (idempotent)."""
    metadata = session_data.get("metadata") or {}
    user_id = session_data.get("client_reference_id") or metadata.get("user_id")
    plan_id = metadata.get("plan_id")
    subscription_id = session_data.get("subscription")
    if not user_id or not plan_id or not subscription_id:
        raise ValidationError("Subscription session is missing user, plan or subscription id")

    stripe_sub = await stripe_service.retrieve_subscription(subscription_id)

    preferred_days = split_ids(metadata.get("preferred_days")) or None
    sub = await _get_by_stripe_id(db, subscription_id)
    if sub:
        plan = await db.get(CoachingSubscriptionPlan, sub.plan_id)
        _apply_stripe_state(sub, stripe_sub, plan)
        # A subscription.created event may have inserted the row without them
        if not sub.preferred_days and preferred_days:
            sub.preferred_days = preferred_days
    else:
        sub = await _create_from_stripe(db, stripe_sub, user_id, plan_id, preferred_days)
    await db.commit()
    if sub:
        logger.info(f"Subscription {subscription_id} recorded for user {user_id} (plan {plan_id})")


async def handle_subscription_updated(sub_data: dict, db: AsyncSession, created: bool = False) -> None:
    """Sync status and period bounds. A created event with no row yet inserts one from metadata."""
    subscription_id = sub_data["id"]
    sub = await _get_by_stripe_id(db, subscription_id)
    if not sub:
        metadata = sub_data.get("metadata") or {}
        if created and metadata.get("user_id") and metadata.get("plan_id"):
            preferred_days = split_ids(metadata.get("preferred_days")) or None
            await _create_from_stripe(db, sub_data, metadata["user_id"], metadata["plan_id"], preferred_days)
            await db.commit()
        else:
            logger.info(f"No local subscription for {subscription_id}; update ignored")
        return

    plan = await db.get(CoachingSubscriptionPlan, sub.plan_id)
    _apply_stripe_state(sub, sub_data, plan)
    await db.commit()


async def handle_subscription_deleted(sub_data: dict, db: AsyncSession) -> None:
    sub = await _get_by_stripe_id(db, sub_data["id"])
    if sub:
        sub.status = "canceled"
        await db.commit()


async def list_user_subscriptions(db: AsyncSession, user_id: str) -> list[UserSubscription]:
    result = await db.execute(
        select(UserSubscription)
        .where(UserSubscription.user_id == user_id)
        .order_by(UserSubscription.created_at.desc())
    )
    return list(result.scalars().all())
