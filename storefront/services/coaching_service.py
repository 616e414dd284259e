"""Coaching services, plans and session booking."""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.constants import (
    CONSULTATION_TITLE,
    DEFAULT_SERVICE_TITLE,
    DEFAULT_SESSION_MINUTES,
    SUBSCRIPTION_LIVE_STATUSES,
)
from storefront.exceptions import NotFoundError, ValidationError
from storefront.models.coaching import CoachingService, CoachingSession, CoachingSubscriptionPlan
from storefront.models.subscription import UserSubscription
from storefront.schemas.auth import AuthUser
from storefront.schemas.coaching import (
    AdminSessionCreate,
    CoachingServiceCreate,
    PlanCreate,
    SessionSchedule,
    SessionUpdate,
)
from storefront.services import checkout_signals
from storefront.utils import parse_timestamp, split_ids

logger = logging.getLogger(__name__)


def consume_session(sub: UserSubscription) -> None:
    """Use one session from the monthly allotment, never going below zero."""
    sub.sessions_remaining = max(0, (sub.sessions_remaining or 0) - 1)


# --- Services and plans ---


async def list_services(db: AsyncSession, published_only: bool = True) -> list[CoachingService]:
    stmt = select(CoachingService).order_by(CoachingService.created_at)
    if published_only:
        stmt = stmt.where(CoachingService.published.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_plans(db: AsyncSession, service_id: str) -> list[CoachingSubscriptionPlan]:
    if not await db.get(CoachingService, service_id):
        raise NotFoundError("Coaching service not found")
    result = await db.execute(
        select(CoachingSubscriptionPlan)
        .where(CoachingSubscriptionPlan.service_id == service_id)
        .order_by(CoachingSubscriptionPlan.price_per_month)
    )
    return list(result.scalars().all())


async def create_service(db: AsyncSession, data: CoachingServiceCreate) -> CoachingService:
    service = CoachingService(
        title=data.title or DEFAULT_SERVICE_TITLE,
        description=data.description,
        initial_consultation_price=data.initial_consultation_price,
        image_url=data.image_url,
        published=data.published,
    )
    db.add(service)
    await db.commit()
    logger.info(f"Coaching service created: {service.id}")
    return service


async def delete_service(db: AsyncSession, service_id: str) -> None:
    service = await db.get(CoachingService, service_id)
    if not service:
        raise NotFoundError("Coaching service not found")
    plan_count = await db.scalar(
        select(func.count())
        .select_from(CoachingSubscriptionPlan)
        .where(CoachingSubscriptionPlan.service_id == service_id)
    )
    if plan_count:
        raise ValidationError("Service still has subscription plans")
    await db.delete(service)
    await db.commit()
    logger.info(f"Coaching service deleted: {service_id}")


async def create_plan(db: AsyncSession, data: PlanCreate) -> CoachingSubscriptionPlan:
    if not await db.get(CoachingService, data.service_id):
        raise NotFoundError("Coaching service not found")
    plan = CoachingSubscriptionPlan(**data.model_dump())
    db.add(plan)
    await db.commit()
    logger.info(f"Plan {plan.id} created for service {data.service_id}")
    return plan


# --- Sessions ---


async def list_user_sessions(db: AsyncSession, user_id: str) -> list[CoachingSession]:
    result = await db.execute(
        select(CoachingSession)
        .where(CoachingSession.user_id == user_id)
        .order_by(CoachingSession.scheduled_at)
    )
    return list(result.scalars().all())


async def list_all_sessions(db: AsyncSession) -> list[CoachingSession]:
    result = await db.execute(select(CoachingSession).order_by(CoachingSession.scheduled_at.desc()))
    return list(result.scalars().all())


async def admin_create_session(db: AsyncSession, data: AdminSessionCreate) -> CoachingSession:
    """Book a session for a user; tied to a subscription it uses one session of the allotment."""
    sub = None
    if data.subscription_id:
        sub = await db.get(UserSubscription, data.subscription_id)
        if not sub:
            raise NotFoundError("Subscription not found")
        if sub.user_id != data.user_id:
            raise ValidationError("Subscription does not belong to this user")

    session = CoachingSession(
        user_id=data.user_id,
        subscription_id=data.subscription_id,
        title=data.title,
        description=data.description,
        scheduled_at=data.scheduled_at,
        duration_minutes=data.duration_minutes,
        status="scheduled",
        meeting_url=data.meeting_url,
    )
    db.add(session)
    if sub:
        consume_session(sub)
    await db.commit()
    return session


async def schedule_session(db: AsyncSession, user: AuthUser, data: SessionSchedule) -> CoachingSession:
    """A subscriber books one of their remaining monthly sessions."""
    sub = await db.get(UserSubscription, data.subscription_id)
    if not sub or sub.user_id != user.id:
        raise NotFoundError("Subscription not found")
    if sub.status not in SUBSCRIPTION_LIVE_STATUSES:
        raise ValidationError("Subscription is not active")
    if (sub.sessions_remaining or 0) <= 0:
        raise ValidationError("No sessions remaining this month")

    session = CoachingSession(
        user_id=user.id,
        subscription_id=sub.id,
        title=data.title,
        description=data.description,
        scheduled_at=data.scheduled_at,
        duration_minutes=DEFAULT_SESSION_MINUTES,
        status="scheduled",
    )
    db.add(session)
    consume_session(sub)
    await db.commit()
    return session


async def update_session(db: AsyncSession, session_id: str, data: SessionUpdate) -> CoachingSession:
    session = await db.get(CoachingSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(session, key, value)
    await db.commit()
    return session


async def delete_session(db: AsyncSession, session_id: str) -> None:
    session = await db.get(CoachingSession, session_id)
    if not session:
        raise NotFoundError("Session not found")
    await db.delete(session)
    await db.commit()
    logger.info(f"Coaching session deleted: {session_id}")


async def book_paid_consultation(session_data: dict, db: AsyncSession) -> CoachingSession | None:
    """Create the CoachingSession for a paid consultation checkout (idempotent per Stripe session)."""
    stripe_session_id = session_data["id"]
    metadata = session_data.get("metadata") or {}
    user_id = session_data.get("client_reference_id") or metadata.get("user_id")
    if not user_id:
        raise ValidationError("No user ID found in session")

    scheduled_at = parse_timestamp(metadata.get("scheduled_at"))
    if not scheduled_at:
        raise ValidationError("Consultation session has no valid scheduled_at")

    result = await db.execute(
        select(CoachingSession).where(CoachingSession.stripe_session_id == stripe_session_id)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    booking = CoachingSession(
        user_id=user_id,
        title=metadata.get("title") or CONSULTATION_TITLE,
        description="Paid consultation",
        scheduled_at=scheduled_at,
        duration_minutes=DEFAULT_SESSION_MINUTES,
        status="scheduled",
        preferred_days=split_ids(metadata.get("preferred_days")) or None,
        stripe_session_id=stripe_session_id,
    )
    db.add(booking)
    await db.commit()
    logger.info(f"Consultation booked for user {user_id} at {scheduled_at.isoformat()}")
    await checkout_signals.mark_completed(stripe_session_id)
    return booking
