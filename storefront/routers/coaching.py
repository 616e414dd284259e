"""Coaching catalog, subscriptions and self-service session booking."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.schemas.auth import AuthUser
from storefront.schemas.coaching import (
    CoachingServiceOut,
    CoachingSessionOut,
    PlanOut,
    SessionSchedule,
    SubscriptionOut,
)
from storefront.services import coaching_service
from storefront.services.auth_service import get_current_user
from storefront.services.subscription_service import list_user_subscriptions

router = APIRouter(prefix="/api", tags=["coaching"])


@router.get("/coaching/services", response_model=list[CoachingServiceOut])
async def services(db: AsyncSession = Depends(get_db)):
    return await coaching_service.list_services(db)


@router.get("/coaching/services/{service_id}/plans", response_model=list[PlanOut])
async def service_plans(service_id: str, db: AsyncSession = Depends(get_db)):
    return await coaching_service.list_plans(db, service_id)


@router.get("/subscriptions", response_model=list[SubscriptionOut])
async def my_subscriptions(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await list_user_subscriptions(db, user.id)


@router.get("/sessions", response_model=list[CoachingSessionOut])
async def my_sessions(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await coaching_service.list_user_sessions(db, user.id)


@router.post("/sessions", response_model=CoachingSessionOut, status_code=201)
async def book_session(
    data: SessionSchedule,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await coaching_service.schedule_session(db, user, data)
