"""Coaching models: services, their monthly plans, and booked sessions."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.constants import DEFAULT_SESSION_MINUTES
from storefront.utils import new_id, now_utc
from .base import Base


class CoachingService(Base):
    __tablename__ = "coaching_services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    initial_consultation_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    plans: Mapped[list["CoachingSubscriptionPlan"]] = relationship(back_populates="service")


class CoachingSubscriptionPlan(Base):
    __tablename__ = "coaching_subscription_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    service_id: Mapped[str] = mapped_column(ForeignKey("coaching_services.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price_per_month: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    sessions_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    service: Mapped["CoachingService"] = relationship(back_populates="plans")


class CoachingSession(Base):
    __tablename__ = "coaching_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    subscription_id: Mapped[str | None] = mapped_column(ForeignKey("user_subscriptions.id"), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_SESSION_MINUTES)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="scheduled")  # scheduled | completed | canceled | no_show
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    preferred_days: Mapped[list | None] = mapped_column(JSON, nullable=True)
    # Set for paid consultations so webhook redelivery does not book twice
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    subscription: Mapped["UserSubscription | None"] = relationship()
