"""Coaching service, plan and session schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.constants import DEFAULT_SESSION_MINUTES

SessionStatus = Literal["scheduled", "completed", "canceled", "no_show"]


class CoachingServiceCreate(BaseModel):
    title: str | None = None
    description: str
    initial_consultation_price: float = Field(ge=0)
    image_url: str | None = None
    published: bool = False


class CoachingServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    initial_consultation_price: float
    image_url: str | None = None
    published: bool


class PlanCreate(BaseModel):
    service_id: str
    title: str
    description: str
    price_per_month: float = Field(gt=0)
    sessions_per_month: int = Field(ge=1)


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    service_id: str
    title: str
    description: str
    price_per_month: float
    sessions_per_month: int


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    plan_id: str
    status: str
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    sessions_remaining: int


class AdminSessionCreate(BaseModel):
    user_id: str
    subscription_id: str | None = None
    title: str
    description: str | None = None
    scheduled_at: datetime
    duration_minutes: int = Field(DEFAULT_SESSION_MINUTES, ge=15, le=480)
    meeting_url: str | None = None


class SessionSchedule(BaseModel):
    subscription_id: str
    title: str = Field(min_length=1)
    description: str | None = None
    scheduled_at: datetime


class SessionUpdate(BaseModel):
    status: SessionStatus | None = None
    notes: str | None = None
    meeting_url: str | None = None
    scheduled_at: datetime | None = None

    @field_validator("status", "scheduled_at")
    @classmethod
    def _not_null(cls, v):
        """May be omitted, but not cleared."""
        if v is None:
            raise ValueError("must not be null")
        return v


class CoachingSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    subscription_id: str | None = None
    title: str
    description: str | None = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    notes: str | None = None
    meeting_url: str | None = None
