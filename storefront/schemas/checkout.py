"""Checkout and purchase verification schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class SingleCheckoutRequest(BaseModel):
    product_id: str


class CartLine(BaseModel):
    """A browser cart entry; only the id is trusted, price comes from the catalog."""

    id: str
    title: str | None = None
    price: float | None = None
    image_url: str | None = None


class CheckoutSessionRequest(BaseModel):
    """Either a cart checkout or a paid one-time consultation booking."""

    items: list[CartLine] | None = None
    is_consultation: bool = False
    service_id: str | None = None
    title: str | None = None
    scheduled_at: datetime | None = None
    preferred_days: list[str] | None = None

    @model_validator(mode="after")
    def _require_payload(self) -> "CheckoutSessionRequest":
        if self.is_consultation:
            if self.scheduled_at is None:
                raise ValueError("scheduled_at is required for a consultation")
        elif not self.items:
            raise ValueError("At least one product is required")
        return self


class SubscriptionCheckoutRequest(BaseModel):
    plan_id: str
    preferred_days: list[str] | None = None


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: str | None = None


class VerifyPurchaseRequest(BaseModel):
    session_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


VerificationStatus = Literal[
    "pending_payment", "completed", "already_completed", "no_purchases", "timeout"
]


class VerificationResult(BaseModel):
    status: VerificationStatus
    updated_count: int | None = None
    created_count: int | None = None
    completed_count: int | None = None
    message: str | None = None

    @property
    def is_final(self) -> bool:
        return self.status in ("completed", "already_completed")
