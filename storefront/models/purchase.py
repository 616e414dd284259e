"""Purchase model: one user's purchase attempt for one product."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.constants import PURCHASE_PENDING
from storefront.utils import new_id, now_utc
from .base import Base


class Purchase(Base):
    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PURCHASE_PENDING)  # pending | completed | failed
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    test_mode: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # No unique (user_id, product_id) constraint: duplicate completion is only prevented by pre-checks
    product: Mapped["Product"] = relationship()
