"""Webhook-side purchase transitions: pending -> completed and pending -> failed."""

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.constants import PURCHASE_COMPLETED, PURCHASE_FAILED, PURCHASE_PENDING
from storefront.exceptions import ValidationError
from storefront.models.product import Product
from storefront.models.purchase import Purchase
from storefront.services import checkout_signals
from storefront.utils import now_utc, split_ids

logger = logging.getLogger(__name__)


def _session_test_mode(session_data: dict) -> bool:
    livemode = session_data.get("livemode")
    if livemode is None:
        return get_settings().test_mode
    return not livemode


def session_user_id(session_data: dict) -> str | None:
    metadata = session_data.get("metadata") or {}
    return session_data.get("client_reference_id") or metadata.get("user_id")


def session_product_ids(session_data: dict) -> list[str]:
    metadata = session_data.get("metadata") or {}
    ids = split_ids(metadata.get("product_ids"))
    if not ids and metadata.get("product_id"):
        ids = [metadata["product_id"]]
    return ids


async def _complete_product(
    db: AsyncSession, user_id: str, product_id: str, session_id: str, test_mode: bool
) -> bool:
    """Complete one (user, product) purchase. Returns False when there was nothing to do."""
    result = await db.execute(
        select(Purchase).where(
            Purchase.user_id == user_id,
            Purchase.product_id == product_id,
            Purchase.status.in_((PURCHASE_PENDING, PURCHASE_COMPLETED)),
        ).order_by(Purchase.created_at.desc())
    )
    rows = list(result.scalars().all())

    if any(p.status == PURCHASE_COMPLETED for p in rows):
        return False

    if rows:
        purchase = next((p for p in rows if p.stripe_session_id == session_id), rows[0])
        purchase.status = PURCHASE_COMPLETED
        purchase.stripe_session_id = session_id
        purchase.test_mode = test_mode
    else:
        product = await db.get(Product, product_id)
        if not product:
            logger.warning(f"Session {session_id} references unknown product {product_id}")
            return False
        db.add(
            Purchase(
                user_id=user_id,
                product_id=product_id,
                amount=product.price,
                status=PURCHASE_COMPLETED,
                stripe_session_id=session_id,
                test_mode=test_mode,
            )
        )
    await db.flush()
    return True


async def handle_payment_completed(session_data: dict, db: AsyncSession) -> int:
    """Complete every purchase named in a paid one-time checkout session.

    Redelivery is harmless: products the user already owns are skipped. Each
    product runs in its own savepoint so one bad row does not block the rest.
    Returns the number of purchases that changed.
    """
    session_id = session_data["id"]
    user_id = session_user_id(session_data)
    if not user_id:
        raise ValidationError("No user ID found in session")

    product_ids = session_product_ids(session_data)
    if not product_ids:
        logger.warning(f"Checkout session {session_id} carries no product ids")
        return 0

    test_mode = _session_test_mode(session_data)
    completed = 0
    for product_id in product_ids:
        try:
            async with db.begin_nested():
                if await _complete_product(db, user_id, product_id, session_id, test_mode):
                    completed += 1
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to complete purchase of {product_id} for user {user_id} "
                f"(session {session_id}): {e}"
            )
    await db.commit()

    logger.info(
        f"Session {session_id}: {completed} of {len(product_ids)} purchases completed for user {user_id}"
    )
    await checkout_signals.mark_completed(session_id)
    return completed


async def handle_checkout_expired(session_data: dict, db: AsyncSession) -> int:
    """Fail the pending purchases of an expired session. Completed rows are untouched."""
    session_id = session_data["id"]
    metadata = session_data.get("metadata") or {}
    match = Purchase.stripe_session_id == session_id
    purchase_ids = split_ids(metadata.get("purchase_ids"))
    if purchase_ids:
        match = or_(match, Purchase.id.in_(purchase_ids))

    result = await db.execute(
        update(Purchase)
        .where(match, Purchase.status == PURCHASE_PENDING)
        .values(status=PURCHASE_FAILED, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info(f"Session {session_id} expired: {result.rowcount} pending purchases failed")
    return result.rowcount
