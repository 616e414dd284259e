"""Purchase verification after the redirect back from Stripe.

verify_purchase asks Stripe whether the session is paid and reconciles the
purchase rows for it, force-completing them when the webhook has not landed
yet. await_purchase_confirmation wraps it in a bounded wait for the success
page, consulting the webhook's completion signal first.
"""

import asyncio
import logging
import time

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.constants import PURCHASE_COMPLETED, PURCHASE_PENDING
from storefront.exceptions import UpstreamError
from storefront.models.purchase import Purchase
from storefront.schemas.checkout import VerificationResult
from storefront.services import checkout_signals, stripe_service
from storefront.services.catalog_service import completed_product_ids, get_products
from storefront.services.purchase_service import session_product_ids, session_user_id
from storefront.utils import from_cents, now_utc

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = (
    "We're still confirming your payment. Please check your dashboard in a few "
    "minutes; your purchase will appear there once it is confirmed."
)


async def _session_purchases(db: AsyncSession, session_id: str, user_id: str) -> list[Purchase]:
    result = await db.execute(
        select(Purchase).where(Purchase.stripe_session_id == session_id, Purchase.user_id == user_id)
    )
    return list(result.scalars().all())


async def _complete_pending(db: AsyncSession, user_id: str, purchases: list[Purchase]) -> int:
    """Complete the pending rows for products the user does not own yet."""
    pending = [p for p in purchases if p.status == PURCHASE_PENDING]
    owned = await completed_product_ids(db, user_id, {p.product_id for p in pending})
    ids = [p.id for p in pending if p.product_id not in owned]
    if len(ids) < len(pending):
        logger.info(f"Leaving {len(pending) - len(ids)} pending rows for already owned products")
    if not ids:
        return 0

    result = await db.execute(
        update(Purchase)
        .where(Purchase.id.in_(ids), Purchase.status == PURCHASE_PENDING)
        .values(status=PURCHASE_COMPLETED, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


def _line_item_amounts(line_items: list) -> dict[str, float]:
    """Map product id -> amount paid, from line items whose Stripe product carries our id."""
    amounts: dict[str, float] = {}
    for item in line_items:
        price = item.get("price") or {}
        product = price.get("product")
        if not hasattr(product, "get"):
            continue
        product_id = (product.get("metadata") or {}).get("product_id")
        if product_id:
            amounts[product_id] = from_cents(item.get("amount_total"))
    return amounts


async def _reconstruct_purchases(db: AsyncSession, session, user_id: str) -> int:
    """Create completed purchases for a paid session that has no rows at all."""
    session_id = session["id"]
    owner = session_user_id(session)
    if owner and owner != user_id:
        logger.warning(f"Session {session_id} belongs to {owner}, not {user_id}; not reconstructing")
        return 0

    try:
        amounts = _line_item_amounts(await stripe_service.list_line_items(session_id))
    except stripe.StripeError as e:
        logger.warning(f"Could not list line items for {session_id}, using metadata: {e}")
        amounts = {}

    if not amounts:
        products = await get_products(db, session_product_ids(session))
        amounts = {p.id: p.price for p in products}
    if not amounts:
        return 0

    owned = await completed_product_ids(db, user_id, amounts)
    settings = get_settings()
    livemode = session.get("livemode")
    test_mode = settings.test_mode if livemode is None else not livemode
    created = [
        Purchase(
            user_id=user_id,
            product_id=product_id,
            amount=amount,
            status=PURCHASE_COMPLETED,
            stripe_session_id=session_id,
            test_mode=test_mode,
        )
        for product_id, amount in amounts.items()
        if product_id not in owned
    ]
    db.add_all(created)
    await db.commit()
    logger.info(f"Reconstructed {len(created)} purchases for session {session_id}")
    return len(created)


async def verify_purchase(db: AsyncSession, session_id: str, user_id: str) -> VerificationResult:
    """Reconcile a checkout session's purchases against Stripe's view of the payment."""
    try:
        session = await stripe_service.retrieve_checkout_session(session_id)
    except stripe.StripeError as e:
        logger.error(f"Could not retrieve checkout session {session_id}: {e}")
        raise UpstreamError("An error occurred while verifying the purchase") from e

    if session.get("payment_status") != "paid":
        return VerificationResult(status="pending_payment")

    purchases = await _session_purchases(db, session_id, user_id)
    if purchases:
        if any(p.status == PURCHASE_PENDING for p in purchases):
            updated = await _complete_pending(db, user_id, purchases)
            if updated:
                logger.info(f"Verifier completed {updated} purchases for session {session_id}")
                return VerificationResult(status="completed", updated_count=updated)
        owned = await completed_product_ids(db, user_id, {p.product_id for p in purchases})
        return VerificationResult(status="already_completed", completed_count=len(owned))

    created = await _reconstruct_purchases(db, session, user_id)
    if created:
        return VerificationResult(status="completed", created_count=created)
    return VerificationResult(status="no_purchases")


async def _signalled_result(db: AsyncSession, session_id: str, user_id: str) -> VerificationResult | None:
    """Database-only check once the webhook has signalled completion."""
    purchases = await _session_purchases(db, session_id, user_id)
    if purchases and all(p.status != PURCHASE_PENDING for p in purchases):
        completed = sum(1 for p in purchases if p.status == PURCHASE_COMPLETED)
        return VerificationResult(status="already_completed", completed_count=completed)
    return None


async def await_purchase_confirmation(
    db: AsyncSession,
    session_id: str,
    user_id: str,
    interval: float | None = None,
    timeout: float | None = None,
) -> VerificationResult:
    """Poll until the purchase is confirmed or the timeout passes. Never waits past the timeout."""
    settings = get_settings()
    interval = settings.verify_poll_interval if interval is None else interval
    timeout = settings.verify_poll_timeout if timeout is None else timeout
    deadline = time.monotonic() + timeout

    while True:
        result = None
        if await checkout_signals.is_completed(session_id):
            result = await _signalled_result(db, session_id, user_id)
        if result is None:
            try:
                result = await verify_purchase(db, session_id, user_id)
            except UpstreamError:
                result = None
        if result is not None and result.is_final:
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        # Release the connection between ticks; the next tick reads fresh rows
        await db.rollback()
        await asyncio.sleep(min(interval, remaining))

    logger.warning(f"Purchase confirmation for session {session_id} timed out after {timeout}s")
    return VerificationResult(status="timeout", message=TIMEOUT_MESSAGE)
