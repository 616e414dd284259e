"""Checkout Session Initiator: pending purchases plus a hosted Stripe payment page.

Product checkouts write one pending Purchase per item before asking Stripe
for a session, so the webhook and the success-page verifier always have rows
to reconcile against. Subscription checkouts live in subscription_service.
"""

import logging

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.constants import (
    CHECKOUT_CANCEL_PATH,
    CHECKOUT_SUCCESS_PATH,
    CONSULTATION_CANCEL_PATH,
    CONSULTATION_SUCCESS_PATH,
    CONSULTATION_TITLE,
    INITIAL_CONSULTATION_PRICE,
    PURCHASE_PENDING,
)
from storefront.exceptions import AlreadyPurchasedError, NotFoundError, UpstreamError
from storefront.models.coaching import CoachingService
from storefront.models.product import Product
from storefront.models.purchase import Purchase
from storefront.schemas.auth import AuthUser
from storefront.schemas.checkout import CheckoutSessionRequest, CheckoutSessionResponse
from storefront.services import stripe_service
from storefront.services.catalog_service import completed_product_ids, get_products
from storefront.utils import to_cents

logger = logging.getLogger(__name__)


def _product_line_item(product: Product, currency: str) -> dict:
    product_data = {
        "name": product.title,
        "metadata": {"product_id": product.id},
    }
    if product.description:
        product_data["description"] = product.description
    if product.image_url:
        product_data["images"] = [product.image_url]
    return {
        "price_data": {
            "currency": currency,
            "product_data": product_data,
            "unit_amount": to_cents(product.price),
        },
        "quantity": 1,
    }


async def create_product_checkout(
    db: AsyncSession, user: AuthUser, product_ids: list[str]
) -> CheckoutSessionResponse:
    """Create pending purchases for product_ids and a payment-mode Stripe session.

    Prices always come from the catalog, never from the caller.
    """
    settings = get_settings()
    unique_ids = list(dict.fromkeys(product_ids))

    products = {p.id: p for p in await get_products(db, unique_ids)}
    missing = [pid for pid in unique_ids if pid not in products]
    if missing:
        if len(unique_ids) == 1:
            raise NotFoundError("Product not found")
        raise NotFoundError(f"Products not found: {', '.join(missing)}")

    owned = await completed_product_ids(db, user.id, unique_ids)
    if owned:
        if len(unique_ids) == 1:
            raise AlreadyPurchasedError()
        titles = ", ".join(products[pid].title for pid in unique_ids if pid in owned)
        raise AlreadyPurchasedError(f"You have already purchased: {titles}")

    ordered = [products[pid] for pid in unique_ids]
    pending = [
        Purchase(
            user_id=user.id,
            product_id=product.id,
            amount=product.price,
            status=PURCHASE_PENDING,
            test_mode=settings.test_mode,
        )
        for product in ordered
    ]
    db.add_all(pending)
    await db.commit()

    try:
        session = await stripe_service.create_checkout_session(
            mode="payment",
            payment_method_types=["card"],
            line_items=[_product_line_item(p, settings.currency) for p in ordered],
            customer_email=user.email,
            client_reference_id=user.id,
            metadata={
                "user_id": user.id,
                "product_ids": ",".join(unique_ids),
                "purchase_ids": ",".join(p.id for p in pending),
            },
            success_url=f"{settings.site_url}{CHECKOUT_SUCCESS_PATH}",
            cancel_url=f"{settings.site_url}{CHECKOUT_CANCEL_PATH}",
        )
    except stripe.StripeError as e:
        # Pending rows stay; they never complete and are ignored by the purchase checks
        logger.error(
            f"Stripe session creation failed for user {user.id} "
            f"({len(pending)} pending purchases left behind): {e}"
        )
        raise UpstreamError("An error occurred while creating the checkout session") from e

    for purchase in pending:
        purchase.stripe_session_id = session["id"]
    await db.commit()

    logger.info(f"Checkout session {session['id']} created for user {user.id}: {unique_ids}")
    return CheckoutSessionResponse(session_id=session["id"], url=session.get("url"))


async def create_consultation_checkout(
    db: AsyncSession, user: AuthUser, request: CheckoutSessionRequest
) -> CheckoutSessionResponse:
    """Payment-mode session for a one-time consultation.

    Nothing is written here; the webhook books the CoachingSession once paid.
    """
    settings = get_settings()
    price = INITIAL_CONSULTATION_PRICE
    title = request.title or CONSULTATION_TITLE

    if request.service_id:
        service = await db.get(CoachingService, request.service_id)
        if not service:
            raise NotFoundError("Coaching service not found")
        price = service.initial_consultation_price

    metadata = {
        "user_id": user.id,
        "is_consultation": "true",
        "scheduled_at": request.scheduled_at.isoformat(),
        "title": title,
    }
    if request.service_id:
        metadata["service_id"] = request.service_id
    if request.preferred_days:
        metadata["preferred_days"] = ",".join(request.preferred_days)

    try:
        session = await stripe_service.create_checkout_session(
            mode="payment",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": settings.currency,
                        "product_data": {
                            "name": title,
                            "description": f"Coaching session scheduled for {request.scheduled_at:%Y-%m-%d %H:%M} UTC",
                        },
                        "unit_amount": to_cents(price),
                    },
                    "quantity": 1,
                }
            ],
            customer_email=user.email,
            client_reference_id=user.id,
            metadata=metadata,
            success_url=f"{settings.site_url}{CONSULTATION_SUCCESS_PATH}",
            cancel_url=f"{settings.site_url}{CONSULTATION_CANCEL_PATH}",
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe consultation session creation failed for user {user.id}: {e}")
        raise UpstreamError("An error occurred while creating the checkout session") from e

    return CheckoutSessionResponse(session_id=session["id"], url=session.get("url"))
