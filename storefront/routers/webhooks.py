"""Webhook routes: Stripe."""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.exceptions import StorefrontError
from storefront.services import stripe_service
from storefront.services.coaching_service import book_paid_consultation
from storefront.services.purchase_service import handle_checkout_expired, handle_payment_completed
from storefront.services.subscription_service import (
    handle_checkout_completed as handle_subscription_checkout,
    handle_subscription_deleted,
    handle_subscription_updated,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["webhooks"])


async def _dispatch(event_type: str, data: dict, db: AsyncSession) -> None:
    if event_type == "checkout.session.completed":
        metadata = data.get("metadata") or {}
        if data.get("mode") == "subscription":
            await handle_subscription_checkout(data, db)
        elif metadata.get("is_consultation") == "true":
            await book_paid_consultation(data, db)
        else:
            await handle_payment_completed(data, db)
    elif event_type == "checkout.session.expired":
        await handle_checkout_expired(data, db)
    elif event_type == "customer.subscription.created":
        await handle_subscription_updated(data, db, created=True)
    elif event_type == "customer.subscription.updated":
        await handle_subscription_updated(data, db)
    elif event_type == "customer.subscription.deleted":
        await handle_subscription_deleted(data, db)
    else:
        logger.info(f"Unhandled Stripe event type: {event_type}")


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    payload = await request.body()

    try:
        event = stripe_service.construct_event(payload, stripe_signature)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event["type"]
    data = event["data"]["object"]

    logger.info(f"Stripe webhook: {event_type} ({event.get('id')})")

    try:
        await _dispatch(event_type, data, db)
    except (StorefrontError, stripe.StripeError, SQLAlchemyError, KeyError) as e:
        await db.rollback()
        logger.error(f"Webhook processing failed for {event_type}: {e}")
        raise HTTPException(status_code=400, detail="Webhook processing failed")

    return {"received": True}
