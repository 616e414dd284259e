"""Thin async wrappers around the Stripe SDK.

Every Stripe call in the storefront goes through this module so the API key
is configured once and the blocking SDK runs off the event loop.
"""

import asyncio
import json
import logging
from typing import Any

import stripe

from storefront.config import get_settings

logger = logging.getLogger(__name__)


def init_stripe() -> None:
    """Set the Stripe API key from settings. Call once at startup."""
    settings = get_settings()
    stripe.api_key = settings.stripe_secret_key


def construct_event(payload: bytes, signature: str) -> dict[str, Any]:
    """Verify a webhook payload's signature and parse it into plain dicts.

    Raises ValueError for a malformed payload and
    stripe.SignatureVerificationError for a bad or stale signature.
    """
    settings = get_settings()
    body = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(
        body, signature, settings.stripe_webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
    )
    return json.loads(body)


async def create_checkout_session(**params: Any):
    return await asyncio.to_thread(stripe.checkout.Session.create, **params)


async def retrieve_checkout_session(session_id: str):
    return await asyncio.to_thread(stripe.checkout.Session.retrieve, session_id)


async def list_line_items(session_id: str) -> list:
    """Line items with their Stripe product expanded so product metadata is readable."""
    result = await asyncio.to_thread(
        stripe.checkout.Session.list_line_items,
        session_id,
        limit=100,
        expand=["data.price.product"],
    )
    return list(result["data"])


async def retrieve_subscription(subscription_id: str):
    return await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)


async def create_customer(email: str | None, name: str | None, user_id: str):
    return await asyncio.to_thread(
        stripe.Customer.create,
        email=email,
        name=name or email,
        metadata={"user_id": user_id},
    )


async def find_or_create_plan_price(
    plan_id: str, name: str, description: str, unit_amount: int, currency: str
) -> str:
    """Return the monthly Stripe price for a coaching plan, creating product and price on first use."""
    products = await asyncio.to_thread(
        stripe.Product.search, query=f"metadata['plan_id']:'{plan_id}'"
    )
    if products["data"]:
        product_id = products["data"][0]["id"]
    else:
        product = await asyncio.to_thread(
            stripe.Product.create,
            name=name,
            description=description,
            metadata={"plan_id": plan_id},
        )
        product_id = product["id"]
        logger.info("Created Stripe product %s for plan %s", product_id, plan_id)

    prices = await asyncio.to_thread(
        stripe.Price.search,
        query=f"product:'{product_id}' AND metadata['plan_id']:'{plan_id}'",
    )
    if prices["data"]:
        return prices["data"][0]["id"]

    price = await asyncio.to_thread(
        stripe.Price.create,
        product=product_id,
        unit_amount=unit_amount,
        currency=currency,
        recurring={"interval": "month"},
        metadata={"plan_id": plan_id},
    )
    logger.info("Created Stripe price %s for plan %s", price["id"], plan_id)
    return price["id"]
