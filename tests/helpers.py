"""Token minting, webhook signing and row lookups for tests."""

import hashlib
import hmac
import json
import time

import jwt
from sqlalchemy import select

from storefront.models import Purchase

JWT_SECRET = "test-jwt-secret-for-storefront-tests"
WEBHOOK_SECRET = "whsec_test_secret"


def make_token(user_id: str, role: str | None = None, secret: str = JWT_SECRET, expires_in: int = 3600) -> str:
    payload = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
        "app_metadata": {"role": role} if role else {},
        "user_metadata": {"full_name": "Test User"},
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str = "user-1", **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def admin_headers() -> dict:
    return auth_headers("admin-1", role="admin")


def signed_event(event_type: str, obj: dict, secret: str = WEBHOOK_SECRET) -> tuple[str, dict]:
    """Return (body, headers) for a Stripe event signed like Stripe does."""
    body = json.dumps({"id": f"evt_{event_type}", "type": event_type, "data": {"object": obj}})
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256).hexdigest()
    return body, {"stripe-signature": f"t={timestamp},v1={signature}", "content-type": "application/json"}


async def purchases_for(session_factory, user_id: str = "user-1") -> list[Purchase]:
    async with session_factory() as s:
        result = await s.execute(
            select(Purchase).where(Purchase.user_id == user_id).order_by(Purchase.amount)
        )
        return list(result.scalars().all())


async def add_purchase(session_factory, **fields) -> Purchase:
    fields.setdefault("user_id", "user-1")
    fields.setdefault("test_mode", True)
    async with session_factory() as s:
        purchase = Purchase(**fields)
        s.add(purchase)
        await s.commit()
    return purchase
