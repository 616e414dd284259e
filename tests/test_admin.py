"""Admin dashboard aggregates and completion signal storage."""

from datetime import timedelta

import pytest
from redis.exceptions import RedisError

from storefront.constants import PURCHASE_COMPLETED, PURCHASE_PENDING
from storefront.models import CoachingSession
from storefront.services import checkout_signals
from storefront.utils import now_utc
from tests.helpers import add_purchase, admin_headers


async def test_stats_split_live_and_test_revenue(client, products, subscription, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED, test_mode=False)
    await add_purchase(session_factory, product_id="p2", amount=20, status=PURCHASE_COMPLETED, test_mode=True)
    await add_purchase(session_factory, product_id="p2", amount=20, status=PURCHASE_PENDING, user_id="user-2")
    async with session_factory() as s:
        s.add_all([
            CoachingSession(user_id="user-1", title="Soon", scheduled_at=now_utc() + timedelta(days=2), duration_minutes=60),
            CoachingSession(user_id="user-1", title="Past", scheduled_at=now_utc() - timedelta(days=2), duration_minutes=60),
        ])
        await s.commit()

    response = await client.get("/api/admin/stats", headers=admin_headers())

    assert response.status_code == 200
    assert response.json() == {
        "revenue": 10.0,
        "test_revenue": 20.0,
        "completed_purchases": 2,
        "active_subscriptions": 1,
        "upcoming_sessions": 1,
    }


async def test_recent_purchases_include_product_title(client, products, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED)

    response = await client.get("/api/admin/purchases/recent", headers=admin_headers())

    assert [(p["product_title"], p["amount"]) for p in response.json()] == [("SEO Guide", 10)]


async def test_in_memory_signal_roundtrip():
    assert await checkout_signals.is_completed("cs_1") is False

    await checkout_signals.mark_completed("cs_1")

    assert await checkout_signals.is_completed("cs_1") is True
    assert await checkout_signals.is_completed("cs_2") is False


async def test_redis_signal_failure_is_swallowed(mocker):
    redis = mocker.AsyncMock()
    redis.setex.side_effect = RedisError("down")
    redis.exists.side_effect = RedisError("down")
    mocker.patch("storefront.services.checkout_signals._get_redis", return_value=redis)

    await checkout_signals.mark_completed("cs_1")

    assert await checkout_signals.is_completed("cs_1") is False
    assert redis.aclose.await_count == 2


@pytest.mark.parametrize("stored, expected", [(1, True), (0, False)])
async def test_redis_signal_lookup(mocker, stored, expected):
    redis = mocker.AsyncMock()
    redis.exists.return_value = stored
    mocker.patch("storefront.services.checkout_signals._get_redis", return_value=redis)

    assert await checkout_signals.is_completed("cs_1") is expected
    redis.exists.assert_awaited_once_with("checkout:cs_1")
