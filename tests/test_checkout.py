"""Checkout Session Initiator: pending purchases, already-purchased guard, Stripe failures."""

import stripe

from storefront.constants import PURCHASE_COMPLETED, PURCHASE_PENDING
from tests.helpers import add_purchase, auth_headers, purchases_for

STRIPE_SESSION = {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"}


def mock_stripe_session(mocker, **kwargs):
    kwargs.setdefault("return_value", STRIPE_SESSION)
    return mocker.patch("storefront.services.stripe_service.create_checkout_session", **kwargs)


async def test_single_checkout_creates_pending_purchase(client, products, session_factory, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post("/api/checkout", json={"product_id": "p1"}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {"session_id": "cs_test_1", "url": STRIPE_SESSION["url"]}

    params = create.call_args.kwargs
    assert params["mode"] == "payment"
    assert params["client_reference_id"] == "user-1"
    assert params["metadata"]["user_id"] == "user-1"
    assert params["metadata"]["product_ids"] == "p1"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 1000

    rows = await purchases_for(session_factory)
    assert len(rows) == 1
    assert rows[0].status == PURCHASE_PENDING
    assert rows[0].stripe_session_id == "cs_test_1"
    assert rows[0].test_mode is True
    assert params["metadata"]["purchase_ids"] == rows[0].id


async def test_cart_checkout_uses_catalog_prices(client, products, session_factory, mocker):
    create = mock_stripe_session(mocker)
    cart = [{"id": "p1", "price": 1}, {"id": "p2", "price": 1}]

    response = await client.post("/api/create-checkout-session", json={"items": cart}, headers=auth_headers())

    assert response.status_code == 200
    rows = await purchases_for(session_factory)
    assert [(r.product_id, r.amount, r.status) for r in rows] == [
        ("p1", 10, PURCHASE_PENDING),
        ("p2", 20, PURCHASE_PENDING),
    ]
    assert create.call_args.kwargs["metadata"]["product_ids"] == "p1,p2"
    amounts = [li["price_data"]["unit_amount"] for li in create.call_args.kwargs["line_items"]]
    assert amounts == [1000, 2000]


async def test_already_purchased_rejected_before_payment_session(client, products, session_factory, mocker):
    await add_purchase(session_factory, product_id="p2", amount=20, status=PURCHASE_COMPLETED)
    create = mock_stripe_session(mocker)

    response = await client.post(
        "/api/create-checkout-session",
        json={"items": [{"id": "p1"}, {"id": "p2"}]},
        headers=auth_headers(),
    )

    assert response.status_code == 400
    assert "already purchased" in response.json()["error"]
    create.assert_not_called()
    rows = await purchases_for(session_factory)
    assert [r.product_id for r in rows] == ["p2"]


async def test_single_already_purchased_message(client, products, session_factory, mocker):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED)
    mock_stripe_session(mocker)

    response = await client.post("/api/checkout", json={"product_id": "p1"}, headers=auth_headers())

    assert response.status_code == 400
    assert response.json() == {"error": "You have already purchased this product"}


async def test_other_users_purchase_does_not_block(client, products, session_factory, mocker):
    await add_purchase(session_factory, user_id="user-2", product_id="p1", amount=10, status=PURCHASE_COMPLETED)
    mock_stripe_session(mocker)

    response = await client.post("/api/checkout", json={"product_id": "p1"}, headers=auth_headers())

    assert response.status_code == 200


async def test_unknown_product_is_404(client, products, session_factory, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post("/api/checkout", json={"product_id": "nope"}, headers=auth_headers())

    assert response.status_code == 404
    create.assert_not_called()
    assert await purchases_for(session_factory) == []


async def test_stripe_failure_returns_500_and_keeps_pending_rows(client, products, session_factory, mocker):
    mock_stripe_session(mocker, side_effect=stripe.APIConnectionError("network down"))

    response = await client.post("/api/checkout", json={"product_id": "p1"}, headers=auth_headers())

    assert response.status_code == 500
    assert "network down" not in response.json()["error"]
    rows = await purchases_for(session_factory)
    assert len(rows) == 1
    assert rows[0].status == PURCHASE_PENDING
    assert rows[0].stripe_session_id is None


async def test_checkout_requires_authentication(client, products, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post("/api/checkout", json={"product_id": "p1"})

    assert response.status_code == 401
    create.assert_not_called()


async def test_empty_cart_is_400(client, mocker):
    mock_stripe_session(mocker)

    response = await client.post("/api/create-checkout-session", json={"items": []}, headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["error"] == "Missing or invalid fields"


async def test_consultation_checkout_uses_service_price(client, plan, session_factory, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post(
        "/api/create-checkout-session",
        json={
            "is_consultation": True,
            "service_id": "svc1",
            "scheduled_at": "2030-01-15T14:00:00Z",
            "preferred_days": ["monday", "wednesday"],
        },
        headers=auth_headers(),
    )

    assert response.status_code == 200
    params = create.call_args.kwargs
    assert params["metadata"]["is_consultation"] == "true"
    assert params["metadata"]["preferred_days"] == "monday,wednesday"
    assert params["metadata"]["title"] == "Initial Consultation"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 15000
    assert await purchases_for(session_factory) == []


async def test_consultation_without_service_uses_default_price(client, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post(
        "/api/create-checkout-session",
        json={"is_consultation": True, "scheduled_at": "2030-01-15T14:00:00Z"},
        headers=auth_headers(),
    )

    assert response.status_code == 200
    assert create.call_args.kwargs["line_items"][0]["price_data"]["unit_amount"] == 20000


async def test_subscription_checkout(client, plan, session_factory, mocker):
    mocker.patch("storefront.services.stripe_service.create_customer", return_value={"id": "cus_1"})
    price = mocker.patch("storefront.services.stripe_service.find_or_create_plan_price", return_value="price_1")
    create = mock_stripe_session(mocker, return_value={"id": "cs_sub_1", "url": "https://checkout.stripe.com/sub"})

    response = await client.post("/api/create-subscription", json={"plan_id": "plan1"}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["session_id"] == "cs_sub_1"
    assert price.call_args.args[3] == 8000
    params = create.call_args.kwargs
    assert params["mode"] == "subscription"
    assert params["customer"] == "cus_1"
    assert params["subscription_data"]["metadata"] == {"user_id": "user-1", "plan_id": "plan1"}


async def test_subscription_checkout_carries_preferred_days(client, plan, mocker):
    mocker.patch("storefront.services.stripe_service.create_customer", return_value={"id": "cus_1"})
    mocker.patch("storefront.services.stripe_service.find_or_create_plan_price", return_value="price_1")
    create = mock_stripe_session(mocker, return_value={"id": "cs_sub_1", "url": "https://checkout.stripe.com/sub"})

    await client.post(
        "/api/create-subscription",
        json={"plan_id": "plan1", "preferred_days": ["tuesday", "thursday"]},
        headers=auth_headers(),
    )

    params = create.call_args.kwargs
    assert params["metadata"]["preferred_days"] == "tuesday,thursday"
    assert params["subscription_data"]["metadata"]["preferred_days"] == "tuesday,thursday"


async def test_subscription_checkout_unknown_plan(client, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post("/api/create-subscription", json={"plan_id": "missing"}, headers=auth_headers())

    assert response.status_code == 404
    create.assert_not_called()


async def test_subscription_checkout_rejects_duplicate_live_subscription(client, subscription, mocker):
    create = mock_stripe_session(mocker)

    response = await client.post("/api/create-subscription", json={"plan_id": "plan1"}, headers=auth_headers())

    assert response.status_code == 400
    create.assert_not_called()
