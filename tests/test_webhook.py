"""Payment Webhook Handler: signature checks, idempotent completion, expiry, subscriptions."""

from datetime import datetime, UTC

from sqlalchemy import select

from storefront.constants import PURCHASE_COMPLETED, PURCHASE_FAILED, PURCHASE_PENDING
from storefront.models import CoachingSession, UserSubscription
from storefront.services import checkout_signals
from tests.helpers import add_purchase, purchases_for, signed_event

JAN_1 = int(datetime(2030, 1, 1, tzinfo=UTC).timestamp())
FEB_1 = int(datetime(2030, 2, 1, tzinfo=UTC).timestamp())
MAR_1 = int(datetime(2030, 3, 1, tzinfo=UTC).timestamp())


def paid_session(**overrides) -> dict:
    session = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
        "livemode": False,
        "client_reference_id": "user-1",
        "metadata": {"user_id": "user-1", "product_ids": "p1,p2"},
    }
    session.update(overrides)
    return session


async def post_event(client, event_type, obj):
    body, headers = signed_event(event_type, obj)
    return await client.post("/api/webhook", content=body, headers=headers)


async def test_invalid_signature_rejected(client, products, session_factory):
    body, headers = signed_event("checkout.session.completed", paid_session(), secret="whsec_wrong")

    response = await client.post("/api/webhook", content=body, headers=headers)

    assert response.status_code == 400
    assert await purchases_for(session_factory) == []


async def test_missing_signature_rejected(client):
    response = await client.post("/api/webhook", content="{}")

    assert response.status_code == 400


async def test_completed_flips_pending_rows_and_is_idempotent(client, products, session_factory):
    for pid, amount in (("p1", 10), ("p2", 20)):
        await add_purchase(session_factory, product_id=pid, amount=amount, stripe_session_id="cs_test_1")

    for _ in range(3):
        response = await post_event(client, "checkout.session.completed", paid_session())
        assert response.status_code == 200

    rows = await purchases_for(session_factory)
    assert [(r.product_id, r.amount, r.status) for r in rows] == [
        ("p1", 10, PURCHASE_COMPLETED),
        ("p2", 20, PURCHASE_COMPLETED),
    ]
    assert await checkout_signals.is_completed("cs_test_1")


async def test_completed_without_pending_rows_creates_them(client, products, session_factory):
    response = await post_event(client, "checkout.session.completed", paid_session())
    assert response.status_code == 200
    await post_event(client, "checkout.session.completed", paid_session())

    rows = await purchases_for(session_factory)
    assert [(r.product_id, r.amount, r.status, r.stripe_session_id) for r in rows] == [
        ("p1", 10, PURCHASE_COMPLETED, "cs_test_1"),
        ("p2", 20, PURCHASE_COMPLETED, "cs_test_1"),
    ]
    assert all(r.test_mode is True for r in rows)


async def test_completed_skips_products_already_owned(client, products, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED, stripe_session_id="cs_old")

    await post_event(client, "checkout.session.completed", paid_session())

    rows = await purchases_for(session_factory)
    assert [(r.product_id, r.stripe_session_id) for r in rows] == [("p1", "cs_old"), ("p2", "cs_test_1")]


async def test_completed_ignores_unknown_product(client, products, session_factory):
    session = paid_session(metadata={"user_id": "user-1", "product_ids": "ghost,p1"})

    response = await post_event(client, "checkout.session.completed", session)

    assert response.status_code == 200
    rows = await purchases_for(session_factory)
    assert [r.product_id for r in rows] == ["p1"]


async def test_completed_without_user_is_400(client, products, session_factory):
    session = paid_session(client_reference_id=None, metadata={"product_ids": "p1"})

    response = await post_event(client, "checkout.session.completed", session)

    assert response.status_code == 400
    assert await purchases_for(session_factory) == []


async def test_expired_fails_only_pending_rows(client, products, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, stripe_session_id="cs_test_1")
    await add_purchase(session_factory, product_id="p2", amount=20, status=PURCHASE_COMPLETED, stripe_session_id="cs_test_1")
    await add_purchase(session_factory, product_id="p1", amount=10, stripe_session_id="cs_other")

    response = await post_event(client, "checkout.session.expired", {"id": "cs_test_1", "metadata": {}})

    assert response.status_code == 200
    rows = await purchases_for(session_factory)
    by_session = sorted((r.stripe_session_id, r.product_id, r.status) for r in rows)
    assert by_session == [
        ("cs_other", "p1", PURCHASE_PENDING),
        ("cs_test_1", "p1", PURCHASE_FAILED),
        ("cs_test_1", "p2", PURCHASE_COMPLETED),
    ]


async def test_expired_matches_purchase_ids_from_metadata(client, products, session_factory):
    orphan = await add_purchase(session_factory, product_id="p1", amount=10)

    await post_event(client, "checkout.session.expired", {"id": "cs_test_9", "metadata": {"purchase_ids": orphan.id}})

    rows = await purchases_for(session_factory)
    assert rows[0].status == PURCHASE_FAILED


async def test_consultation_booking_created_once(client, session_factory):
    session = paid_session(
        id="cs_consult_1",
        metadata={
            "user_id": "user-1",
            "is_consultation": "true",
            "scheduled_at": "2030-01-15T14:00:00+00:00",
            "title": "Initial Consultation",
            "preferred_days": "monday,friday",
        },
    )

    await post_event(client, "checkout.session.completed", session)
    response = await post_event(client, "checkout.session.completed", session)

    assert response.status_code == 200
    async with session_factory() as s:
        bookings = list((await s.execute(select(CoachingSession))).scalars().all())
    assert len(bookings) == 1
    assert bookings[0].title == "Initial Consultation"
    assert bookings[0].duration_minutes == 60
    assert bookings[0].status == "scheduled"
    assert bookings[0].preferred_days == ["monday", "friday"]
    assert await purchases_for(session_factory) == []


async def test_subscription_checkout_creates_subscription(client, plan, session_factory, mocker):
    mocker.patch(
        "storefront.services.stripe_service.retrieve_subscription",
        return_value={
            "id": "sub_new",
            "status": "active",
            "items": {"data": [{"current_period_start": JAN_1, "current_period_end": FEB_1}]},
        },
    )
    session = {
        "id": "cs_sub_1",
        "mode": "subscription",
        "subscription": "sub_new",
        "client_reference_id": "user-1",
        "metadata": {"user_id": "user-1", "plan_id": "plan1"},
    }

    await post_event(client, "checkout.session.completed", session)
    response = await post_event(client, "checkout.session.completed", session)

    assert response.status_code == 200
    async with session_factory() as s:
        subs = list((await s.execute(select(UserSubscription))).scalars().all())
    assert len(subs) == 1
    assert subs[0].status == "active"
    assert subs[0].sessions_remaining == 2
    assert subs[0].current_period_end.replace(tzinfo=UTC) == datetime(2030, 2, 1, tzinfo=UTC)


async def test_subscription_renewal_resets_allotment(client, plan, session_factory):
    async with session_factory() as s:
        s.add(
            UserSubscription(
                id="sub-row-9",
                user_id="user-1",
                plan_id="plan1",
                stripe_subscription_id="sub_9",
                status="active",
                current_period_start=datetime(2030, 1, 1, tzinfo=UTC),
                current_period_end=datetime(2030, 2, 1, tzinfo=UTC),
                sessions_remaining=0,
            )
        )
        await s.commit()

    same_period = {"id": "sub_9", "status": "past_due", "current_period_start": JAN_1, "current_period_end": FEB_1}
    await post_event(client, "customer.subscription.updated", same_period)
    async with session_factory() as s:
        sub = await s.get(UserSubscription, "sub-row-9")
    assert (sub.status, sub.sessions_remaining) == ("past_due", 0)

    renewed = {"id": "sub_9", "status": "active", "current_period_start": FEB_1, "current_period_end": MAR_1}
    await post_event(client, "customer.subscription.updated", renewed)
    async with session_factory() as s:
        sub = await s.get(UserSubscription, "sub-row-9")
    assert (sub.status, sub.sessions_remaining) == ("active", 2)


async def test_subscription_created_event_inserts_row(client, plan, session_factory):
    sub_data = {
        "id": "sub_created",
        "status": "trialing",
        "current_period_start": JAN_1,
        "current_period_end": FEB_1,
        "metadata": {"user_id": "user-3", "plan_id": "plan1"},
    }

    response = await post_event(client, "customer.subscription.created", sub_data)

    assert response.status_code == 200
    async with session_factory() as s:
        sub = (await s.execute(select(UserSubscription))).scalar_one()
    assert (sub.user_id, sub.status, sub.sessions_remaining) == ("user-3", "trialing", 2)


async def test_subscription_deleted_cancels(client, subscription, session_factory):
    response = await post_event(client, "customer.subscription.deleted", {"id": "sub_123", "status": "canceled"})

    assert response.status_code == 200
    async with session_factory() as s:
        sub = await s.get(UserSubscription, "sub-row-1")
    assert sub.status == "canceled"


async def test_unhandled_event_type_is_acknowledged(client):
    response = await post_event(client, "invoice.finalized", {"id": "in_1"})

    assert response.status_code == 200
    assert response.json() == {"received": True}


async def test_checkout_backfills_preferred_days_on_row_from_created_event(client, plan, session_factory, mocker):
    stripe_sub = {
        "id": "sub_early",
        "status": "active",
        "current_period_start": JAN_1,
        "current_period_end": FEB_1,
        "metadata": {"user_id": "user-1", "plan_id": "plan1"},
    }
    mocker.patch("storefront.services.stripe_service.retrieve_subscription", return_value=stripe_sub)
    await post_event(client, "customer.subscription.created", stripe_sub)

    session = {
        "id": "cs_sub_2",
        "mode": "subscription",
        "subscription": "sub_early",
        "client_reference_id": "user-1",
        "metadata": {"user_id": "user-1", "plan_id": "plan1", "preferred_days": "tuesday,thursday"},
    }
    response = await post_event(client, "checkout.session.completed", session)

    assert response.status_code == 200
    async with session_factory() as s:
        sub = (await s.execute(select(UserSubscription))).scalar_one()
    assert sub.preferred_days == ["tuesday", "thursday"]
    assert sub.sessions_remaining == 2
