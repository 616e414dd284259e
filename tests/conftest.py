"""Shared fixtures: in-memory database, app client, seeded catalog."""

import os

# Must be set before any storefront import reads settings
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "anon-test-key"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-test-key"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-for-storefront-tests"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["VERIFY_POLL_INTERVAL"] = "0.01"
os.environ["VERIFY_POLL_TIMEOUT"] = "0.2"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.app import create_app
from storefront.db.session import get_db
from storefront.models import (
    Base,
    CoachingService,
    CoachingSubscriptionPlan,
    Product,
    UserSubscription,
)
from storefront.services import checkout_signals


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_signals():
    checkout_signals.clear()
    yield
    checkout_signals.clear()


@pytest.fixture
async def products(session_factory):
    """Two catalog products priced 10 and 20."""
    async with session_factory() as s:
        p1 = Product(id="p1", title="SEO Guide", description="On-page SEO", price=10, pdf_url="https://example.com/p1.pdf", published=True)
        p2 = Product(id="p2", title="Email Playbook", description="Email funnels", price=20, pdf_url="https://example.com/p2.pdf", published=True)
        s.add_all([p1, p2])
        await s.commit()
    return {"p1": p1, "p2": p2}


@pytest.fixture
async def plan(session_factory):
    async with session_factory() as s:
        service = CoachingService(
            id="svc1",
            title="One-on-One Coaching",
            description="Coaching",
            initial_consultation_price=150,
            published=True,
        )
        plan = CoachingSubscriptionPlan(
            id="plan1",
            service_id="svc1",
            title="Standard Plan",
            description="Two sessions a month",
            price_per_month=80,
            sessions_per_month=2,
        )
        s.add_all([service, plan])
        await s.commit()
    return plan


@pytest.fixture
async def subscription(session_factory, plan):
    """Active subscription for user-1 with two sessions left."""
    async with session_factory() as s:
        sub = UserSubscription(
            id="sub-row-1",
            user_id="user-1",
            plan_id=plan.id,
            stripe_subscription_id="sub_123",
            status="active",
            sessions_remaining=2,
        )
        s.add(sub)
        await s.commit()
    return sub
