"""Seed script: admin profile, default coaching service and the pricing-tier plans.

Safe to run repeatedly; existing rows are left alone.

Usage:
    python -m storefront.admin_seed [admin-user-id] [admin-email]

The admin id must be the auth provider's user id so the profile role check
matches the tokens that user receives.
"""

import asyncio
import sys


async def main(admin_id: str, admin_email: str):
    # Ensure .env is loaded before importing settings
    from dotenv import load_dotenv
    load_dotenv()

    from sqlalchemy import select
    from storefront.constants import (
        ADMIN_PROFILE_ROLE,
        DEFAULT_SERVICE_TITLE,
        INITIAL_CONSULTATION_PRICE,
        PRICING_TIERS,
    )
    from storefront.db.session import async_session_factory, create_all, engine, is_sqlite
    from storefront.models import CoachingService, CoachingSubscriptionPlan, Profile

    if is_sqlite():
        await create_all()

    async with async_session_factory() as db:
        profile = await db.get(Profile, admin_id)
        if profile:
            profile.role = ADMIN_PROFILE_ROLE
            print(f"Admin profile already exists (id={admin_id}); role ensured")
        else:
            db.add(Profile(id=admin_id, email=admin_email, full_name="Admin", role=ADMIN_PROFILE_ROLE))
            print(f"Admin profile created (id={admin_id}, {admin_email})")

        result = await db.execute(
            select(CoachingService).where(CoachingService.title == DEFAULT_SERVICE_TITLE)
        )
        service = result.scalar_one_or_none()
        if not service:
            service = CoachingService(
                title=DEFAULT_SERVICE_TITLE,
                description="Personalized one-on-one coaching sessions tailored to your goals",
                initial_consultation_price=INITIAL_CONSULTATION_PRICE,
                published=True,
            )
            db.add(service)
            await db.flush()
            print(f"Coaching service created (id={service.id})")

        result = await db.execute(
            select(CoachingSubscriptionPlan.title).where(CoachingSubscriptionPlan.service_id == service.id)
        )
        existing_plans = set(result.scalars().all())
        for tier in PRICING_TIERS:
            if tier["title"] in existing_plans:
                continue
            db.add(CoachingSubscriptionPlan(service_id=service.id, **tier))
            print(f"  plan: {tier['title']} ({tier['sessions_per_month']} sessions, ${tier['price_per_month']}/month)")

        await db.commit()

    print()
    print("Next steps:")
    print("  1. Start the API:  uvicorn storefront.app:app --reload")
    print("  2. Sign in as the admin user and call POST /api/admin/create-courses")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main(
        sys.argv[1] if len(sys.argv) > 1 else "00000000-0000-0000-0000-000000000001",
        sys.argv[2] if len(sys.argv) > 2 else "admin@localhost",
    ))
