"""Checkout initiation and purchase verification routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.exceptions import PermissionDeniedError
from storefront.schemas.auth import AuthUser
from storefront.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SingleCheckoutRequest,
    SubscriptionCheckoutRequest,
    VerificationResult,
    VerifyPurchaseRequest,
)
from storefront.services.auth_service import get_current_user, get_optional_user
from storefront.services.cart_service import clear_cart
from storefront.services.checkout_service import create_consultation_checkout, create_product_checkout
from storefront.services.subscription_service import create_subscription_checkout
from storefront.services.verification_service import await_purchase_confirmation, verify_purchase

router = APIRouter(prefix="/api", tags=["checkout"])


@router.post("/checkout", response_model=CheckoutSessionResponse)
async def checkout_single(
    data: SingleCheckoutRequest,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_product_checkout(db, user, [data.product_id])


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def checkout_cart(
    data: CheckoutSessionRequest,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if data.is_consultation:
        return await create_consultation_checkout(db, user, data)
    return await create_product_checkout(db, user, [item.id for item in data.items])


@router.post("/create-subscription", response_model=CheckoutSessionResponse)
async def checkout_subscription(
    data: SubscriptionCheckoutRequest,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_subscription_checkout(db, user, data.plan_id, data.preferred_days)


@router.post("/verify-purchase", response_model=VerificationResult, response_model_exclude_none=True)
async def verify(
    data: VerifyPurchaseRequest,
    user: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if user and user.id != data.user_id:
        raise PermissionDeniedError("Cannot verify another user's purchase")
    return await verify_purchase(db, data.session_id, data.user_id)


@router.get("/checkout/success", response_model=VerificationResult, response_model_exclude_none=True)
async def checkout_success(
    session_id: str = Query(min_length=1),
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await await_purchase_confirmation(db, session_id, user.id)
    if result.is_final:
        await clear_cart(db, user.id)
    return result
