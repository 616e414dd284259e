"""Product, course content, purchase-history and cart routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.exceptions import PermissionDeniedError
from storefront.schemas.auth import AuthUser
from storefront.schemas.catalog import CartItemIn, CartItemOut, ProductDetail, PurchaseOut
from storefront.schemas.courses import CourseContent
from storefront.services import cart_service, course_service
from storefront.services.auth_service import get_current_user
from storefront.services.catalog_service import find_completed_purchase, get_product, list_user_purchases

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products/{product_id}", response_model=ProductDetail)
async def product_detail(product_id: str, db: AsyncSession = Depends(get_db)):
    return await get_product(db, product_id)


@router.get("/products/{product_id}/check-purchase")
async def check_purchase(
    product_id: str,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    purchase = await find_completed_purchase(db, user.id, product_id)
    return {
        "purchased": purchase is not None,
        "purchase": PurchaseOut.model_validate(purchase) if purchase else None,
    }


@router.get("/purchases", response_model=list[PurchaseOut])
async def my_purchases(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await list_user_purchases(db, user.id)


@router.get("/cart", response_model=list[CartItemOut])
async def get_cart(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await cart_service.list_cart(db, user.id)


@router.post("/cart/items", response_model=CartItemOut, status_code=201)
async def add_cart_item(
    data: CartItemIn,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await cart_service.add_to_cart(db, user.id, data.product_id)


@router.delete("/cart/items/{product_id}")
async def remove_cart_item(
    product_id: str,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await cart_service.remove_from_cart(db, user.id, product_id)
    return {"success": True}


@router.delete("/cart")
async def clear_cart(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await cart_service.clear_cart(db, user.id)
    return {"success": True}


@router.get("/courses/{product_id}/content", response_model=CourseContent)
async def course_content(
    product_id: str,
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await find_completed_purchase(db, user.id, product_id):
        raise PermissionDeniedError("You have not purchased this course")
    return await course_service.get_course_for_product(db, product_id)
