"""Server-side mirror of the browser cart."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.cart_item import CartItem
from storefront.services.catalog_service import get_product


async def list_cart(db: AsyncSession, user_id: str) -> list[CartItem]:
    result = await db.execute(
        select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.created_at)
    )
    return list(result.scalars().all())


async def add_to_cart(db: AsyncSession, user_id: str, product_id: str) -> CartItem:
    """Add a product once; adding it again returns the existing line."""
    result = await db.execute(
        select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    )
    item = result.scalar_one_or_none()
    if item:
        return item

    product = await get_product(db, product_id)
    item = CartItem(
        user_id=user_id,
        product_id=product.id,
        title=product.title,
        price=product.price,
        image_url=product.image_url,
    )
    db.add(item)
    await db.commit()
    return item


async def remove_from_cart(db: AsyncSession, user_id: str, product_id: str) -> None:
    await db.execute(
        delete(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    )
    await db.commit()


async def clear_cart(db: AsyncSession, user_id: str) -> None:
    await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    await db.commit()
