"""Product catalog and purchase history queries."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.constants import PURCHASE_COMPLETED
from storefront.exceptions import NotFoundError
from storefront.models.product import Product
from storefront.models.purchase import Purchase


async def get_product(db: AsyncSession, product_id: str) -> Product:
    result = await db.execute(
        select(Product).options(selectinload(Product.course)).where(Product.id == product_id)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


async def get_products(db: AsyncSession, product_ids: Iterable[str]) -> list[Product]:
    ids = list(product_ids)
    if not ids:
        return []
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    return list(result.scalars().all())


async def find_completed_purchase(
    db: AsyncSession, user_id: str, product_id: str
) -> Purchase | None:
    result = await db.execute(
        select(Purchase)
        .where(
            Purchase.user_id == user_id,
            Purchase.product_id == product_id,
            Purchase.status == PURCHASE_COMPLETED,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def completed_product_ids(
    db: AsyncSession, user_id: str, product_ids: Iterable[str]
) -> set[str]:
    """The subset of product_ids the user has already completed a purchase of."""
    ids = list(product_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(Purchase.product_id).where(
            Purchase.user_id == user_id,
            Purchase.product_id.in_(ids),
            Purchase.status == PURCHASE_COMPLETED,
        )
    )
    return set(result.scalars().all())


async def list_user_purchases(db: AsyncSession, user_id: str) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())
