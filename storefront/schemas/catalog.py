"""Catalog, purchase and cart schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    price: float
    image_url: str | None = None
    featured: bool = False
    published: bool = False


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    difficulty_level: str | None = None
    estimated_duration: str | None = None
    prerequisites: str | None = None


class ProductDetail(ProductOut):
    course: CourseOut | None = None


class PurchaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    product_id: str
    amount: float
    status: str
    stripe_session_id: str | None = None
    test_mode: bool | None = None
    created_at: datetime


class CartItemIn(BaseModel):
    product_id: str


class CartItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    title: str
    price: float
    image_url: str | None = None
