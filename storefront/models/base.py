"""Declarative base for storefront models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all storefront SQLAlchemy models."""

    pass
