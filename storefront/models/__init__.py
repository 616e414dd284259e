"""SQLAlchemy models for the storefront (PostgreSQL)."""

from .base import Base
from .profile import Profile
from .product import Product
from .course import Course, Lesson, Section
from .purchase import Purchase
from .cart_item import CartItem
from .coaching import CoachingService, CoachingSession, CoachingSubscriptionPlan
from .subscription import UserSubscription

__all__ = [
    "Base",
    "Profile",
    "Product",
    "Course",
    "Section",
    "Lesson",
    "Purchase",
    "CartItem",
    "CoachingService",
    "CoachingSubscriptionPlan",
    "CoachingSession",
    "UserSubscription",
]
