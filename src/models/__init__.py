"""Database model type definitions."""

from src.models.order import Order, OrderItem, OrderStatus
from src.models.service import Service
from src.models.user import User, UserRole, UserStatus

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatus",
    "Service",
    "User",
    "UserRole",
    "UserStatus",
]
