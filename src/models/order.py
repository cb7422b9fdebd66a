"""Order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class OrderStatus(str, Enum):
    """Order status values matching the orders.status column."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Fields that an item update payload may never touch
ORDER_ITEM_IMMUTABLE_FIELDS = frozenset({"id", "order_id", "service_id", "created_at"})


class OrderItem(TypedDict):
    """Order item table row representation.

    One catalog line within an order. The service_* columns are snapshots of
    the catalog entry taken when the line was created, so later catalog
    edits never change historical orders.
    """

    id: UUID
    order_id: UUID
    service_id: UUID
    service_name: str
    service_category: str
    service_unit: str
    service_price: int
    quantity: int
    unit_price: int
    total_price: int
    note: str | None
    created_at: datetime
    updated_at: datetime


class Order(TypedDict):
    """Order table row representation.

    total_price is derived: it always equals the sum of total_price over the
    order's items.
    """

    id: UUID
    customer_id: UUID
    created_by: UUID
    status: OrderStatus
    total_price: int
    note: str | None
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderUpdate(TypedDict, total=False):
    """Data that can be updated on an order."""

    status: str
    total_price: int
    note: str | None
    started_at: str | None
    completed_at: str | None
    updated_at: str
