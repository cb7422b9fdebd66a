"""Order Pydantic schemas for API request/response models.

Request models validate shape at the boundary, before any store access.
Unknown fields (including immutable ones such as order_id or customer_id on
update payloads) are ignored rather than applied.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.order import OrderStatus
from src.schemas.common import Pagination
from src.schemas.user import UserResponse, UserSummary

ORDER_NOTE_MAX_LENGTH = 500
ITEM_NOTE_MAX_LENGTH = 200
MAX_ITEM_QUANTITY = 10_000

# Loose shape check only; normalization to E.164 happens in UserService
PHONE_PATTERN = r"^\+?[0-9][0-9\s\-().]{6,19}$"


class OrderItemCreate(BaseModel):
    """One requested line when creating an order or adding an item."""

    model_config = ConfigDict(extra="ignore")

    service_id: UUID = Field(description="Catalog service to order")
    quantity: int = Field(ge=1, le=MAX_ITEM_QUANTITY, description="Number of units")
    unit_price: int | None = Field(
        default=None,
        ge=0,
        description="Charged price per unit; defaults to the catalog price",
    )
    note: str | None = Field(default=None, max_length=ITEM_NOTE_MAX_LENGTH, description="Line note")


class OrderCreate(BaseModel):
    """Schema for creating an order on behalf of a customer.

    The customer is given either by id or by contact data; contact data
    resolves to an existing customer or creates a minimal one.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    customer_id: UUID | None = Field(default=None, description="Existing customer id")
    customer_phone: str | None = Field(default=None, pattern=PHONE_PATTERN, description="Customer phone")
    customer_name: str | None = Field(default=None, min_length=2, max_length=100, description="Customer name")
    customer_address: str | None = Field(default=None, max_length=500, description="Customer address")
    items: list[OrderItemCreate] = Field(min_length=1, description="At least one line")
    note: str | None = Field(default=None, max_length=ORDER_NOTE_MAX_LENGTH, description="Order note")

    @model_validator(mode="after")
    def check_customer_reference(self) -> "OrderCreate":
        """Require either a customer id or phone plus name."""
        if self.customer_id is None and not (self.customer_phone and self.customer_name):
            raise ValueError("Provide customer_id, or customer_phone and customer_name")
        return self


class OrderNoteUpdate(BaseModel):
    """Schema for PUT /orders/{id}. Only the note is mutable."""

    model_config = ConfigDict(extra="ignore")

    note: str | None = Field(default=None, max_length=ORDER_NOTE_MAX_LENGTH, description="New note")


class OrderStatusUpdate(BaseModel):
    """Schema for PATCH /orders/{id}/status."""

    status: OrderStatus = Field(description="Target status")


class OrderItemUpdate(BaseModel):
    """Schema for updating an order line.

    Only quantity, unit_price and note are accepted; any subset may be sent.
    """

    model_config = ConfigDict(extra="ignore")

    quantity: int | None = Field(default=None, ge=1, le=MAX_ITEM_QUANTITY)
    unit_price: int | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=ITEM_NOTE_MAX_LENGTH)

    @model_validator(mode="after")
    def check_not_null(self) -> "OrderItemUpdate":
        """quantity and unit_price may be omitted but not nulled."""
        for name in ("quantity", "unit_price"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class OrderFilters(BaseModel):
    """Filters for listing orders."""

    status: OrderStatus | None = None
    customer_id: UUID | None = None
    created_by: UUID | None = None
    customer_phone: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class OrderItemResponse(BaseModel):
    """Schema for an order line in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order item id")
    order_id: UUID = Field(description="Owning order")
    service_id: UUID = Field(description="Catalog entry the line was created from")
    service_name: str = Field(description="Service name at order time")
    service_category: str = Field(description="Service category at order time")
    service_unit: str = Field(description="Service unit at order time")
    service_price: int = Field(description="Catalog price at order time")
    quantity: int = Field(description="Number of units")
    unit_price: int = Field(description="Charged price per unit")
    total_price: int = Field(description="quantity * unit_price")
    note: str | None = Field(default=None, description="Line note")
    created_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)


class OrderResponse(BaseModel):
    """Schema for the order aggregate: order, items and party summaries."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    customer_id: UUID = Field(description="Customer identity")
    created_by: UUID = Field(description="Staff identity that created the order")
    status: OrderStatus = Field(description="Order status")
    total_price: int = Field(description="Sum of line totals")
    note: str | None = Field(default=None, description="Order note")
    started_at: datetime | None = Field(default=None, description="When processing started")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")
    items: list[OrderItemResponse] = Field(default_factory=list, description="Order lines")
    customer: UserSummary | None = Field(default=None, description="Customer display fields")
    staff: UserSummary | None = Field(default=None, description="Creator display fields")


class OrderListResponse(BaseModel):
    """Schema for paginated order lists."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="Orders, newest first")
    pagination: Pagination = Field(description="Page metadata")


class OrderSearchResponse(OrderListResponse):
    """Orders found by customer phone, with the matched customer."""

    customer: UserSummary | None = Field(default=None, description="Matched customer or null")


class CustomerStats(BaseModel):
    """Order totals of one customer."""

    total_orders: int = 0
    completed_orders: int = 0
    total_spent: int = Field(default=0, description="Sum of completed order totals")


class CustomerHistoryResponse(UserResponse):
    """Customer record with every order they placed, newest first."""

    stats: CustomerStats = Field(default_factory=CustomerStats)
    order_history: list[OrderResponse] = Field(default_factory=list)


class StatusBreakdown(BaseModel):
    """Order count and revenue for one status."""

    status: OrderStatus
    count: int = 0
    total_revenue: int = 0


class RevenueSummary(BaseModel):
    """Revenue over completed orders."""

    total_revenue: int = 0
    total_orders: int = 0
    avg_order_value: float = 0.0


class DailyRevenue(BaseModel):
    """Completed-order revenue for one calendar day."""

    date: date
    count: int = 0
    revenue: int = 0


class TopCustomer(BaseModel):
    """A customer ranked by completed-order spend."""

    customer_id: UUID
    name: str
    phone: str
    total_orders: int = 0
    total_spent: int = 0


class OrderStatsResponse(BaseModel):
    """Reporting aggregates over an optional date range."""

    by_status: list[StatusBreakdown] = Field(default_factory=list)
    revenue: RevenueSummary = Field(default_factory=RevenueSummary)
    daily: list[DailyRevenue] = Field(default_factory=list)
    top_customers: list[TopCustomer] = Field(default_factory=list)
