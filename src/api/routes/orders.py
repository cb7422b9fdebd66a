"""Order API routes."""

from datetime import date
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import AdminActor, CurrentActor, StaffActor
from src.api.middleware.error_handler import ValidationError
from src.core.config import get_settings
from src.models.order import OrderStatus
from src.schemas.common import Pagination
from src.schemas.order import (
    OrderCreate,
    OrderFilters,
    OrderItemCreate,
    OrderItemUpdate,
    OrderListResponse,
    OrderNoteUpdate,
    OrderResponse,
    OrderSearchResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
)
from src.services.order_service import OrderService, get_order_service
from src.services.order_stats_service import OrderStatsService, get_order_stats_service

router = APIRouter(prefix="/orders", tags=["orders"])

PageQuery = Annotated[int, Query(ge=1, description="Page number, 1-based")]
LimitQuery = Annotated[int | None, Query(ge=1, le=100, description="Results per page")]


def _page_size(limit: int | None) -> int:
    return limit or get_settings().default_page_size


def _check_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationError(
            "start_date must not be after end_date",
            details=[{"loc": ["query", "start_date"], "msg": "must not be after end_date", "type": "value_error"}],
        )


def _order_list(orders: list[dict[str, Any]], total: int, page: int, limit: int) -> OrderListResponse:
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        pagination=Pagination.build(page, limit, total),
    )


# Customer self-service


@router.get("/my-orders", response_model=OrderListResponse)
async def list_my_orders(
    actor: CurrentActor,
    status_filter: Annotated[OrderStatus | None, Query(alias="status", description="Filter by status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List the caller's own orders, newest first."""
    limit = _page_size(limit)
    orders, total = await order_service.list_orders_by_customer(
        actor.user_id, status=status_filter, page=page, limit=limit
    )
    return _order_list(orders, total, page, limit)


@router.get("/my-orders/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: UUID,
    actor: CurrentActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get one of the caller's own orders.

    Orders belonging to someone else are reported as not found.
    """
    order = await order_service.get_customer_order(order_id, actor.user_id)
    return OrderResponse.model_validate(order)


# Staff and admin


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Create an order for a customer.

    The customer is given by id, or by phone and name; an unknown phone
    creates a minimal customer record.
    """
    order = await order_service.create_order(data, created_by=actor.user_id, role=actor.role)
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    actor: StaffActor,
    status_filter: Annotated[OrderStatus | None, Query(alias="status", description="Filter by status")] = None,
    customer_id: Annotated[UUID | None, Query(description="Filter by customer")] = None,
    created_by: Annotated[UUID | None, Query(description="Filter by creating staff")] = None,
    customer_phone: Annotated[str | None, Query(description="Filter by customer phone")] = None,
    start_date: Annotated[date | None, Query(description="Created on or after this day")] = None,
    end_date: Annotated[date | None, Query(description="Created on or before this day")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List all orders with optional filters, newest first."""
    _check_date_range(start_date, end_date)
    limit = _page_size(limit)
    filters = OrderFilters(
        status=status_filter,
        customer_id=customer_id,
        created_by=created_by,
        customer_phone=customer_phone,
        start_date=start_date,
        end_date=end_date,
    )
    orders, total = await order_service.list_orders(filters, page=page, limit=limit)
    return _order_list(orders, total, page, limit)


@router.get("/handled", response_model=OrderListResponse)
async def list_handled_orders(
    actor: StaffActor,
    status_filter: Annotated[OrderStatus | None, Query(alias="status", description="Filter by status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List orders created by the caller."""
    limit = _page_size(limit)
    orders, total = await order_service.list_orders_by_staff(
        actor.user_id, status=status_filter, page=page, limit=limit
    )
    return _order_list(orders, total, page, limit)


@router.get("/search", response_model=OrderSearchResponse)
async def search_orders_by_phone(
    actor: StaffActor,
    phone: Annotated[str, Query(min_length=6, max_length=20, description="Customer phone")],
    status_filter: Annotated[OrderStatus | None, Query(alias="status", description="Filter by status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
    order_service: OrderService = Depends(get_order_service),
) -> OrderSearchResponse:
    """Find a customer by phone and list their orders.

    An unknown phone returns an empty page with customer set to null.
    """
    limit = _page_size(limit)
    customer, orders, total = await order_service.search_orders_by_phone(
        phone, status=status_filter, page=page, limit=limit
    )
    return OrderSearchResponse(
        customer=customer,
        items=[OrderResponse.model_validate(order) for order in orders],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    actor: AdminActor,
    start_date: Annotated[date | None, Query(description="First day included")] = None,
    end_date: Annotated[date | None, Query(description="Last day included")] = None,
    stats_service: OrderStatsService = Depends(get_order_stats_service),
) -> OrderStatsResponse:
    """Order statistics for the admin dashboard."""
    _check_date_range(start_date, end_date)
    stats = await stats_service.get_order_stats(start_date=start_date, end_date=end_date)
    return OrderStatsResponse.model_validate(stats)


@router.get("/customers/{customer_id}", response_model=OrderListResponse)
async def list_customer_orders(
    customer_id: UUID,
    actor: StaffActor,
    status_filter: Annotated[OrderStatus | None, Query(alias="status", description="Filter by status")] = None,
    page: PageQuery = 1,
    limit: LimitQuery = None,
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List one customer's orders."""
    limit = _page_size(limit)
    orders, total = await order_service.list_orders_by_customer(
        customer_id, status=status_filter, page=page, limit=limit
    )
    return _order_list(orders, total, page, limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get an order with its items."""
    order = await order_service.get_order(order_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order_note(
    order_id: UUID,
    data: OrderNoteUpdate,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Update an order's note.

    Other fields in the body are ignored.
    """
    order = await order_service.update_order_note(order_id, data.note, role=actor.role)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Move an order to a new status."""
    order = await order_service.update_order_status(order_id, data.status, role=actor.role)
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order(
    order_id: UUID,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> None:
    """Delete an order and its items."""
    await order_service.delete_order(order_id, role=actor.role)


@router.post("/{order_id}/recalculate", response_model=OrderResponse)
async def recalculate_order_total(
    order_id: UUID,
    actor: AdminActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Recompute an order's total from its items."""
    order = await order_service.recalculate_order_total(order_id)
    return OrderResponse.model_validate(order)


# Items


@router.post("/{order_id}/items", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def add_order_item(
    order_id: UUID,
    data: OrderItemCreate,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Add a line to an order. Returns the whole updated order."""
    order = await order_service.add_order_item(order_id, data, role=actor.role)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/items/{item_id}", response_model=OrderResponse)
async def update_order_item(
    order_id: UUID,
    item_id: UUID,
    data: OrderItemUpdate,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Update quantity, unit_price or note of a line. Returns the whole updated order."""
    order = await order_service.update_order_item(
        order_id,
        item_id,
        data.model_dump(exclude_unset=True),
        role=actor.role,
    )
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}/items/{item_id}", response_model=OrderResponse)
async def delete_order_item(
    order_id: UUID,
    item_id: UUID,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Remove a line from an order. Returns the whole updated order."""
    order = await order_service.delete_order_item(order_id, item_id, role=actor.role)
    return OrderResponse.model_validate(order)
