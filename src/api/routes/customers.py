"""Customer management API routes for staff and admins."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import StaffActor
from src.api.middleware.error_handler import NotFoundError
from src.core.config import get_settings
from src.schemas.common import Pagination
from src.schemas.order import CustomerHistoryResponse
from src.schemas.user import CustomerCreate, CustomerUpdate, UserListResponse, UserResponse
from src.services.order_service import OrderService, get_order_service
from src.services.user_service import UserService, get_user_service

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/search", response_model=UserResponse)
async def find_customer_by_phone(
    actor: StaffActor,
    phone: Annotated[str, Query(min_length=6, max_length=20, description="Customer phone")],
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Look up a customer by phone before taking an order."""
    customer = await user_service.find_customer_by_phone(phone)
    if not customer:
        raise NotFoundError("Customer not found.")
    return UserResponse(**customer)


@router.get("", response_model=UserListResponse)
async def list_customers(
    actor: StaffActor,
    search: Annotated[str | None, Query(max_length=100, description="Phone or name contains")] = None,
    page: Annotated[int, Query(ge=1, description="Page number, 1-based")] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100, description="Results per page")] = None,
    user_service: UserService = Depends(get_user_service),
) -> UserListResponse:
    """List customers, newest first."""
    limit = limit or get_settings().default_page_size
    customers, total = await user_service.list_customers(search=search, page=page, limit=limit)
    return UserListResponse(
        items=[UserResponse(**c) for c in customers],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    actor: StaffActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Register a customer. The phone must not belong to any identity yet."""
    customer = await user_service.create_customer(data.model_dump())
    return UserResponse(**customer)


@router.get("/{customer_id}", response_model=UserResponse)
async def get_customer(
    customer_id: UUID,
    actor: StaffActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Get a customer by id."""
    customer = await user_service.get_customer(customer_id)
    return UserResponse(**customer)


@router.put("/{customer_id}", response_model=UserResponse)
async def update_customer(
    customer_id: UUID,
    data: CustomerUpdate,
    actor: StaffActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Update a customer's name, email, address or note."""
    customer = await user_service.update_customer(customer_id, data.model_dump(exclude_unset=True))
    return UserResponse(**customer)


@router.get("/{customer_id}/history", response_model=CustomerHistoryResponse)
async def get_customer_history(
    customer_id: UUID,
    actor: StaffActor,
    order_service: OrderService = Depends(get_order_service),
) -> CustomerHistoryResponse:
    """Get a customer with all of their orders and spending totals."""
    history = await order_service.get_customer_history(customer_id)
    return CustomerHistoryResponse.model_validate(history)
