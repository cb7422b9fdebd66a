"""User API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import AdminActor, CurrentActor
from src.api.middleware.error_handler import NotFoundError
from src.core.config import get_settings
from src.models.user import UserRole, UserStatus
from src.schemas.common import Pagination
from src.schemas.user import StaffCreate, UserListResponse, UserResponse, UserRoleUpdate, UserStatusUpdate
from src.services.user_service import UserService, get_user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="Returns the authenticated caller's identity record.",
)
async def get_me(
    actor: CurrentActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Get the caller's identity record.

    Args:
        actor: The resolved caller.

    Returns:
        UserResponse: The caller's record.
    """
    user = await user_service.get_user(actor.user_id)
    if not user:
        raise NotFoundError("User not found.")
    return UserResponse(**user)


# Admin account management


@router.get("", response_model=UserListResponse)
async def list_users(
    actor: AdminActor,
    search: Annotated[str | None, Query(max_length=100, description="Phone, name or email contains")] = None,
    role: Annotated[UserRole | None, Query(description="Filter by role")] = None,
    status_filter: Annotated[UserStatus | None, Query(alias="status", description="Filter by status")] = None,
    page: Annotated[int, Query(ge=1, description="Page number, 1-based")] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100, description="Results per page")] = None,
    user_service: UserService = Depends(get_user_service),
) -> UserListResponse:
    """List all identities, newest first."""
    limit = limit or get_settings().default_page_size
    users, total = await user_service.list_users(
        search=search, role=role, status=status_filter, page=page, limit=limit
    )
    return UserListResponse(
        items=[UserResponse(**u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("/staff", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(
    data: StaffCreate,
    actor: AdminActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Register a staff identity."""
    staff = await user_service.create_staff(data.model_dump())
    return UserResponse(**staff)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    actor: AdminActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Get any identity by id."""
    user = await user_service.require_user(user_id)
    return UserResponse(**user)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    actor: AdminActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Change an identity's role. Admins cannot change their own role."""
    user = await user_service.update_user_role(user_id, data.role, acting_user_id=actor.user_id)
    return UserResponse(**user)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    actor: AdminActor,
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Activate or suspend an identity. Admins cannot suspend themselves."""
    user = await user_service.update_user_status(user_id, data.status, acting_user_id=actor.user_id)
    return UserResponse(**user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    actor: AdminActor,
    user_service: UserService = Depends(get_user_service),
) -> None:
    """Delete an identity that no order references."""
    await user_service.delete_user(user_id, acting_user_id=actor.user_id)
