"""User Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from src.models.user import UserRole, UserStatus
from src.schemas.common import Pagination


class UserSummary(BaseModel):
    """Display fields of an identity embedded in order responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Identity id")
    name: str = Field(description="Display name")
    phone: str = Field(description="Phone number in E.164 format")
    address: str | None = Field(default=None, description="Address, customers only")


class UserResponse(BaseModel):
    """Schema for a full identity record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Identity id")
    phone: str = Field(description="Phone number in E.164 format")
    name: str = Field(description="Display name")
    email: str | None = Field(default=None, description="Email address")
    address: str | None = Field(default=None, description="Address")
    note: str | None = Field(default=None, description="Staff note about the customer")
    role: str = Field(description="customer, staff or admin")
    status: str = Field(description="active or suspended")
    is_verified: bool = Field(default=False, description="Whether the phone was verified")
    created_at: datetime = Field(description="Creation timestamp")


class UserListResponse(BaseModel):
    """Schema for paginated identity lists."""

    items: list[UserResponse] = Field(description="Identities, newest first")
    pagination: Pagination = Field(description="Page metadata")


class CustomerCreate(BaseModel):
    """Schema for registering a customer at the counter."""

    model_config = ConfigDict(str_strip_whitespace=True)

    phone: str = Field(min_length=6, max_length=20, description="Phone number in any accepted format")
    name: str = Field(min_length=1, max_length=100, description="Display name")
    email: EmailStr | None = Field(default=None, description="Email address")
    address: str | None = Field(default=None, max_length=255, description="Address")
    note: str | None = Field(default=None, max_length=500, description="Staff note")


class CustomerUpdate(BaseModel):
    """Schema for editing a customer's contact fields.

    Phone, role and status are not editable here; unknown fields are ignored.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = Field(default=None)
    address: str | None = Field(default=None, max_length=255)
    note: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_not_null(self) -> "CustomerUpdate":
        """name may be omitted but not nulled."""
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self


class StaffCreate(BaseModel):
    """Schema for registering a staff identity."""

    model_config = ConfigDict(str_strip_whitespace=True)

    phone: str = Field(min_length=6, max_length=20, description="Phone number in any accepted format")
    name: str = Field(min_length=1, max_length=100, description="Display name")
    email: EmailStr | None = Field(default=None, description="Email address")


class UserRoleUpdate(BaseModel):
    """Schema for changing an identity's role."""

    role: UserRole = Field(description="New role")


class UserStatusUpdate(BaseModel):
    """Schema for activating or suspending an identity."""

    status: UserStatus = Field(description="New account status")
