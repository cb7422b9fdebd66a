"""Catalog service Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ServiceCreate(BaseModel):
    """Schema for creating a catalog entry."""

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100, description="Service name")
    category: str = Field(min_length=1, max_length=100, description="Service category")
    unit: str = Field(min_length=1, max_length=50, description="Pricing unit, e.g. kg or piece")
    price: int = Field(ge=0, description="Price per unit in the smallest currency unit")
    description: str | None = Field(default=None, max_length=1000, description="Optional description")
    active: bool = Field(default=True, description="Whether new orders may use this service")


class ServiceUpdate(BaseModel):
    """Schema for updating a catalog entry.

    All fields are optional for partial updates.
    """

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=100)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    unit: str | None = Field(default=None, min_length=1, max_length=50)
    price: int | None = Field(default=None, ge=0)
    description: str | None = Field(default=None, max_length=1000)
    active: bool | None = Field(default=None)

    @model_validator(mode="after")
    def check_not_null(self) -> "ServiceUpdate":
        """Only description may be cleared; the other fields may be omitted but not nulled."""
        for name in ("name", "category", "unit", "price", "active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class ServiceResponse(BaseModel):
    """Schema for catalog entry API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Service unique identifier")
    name: str = Field(description="Service name")
    category: str = Field(description="Service category")
    unit: str = Field(description="Pricing unit")
    price: int = Field(description="Current price per unit")
    description: str | None = Field(default=None, description="Description")
    active: bool = Field(description="Whether the service is available")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")


class ServiceListResponse(BaseModel):
    """Schema for catalog list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[ServiceResponse] = Field(description="Catalog entries")


class CategoryListResponse(BaseModel):
    """Schema for the category list."""

    categories: list[str] = Field(description="Distinct categories of active services")
