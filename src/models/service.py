"""Catalog service model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


SERVICE_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class Service(TypedDict):
    """Services table row representation.

    A sellable laundry offering, e.g. "Wash & fold" priced per kg.
    """

    id: UUID
    name: str
    category: str
    unit: str
    price: int
    description: str | None
    active: bool
    created_at: datetime
    updated_at: datetime


class ServiceCreate(TypedDict, total=False):
    """Data required to create a new catalog entry."""

    name: str
    category: str
    unit: str
    price: int
    description: str | None
    active: bool


class ServiceUpdate(TypedDict, total=False):
    """Data that can be updated on a catalog entry."""

    name: str
    category: str
    unit: str
    price: int
    description: str | None
    active: bool
