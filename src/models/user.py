"""User model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class UserRole(str, Enum):
    """Identity roles, from least to most privileged."""

    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Account status values."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(TypedDict):
    """Users table row representation.

    Customers, staff and admins share this table; role tells them apart.
    """

    id: UUID
    phone: str
    name: str
    email: str | None
    address: str | None
    note: str | None
    role: UserRole
    status: UserStatus
    is_verified: bool
    created_at: datetime
    updated_at: datetime


class UserCreate(TypedDict, total=False):
    """Data required to create a customer or staff record."""

    phone: str
    name: str
    email: str | None
    address: str | None
    note: str | None
    role: str
    status: str
    is_verified: bool


class UserUpdate(TypedDict, total=False):
    """Data that can be updated on a user record."""

    name: str
    email: str | None
    address: str | None
    note: str | None
    role: str
    status: str
    updated_at: str
