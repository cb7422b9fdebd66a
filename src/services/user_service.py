"""Identity store: user lookups, customer find-or-create and account management."""

import logging
import re
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import ConflictError, InvalidStateError, NotFoundError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.user import User, UserCreate, UserRole, UserStatus, UserUpdate

logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")
_SEARCH_UNSAFE = re.compile(r"[,()%*\\]")

# Contact fields staff may edit on a customer record
CUSTOMER_MUTABLE_FIELDS = frozenset({"name", "email", "address", "note"})


def normalize_phone(phone: str, default_country_code: str = "+84") -> str:
    """Convert a phone number to E.164.

    0901234567 -> +84901234567, 84901234567 -> +84901234567,
    +84901234567 is returned unchanged.
    """
    formatted = _PHONE_SEPARATORS.sub("", phone)

    if formatted.startswith("+"):
        return formatted

    country_digits = default_country_code.lstrip("+")
    if formatted.startswith(country_digits) and len(formatted) > 10:
        return "+" + formatted

    if formatted.startswith("0"):
        return default_country_code + formatted[1:]

    return default_country_code + formatted


class UserService:
    """Service for reading, resolving and managing identities."""

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize user service.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client
        self.settings = get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    def normalize(self, phone: str) -> str:
        """Normalize a phone number using the configured country code."""
        return normalize_phone(phone, self.settings.default_country_code)

    async def get_user(self, user_id: UUID | str) -> User | None:
        """Get a user by id.

        Args:
            user_id: The identity id.

        Returns:
            dict | None: The user row or None if not found.
        """
        response = (
            self.supabase.table("users")
            .select("*")
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def find_by_phone(self, phone: str) -> User | None:
        """Find a user by phone number in any accepted format."""
        response = (
            self.supabase.table("users")
            .select("*")
            .eq("phone", self.normalize(phone))
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_users_by_ids(self, user_ids: list[str]) -> dict[str, User]:
        """Fetch several users at once.

        Returns:
            dict: Users keyed by id; unknown ids are absent.
        """
        unique_ids = sorted({str(user_id) for user_id in user_ids if user_id})
        if not unique_ids:
            return {}

        response = (
            self.supabase.table("users")
            .select("id, name, phone, address, role")
            .in_("id", unique_ids)
            .execute()
        )
        return {str(row["id"]): row for row in response.data or []}

    async def find_or_create_customer(
        self,
        phone: str,
        name: str,
        address: str | None = None,
    ) -> User:
        """Resolve a customer from contact data, creating a minimal record if needed.

        An existing customer has name and address refreshed when they differ.
        Identity fields (id, phone, role) are never changed.

        Args:
            phone: Customer phone in any accepted format.
            name: Customer display name.
            address: Optional address.

        Returns:
            dict: The customer row.

        Raises:
            InvalidStateError: If the phone belongs to a staff or admin identity.
        """
        user = await self.find_by_phone(phone)

        if user:
            if user.get("role") != UserRole.CUSTOMER.value:
                raise InvalidStateError("Phone number belongs to a staff account.")

            changes: dict[str, Any] = {}
            if name and name != user.get("name"):
                changes["name"] = name
            if address and address != user.get("address"):
                changes["address"] = address

            if not changes:
                return user

            changes["updated_at"] = datetime.now(timezone.utc).isoformat()
            response = (
                self.supabase.table("users")
                .update(changes)
                .eq("id", str(user["id"]))
                .execute()
            )
            logger.info("Refreshed customer %s display fields", user["id"])
            return response.data[0] if response.data else {**user, **changes}

        customer_data: UserCreate = {
            "phone": self.normalize(phone),
            "name": name,
            "address": address or None,
            "role": UserRole.CUSTOMER.value,
            "status": UserStatus.ACTIVE.value,
            "is_verified": False,
        }
        response = self.supabase.table("users").insert(customer_data).execute()
        customer = response.data[0]
        logger.info("Created customer %s", customer["id"])
        return customer

    # ------------------------------------------------------------------
    # Customer and user management
    # ------------------------------------------------------------------

    async def find_customer_by_phone(self, phone: str) -> User | None:
        """Find a customer by phone; staff and admin identities are not returned."""
        user = await self.find_by_phone(phone)
        if not user or user.get("role") != UserRole.CUSTOMER.value:
            return None
        return user

    async def list_users(
        self,
        search: str | None = None,
        role: UserRole | None = None,
        status: UserStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[User], int]:
        """List identities newest first.

        Args:
            search: Case-insensitive fragment of phone, name or email.
            role: Optional role filter.
            status: Optional account status filter.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Tuple of (users on this page, total matching count).
        """
        query = self.supabase.table("users").select("*", count="exact")

        if role is not None:
            query = query.eq("role", UserRole(role).value)
        if status is not None:
            query = query.eq("status", UserStatus(status).value)

        # Characters that would break the or filter syntax are dropped
        term = _SEARCH_UNSAFE.sub("", search or "").strip()
        if term:
            columns = ("phone", "name") if role == UserRole.CUSTOMER else ("phone", "name", "email")
            query = query.or_(",".join(f"{column}.ilike.%{term}%" for column in columns))

        offset = (page - 1) * limit
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()

        users = response.data or []
        total = response.count if response.count is not None else len(users)
        return users, total

    async def list_customers(
        self,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[User], int]:
        """List customers newest first, optionally matching phone or name."""
        return await self.list_users(search=search, role=UserRole.CUSTOMER, page=page, limit=limit)

    async def require_user(self, user_id: UUID | str) -> User:
        """Get a user by id.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self.get_user(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found.")
        return user

    async def get_customer(self, customer_id: UUID | str) -> User:
        """Get a customer by id.

        Raises:
            NotFoundError: If no customer has this id, including staff and admin ids.
        """
        user = await self.get_user(customer_id)
        if not user or user.get("role") != UserRole.CUSTOMER.value:
            raise NotFoundError(f"Customer {customer_id} not found.")
        return user

    async def _create_identity(self, data: dict[str, Any], role: UserRole) -> User:
        phone = self.normalize(data["phone"])
        if await self.find_by_phone(phone):
            raise ConflictError("Phone number already registered.")

        user_data: UserCreate = {
            "phone": phone,
            "name": data["name"],
            "email": data.get("email") or None,
            "address": data.get("address") or None,
            "note": data.get("note") or None,
            "role": role.value,
            "status": UserStatus.ACTIVE.value,
            "is_verified": False,
        }
        response = self.supabase.table("users").insert(user_data).execute()
        user = response.data[0]
        logger.info("Created %s %s", role.value, user["id"])
        return user

    async def create_customer(self, data: dict[str, Any]) -> User:
        """Register a customer with full contact details.

        Raises:
            ConflictError: If the phone is already registered to any identity.
        """
        return await self._create_identity(data, UserRole.CUSTOMER)

    async def create_staff(self, data: dict[str, Any]) -> User:
        """Register a staff identity. Sign-in is handled by the identity provider.

        Raises:
            ConflictError: If the phone is already registered to any identity.
        """
        return await self._create_identity({**data, "address": None, "note": None}, UserRole.STAFF)

    async def _update_user(self, user_id: UUID | str, changes: UserUpdate) -> User:
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = (
            self.supabase.table("users")
            .update(changes)
            .eq("id", str(user_id))
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"User {user_id} not found.")
        return response.data[0]

    async def update_customer(self, customer_id: UUID | str, data: dict[str, Any]) -> User:
        """Update a customer's contact fields.

        Only name, email, address and note are applied; phone, role and
        status are never changed here.

        Raises:
            NotFoundError: If no customer has this id.
        """
        customer = await self.get_customer(customer_id)
        changes: UserUpdate = {
            key: value for key, value in data.items() if key in CUSTOMER_MUTABLE_FIELDS
        }
        if not changes:
            return customer
        return await self._update_user(customer_id, changes)

    def _ensure_not_self(self, user_id: UUID | str, acting_user_id: UUID | str | None, action: str) -> None:
        if acting_user_id is not None and str(user_id) == str(acting_user_id):
            raise InvalidStateError(f"Admins cannot {action} their own account.")

    async def update_user_role(
        self,
        user_id: UUID | str,
        role: UserRole,
        acting_user_id: UUID | str | None = None,
    ) -> User:
        """Change an identity's role.

        Raises:
            NotFoundError: If the user does not exist.
            InvalidStateError: If an admin targets their own account.
        """
        self._ensure_not_self(user_id, acting_user_id, "change the role of")
        user = await self.require_user(user_id)
        role = UserRole(role)
        if user.get("role") == role.value:
            return user

        updated = await self._update_user(user_id, {"role": role.value})
        logger.info("Changed role of user %s: %s -> %s", user_id, user.get("role"), role.value)
        return updated

    async def update_user_status(
        self,
        user_id: UUID | str,
        status: UserStatus,
        acting_user_id: UUID | str | None = None,
    ) -> User:
        """Activate or suspend an identity.

        A suspended identity is refused by every authenticated endpoint and
        cannot have new orders placed for it.

        Raises:
            NotFoundError: If the user does not exist.
            InvalidStateError: If an admin targets their own account.
        """
        self._ensure_not_self(user_id, acting_user_id, "change the status of")
        user = await self.require_user(user_id)
        status = UserStatus(status)
        if user.get("status") == status.value:
            return user

        updated = await self._update_user(user_id, {"status": status.value})
        logger.info("Changed status of user %s to %s", user_id, status.value)
        return updated

    async def delete_user(self, user_id: UUID | str, acting_user_id: UUID | str | None = None) -> None:
        """Delete an identity that no order references.

        Raises:
            NotFoundError: If the user does not exist.
            InvalidStateError: If an admin targets their own account, or any
                order names the user as customer or creator.
        """
        self._ensure_not_self(user_id, acting_user_id, "delete")
        await self.require_user(user_id)

        response = (
            self.supabase.table("orders")
            .select("id", count="exact")
            .or_(f"customer_id.eq.{user_id},created_by.eq.{user_id}")
            .limit(1)
            .execute()
        )
        if response.count or response.data:
            raise InvalidStateError("Cannot delete a user with existing orders. Suspend the account instead.")

        self.supabase.table("users").delete().eq("id", str(user_id)).execute()
        logger.info("Deleted user %s", user_id)


def get_user_service() -> UserService:
    """Get user service instance.

    Returns:
        UserService: User service instance.
    """
    return UserService()
