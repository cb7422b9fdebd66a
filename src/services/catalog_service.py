"""Service catalog business logic."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import Client

from src.api.middleware.error_handler import NotFoundError
from src.core.supabase import get_supabase_client
from src.models.service import SERVICE_IMMUTABLE_FIELDS, Service, ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class ServiceCatalogService:
    """Service for managing the laundry service catalog.

    Catalog entries are the source of the snapshots copied onto order items;
    changing a price here never touches existing orders.
    """

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize catalog service.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    async def list_services(
        self,
        active_only: bool = True,
        category: str | None = None,
        search: str | None = None,
    ) -> list[Service]:
        """List catalog entries.

        Args:
            active_only: If True, only return active services.
            category: Optional category filter.
            search: Optional case-insensitive name fragment.

        Returns:
            list[dict]: Services ordered by category, then name.
        """
        query = self.supabase.table("services").select("*")

        if active_only:
            query = query.eq("active", True)
        if category:
            query = query.eq("category", category)
        if search:
            query = query.ilike("name", f"%{search}%")

        response = query.order("category").order("name").execute()
        return response.data or []

    async def get_categories(self) -> list[str]:
        """Distinct categories of active services, sorted."""
        response = self.supabase.table("services").select("category").eq("active", True).execute()
        return sorted({row["category"] for row in response.data or [] if row.get("category")})

    async def get_service(self, service_id: UUID | str) -> Service:
        """Get a catalog entry by id.

        Raises:
            NotFoundError: If the service does not exist.
        """
        response = (
            self.supabase.table("services")
            .select("*")
            .eq("id", str(service_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"Service {service_id} not found.")
        return response.data[0]

    async def create_service(self, data: ServiceCreate | dict[str, Any]) -> Service:
        """Create a catalog entry.

        Args:
            data: Validated service fields.

        Returns:
            dict: The created service.
        """
        payload = {k: v for k, v in data.items() if k not in SERVICE_IMMUTABLE_FIELDS}
        response = self.supabase.table("services").insert(payload).execute()
        service = response.data[0]
        logger.info("Created service %s (%s)", service["id"], service["name"])
        return service

    async def update_service(self, service_id: UUID | str, data: ServiceUpdate | dict[str, Any]) -> Service:
        """Apply a partial update to a catalog entry.

        Raises:
            NotFoundError: If the service does not exist.
        """
        existing = await self.get_service(service_id)

        changes = {k: v for k, v in data.items() if k not in SERVICE_IMMUTABLE_FIELDS}
        if not changes:
            return existing

        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = (
            self.supabase.table("services")
            .update(changes)
            .eq("id", str(service_id))
            .execute()
        )
        logger.info("Updated service %s fields=%s", service_id, sorted(changes))
        return response.data[0] if response.data else {**existing, **changes}

    async def delete_service(self, service_id: UUID | str) -> None:
        """Delete a catalog entry.

        Order items keep their snapshots, so history is unaffected.

        Raises:
            NotFoundError: If the service does not exist.
        """
        await self.get_service(service_id)
        self.supabase.table("services").delete().eq("id", str(service_id)).execute()
        logger.info("Deleted service %s", service_id)


def get_catalog_service() -> ServiceCatalogService:
    """Get catalog service instance.

    Returns:
        ServiceCatalogService: Catalog service instance.
    """
    return ServiceCatalogService()
