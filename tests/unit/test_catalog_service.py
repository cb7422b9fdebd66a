"""Unit tests for ServiceCatalogService."""

import pytest

from fakes import FakeSupabaseClient, seed_service
from src.api.middleware.error_handler import NotFoundError
from src.services.catalog_service import ServiceCatalogService


@pytest.fixture
def catalog(fake_db: FakeSupabaseClient) -> ServiceCatalogService:
    """Create ServiceCatalogService backed by the in-memory store."""
    return ServiceCatalogService(supabase_client=fake_db)


class TestListServices:
    """Tests for list_services and get_categories."""

    @pytest.mark.asyncio
    async def test_active_only_by_default(self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient) -> None:
        seed_service(fake_db, name="Wash & fold")
        seed_service(fake_db, name="Retired", active=False)

        services = await catalog.list_services()

        assert [s["name"] for s in services] == ["Wash & fold"]

    @pytest.mark.asyncio
    async def test_sorted_by_category_then_name(
        self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_service(fake_db, name="Ironing", category="Ironing")
        seed_service(fake_db, name="Wash & fold", category="Washing")
        seed_service(fake_db, name="Express wash", category="Washing")

        services = await catalog.list_services(active_only=False)

        assert [s["name"] for s in services] == ["Ironing", "Express wash", "Wash & fold"]

    @pytest.mark.asyncio
    async def test_filters(self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient) -> None:
        seed_service(fake_db, name="Shirt dry cleaning", category="Dry cleaning")
        seed_service(fake_db, name="Suit dry cleaning", category="Dry cleaning")
        seed_service(fake_db, name="Wash & fold", category="Washing")

        by_category = await catalog.list_services(category="Dry cleaning")
        by_search = await catalog.list_services(search="SUIT")

        assert len(by_category) == 2
        assert [s["name"] for s in by_search] == ["Suit dry cleaning"]

    @pytest.mark.asyncio
    async def test_categories_are_distinct_and_active(
        self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_service(fake_db, name="A", category="Washing")
        seed_service(fake_db, name="B", category="Washing")
        seed_service(fake_db, name="C", category="Ironing")
        seed_service(fake_db, name="D", category="Retired", active=False)

        assert await catalog.get_categories() == ["Ironing", "Washing"]


class TestServiceWrites:
    """Tests for get/create/update/delete."""

    @pytest.mark.asyncio
    async def test_get_missing_service(self, catalog: ServiceCatalogService) -> None:
        with pytest.raises(NotFoundError):
            await catalog.get_service("550e8400-e29b-41d4-a716-446655440000")

    @pytest.mark.asyncio
    async def test_create_ignores_identity_fields(self, catalog: ServiceCatalogService) -> None:
        service = await catalog.create_service(
            {
                "id": "forced-id",
                "name": "Ironing",
                "category": "Ironing",
                "unit": "piece",
                "price": 10000,
                "active": True,
            }
        )

        assert service["id"] != "forced-id"
        assert service["price"] == 10000

    @pytest.mark.asyncio
    async def test_update_strips_immutable_fields(
        self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient
    ) -> None:
        original = seed_service(fake_db, price=15000)

        updated = await catalog.update_service(
            original["id"],
            {"price": 18000, "id": "other", "created_at": "2000-01-01T00:00:00+00:00"},
        )

        assert updated["id"] == original["id"]
        assert updated["price"] == 18000
        assert updated["created_at"] == original["created_at"]

    @pytest.mark.asyncio
    async def test_update_missing_service(self, catalog: ServiceCatalogService) -> None:
        with pytest.raises(NotFoundError):
            await catalog.update_service("550e8400-e29b-41d4-a716-446655440000", {"price": 1})

    @pytest.mark.asyncio
    async def test_delete_is_hard(self, catalog: ServiceCatalogService, fake_db: FakeSupabaseClient) -> None:
        service = seed_service(fake_db)

        await catalog.delete_service(service["id"])

        assert fake_db.rows("services") == []
        with pytest.raises(NotFoundError):
            await catalog.delete_service(service["id"])
