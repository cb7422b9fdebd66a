"""Unit tests for UserService and phone normalization."""

import pytest

from fakes import FakeSupabaseClient, seed_user
from src.api.middleware.error_handler import ConflictError, InvalidStateError, NotFoundError
from src.models.user import UserRole, UserStatus
from src.services.user_service import UserService, normalize_phone


@pytest.fixture
def user_service(fake_db: FakeSupabaseClient) -> UserService:
    """Create UserService backed by the in-memory store."""
    return UserService(supabase_client=fake_db)


class TestNormalizePhone:
    """Tests for normalize_phone."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("0901234567", "+84901234567"),
            ("84901234567", "+84901234567"),
            ("+84901234567", "+84901234567"),
            ("090 123 4567", "+84901234567"),
            ("(090) 123-4567", "+84901234567"),
            ("901234567", "+84901234567"),
        ],
    )
    def test_formats(self, raw: str, expected: str) -> None:
        assert normalize_phone(raw) == expected

    def test_other_country_code(self) -> None:
        assert normalize_phone("0412345678", "+61") == "+61412345678"


class TestLookups:
    """Tests for get_user, find_by_phone and get_users_by_ids."""

    @pytest.mark.asyncio
    async def test_get_user_returns_none_when_missing(self, user_service: UserService) -> None:
        assert await user_service.get_user("550e8400-e29b-41d4-a716-446655440000") is None

    @pytest.mark.asyncio
    async def test_find_by_phone_accepts_local_format(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        customer = seed_user(fake_db, phone="+84901234567")

        found = await user_service.find_by_phone("0901234567")

        assert found is not None
        assert found["id"] == customer["id"]

    @pytest.mark.asyncio
    async def test_get_users_by_ids_skips_unknown(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        a = seed_user(fake_db, phone="+84900000001")
        b = seed_user(fake_db, phone="+84900000002")

        users = await user_service.get_users_by_ids([a["id"], b["id"], a["id"], "missing"])

        assert set(users) == {a["id"], b["id"]}

    @pytest.mark.asyncio
    async def test_get_users_by_ids_empty(self, user_service: UserService) -> None:
        assert await user_service.get_users_by_ids([]) == {}


class TestFindOrCreateCustomer:
    """Tests for find_or_create_customer."""

    @pytest.mark.asyncio
    async def test_creates_minimal_customer(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        customer = await user_service.find_or_create_customer("0912345678", "Tran Thi B", "12 Le Loi")

        assert customer["phone"] == "+84912345678"
        assert customer["role"] == "customer"
        assert customer["is_verified"] is False
        assert len(fake_db.rows("users")) == 1

    @pytest.mark.asyncio
    async def test_reuses_existing_customer(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        existing = seed_user(fake_db, phone="+84912345678", name="Tran Thi B")

        customer = await user_service.find_or_create_customer("0912345678", "Tran Thi B")

        assert customer["id"] == existing["id"]
        assert len(fake_db.rows("users")) == 1

    @pytest.mark.asyncio
    async def test_refreshes_display_fields_only(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        existing = seed_user(fake_db, phone="+84912345678", name="Old Name", address="Old")

        customer = await user_service.find_or_create_customer("+84912345678", "New Name", "New")

        assert customer["id"] == existing["id"]
        assert customer["name"] == "New Name"
        assert customer["address"] == "New"
        assert customer["phone"] == "+84912345678"
        assert customer["role"] == "customer"

    @pytest.mark.asyncio
    async def test_rejects_staff_phone(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_user(fake_db, role="staff", phone="+84912345678")

        with pytest.raises(InvalidStateError):
            await user_service.find_or_create_customer("0912345678", "Someone")


class TestCustomerManagement:
    """Tests for customer lookups, listing, creation and updates."""

    @pytest.mark.asyncio
    async def test_find_customer_by_phone_ignores_staff(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_user(fake_db, role="staff", phone="+84900000001")
        customer = seed_user(fake_db, phone="+84900000002")

        assert await user_service.find_customer_by_phone("0900000001") is None
        found = await user_service.find_customer_by_phone("0900000002")
        assert found is not None and found["id"] == customer["id"]

    @pytest.mark.asyncio
    async def test_list_customers_search_and_pagination(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_user(fake_db, role="staff", phone="+84900000001", name="Tran Staff")
        first = seed_user(fake_db, phone="+84900000002", name="Tran Thi B")
        second = seed_user(fake_db, phone="+84900000003", name="Le Van C")
        third = seed_user(fake_db, phone="+84911111111", name="tran van d")

        page, total = await user_service.list_customers(page=1, limit=2)
        by_name, name_total = await user_service.list_customers(search="TRAN")
        by_phone, phone_total = await user_service.list_customers(search="0000003")

        assert total == 3
        assert [c["id"] for c in page] == [third["id"], second["id"]]
        assert name_total == 2 and {c["id"] for c in by_name} == {first["id"], third["id"]}
        assert phone_total == 1 and by_phone[0]["id"] == second["id"]

    @pytest.mark.asyncio
    async def test_search_drops_filter_syntax(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        customer = seed_user(fake_db, phone="+84900000002", name="Tran Thi B")

        found, total = await user_service.list_customers(search="Tran,(Thi)")

        assert total == 0 and found == []
        found, total = await user_service.list_customers(search=",()")
        assert total == 1 and found[0]["id"] == customer["id"]

    @pytest.mark.asyncio
    async def test_get_customer_rejects_staff_id(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        staff = seed_user(fake_db, role="staff", phone="+84900000001")

        with pytest.raises(NotFoundError):
            await user_service.get_customer(staff["id"])

    @pytest.mark.asyncio
    async def test_create_customer_normalizes_phone(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        customer = await user_service.create_customer(
            {"phone": "0912345678", "name": "Tran Thi B", "email": "tran.b@gmail.com", "note": "VIP"}
        )

        assert customer["phone"] == "+84912345678"
        assert customer["role"] == "customer"
        assert customer["status"] == "active"
        assert customer["note"] == "VIP"
        assert customer["address"] is None

    @pytest.mark.asyncio
    async def test_create_customer_duplicate_phone(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        seed_user(fake_db, role="staff", phone="+84912345678")

        with pytest.raises(ConflictError):
            await user_service.create_customer({"phone": "0912345678", "name": "Someone"})

        assert len(fake_db.rows("users")) == 1

    @pytest.mark.asyncio
    async def test_update_customer_applies_contact_fields_only(
        self, user_service: UserService, fake_db: FakeSupabaseClient
    ) -> None:
        customer = seed_user(fake_db, phone="+84912345678", name="Old Name")

        updated = await user_service.update_customer(
            customer["id"],
            {"name": "New Name", "address": "5 Tran Hung Dao", "phone": "+84999999999", "role": "admin"},
        )

        assert updated["name"] == "New Name"
        assert updated["address"] == "5 Tran Hung Dao"
        assert updated["phone"] == "+84912345678"
        assert updated["role"] == "customer"

    @pytest.mark.asyncio
    async def test_update_customer_missing(self, user_service: UserService) -> None:
        with pytest.raises(NotFoundError):
            await user_service.update_customer("550e8400-e29b-41d4-a716-446655440000", {"name": "X"})


class TestAccountManagement:
    """Tests for admin-side identity management."""

    @pytest.fixture
    def admin(self, fake_db: FakeSupabaseClient) -> dict:
        return seed_user(fake_db, role="admin", phone="+84900000009", name="Admin")

    @pytest.mark.asyncio
    async def test_list_users_filters(
        self, user_service: UserService, fake_db: FakeSupabaseClient, admin: dict
    ) -> None:
        staff = seed_user(fake_db, role="staff", phone="+84900000001", email="desk@shop.vn")
        seed_user(fake_db, phone="+84900000002", status="suspended")

        by_role, role_total = await user_service.list_users(role=UserRole.STAFF)
        by_status, status_total = await user_service.list_users(status=UserStatus.SUSPENDED)
        by_email, email_total = await user_service.list_users(search="desk@")

        assert role_total == 1 and by_role[0]["id"] == staff["id"]
        assert status_total == 1 and by_status[0]["phone"] == "+84900000002"
        assert email_total == 1 and by_email[0]["id"] == staff["id"]

    @pytest.mark.asyncio
    async def test_create_staff(self, user_service: UserService) -> None:
        staff = await user_service.create_staff({"phone": "0900000001", "name": "Desk", "email": None})

        assert staff["role"] == "staff"
        assert staff["phone"] == "+84900000001"

    @pytest.mark.asyncio
    async def test_update_role_and_status(
        self, user_service: UserService, fake_db: FakeSupabaseClient, admin: dict
    ) -> None:
        customer = seed_user(fake_db, phone="+84900000002")

        promoted = await user_service.update_user_role(customer["id"], UserRole.STAFF, acting_user_id=admin["id"])
        suspended = await user_service.update_user_status(
            customer["id"], UserStatus.SUSPENDED, acting_user_id=admin["id"]
        )

        assert promoted["role"] == "staff"
        assert suspended["status"] == "suspended"
        assert fake_db.row("users", customer["id"])["role"] == "staff"

    @pytest.mark.asyncio
    async def test_admin_cannot_change_own_account(self, user_service: UserService, admin: dict) -> None:
        with pytest.raises(InvalidStateError):
            await user_service.update_user_role(admin["id"], UserRole.CUSTOMER, acting_user_id=admin["id"])
        with pytest.raises(InvalidStateError):
            await user_service.update_user_status(admin["id"], UserStatus.SUSPENDED, acting_user_id=admin["id"])
        with pytest.raises(InvalidStateError):
            await user_service.delete_user(admin["id"], acting_user_id=admin["id"])

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, user_service: UserService, admin: dict) -> None:
        with pytest.raises(NotFoundError):
            await user_service.update_user_status(
                "550e8400-e29b-41d4-a716-446655440000", UserStatus.SUSPENDED, acting_user_id=admin["id"]
            )

    @pytest.mark.asyncio
    async def test_delete_user_without_orders(
        self, user_service: UserService, fake_db: FakeSupabaseClient, admin: dict
    ) -> None:
        customer = seed_user(fake_db, phone="+84900000002")

        await user_service.delete_user(customer["id"], acting_user_id=admin["id"])

        assert fake_db.row("users", customer["id"]) is None

    @pytest.mark.asyncio
    async def test_delete_user_referenced_by_orders(
        self, user_service: UserService, fake_db: FakeSupabaseClient, admin: dict
    ) -> None:
        customer = seed_user(fake_db, phone="+84900000002")
        staff = seed_user(fake_db, role="staff", phone="+84900000003")
        fake_db.store("orders", {"customer_id": customer["id"], "created_by": staff["id"], "status": "pending"})

        for user in (customer, staff):
            with pytest.raises(InvalidStateError):
                await user_service.delete_user(user["id"], acting_user_id=admin["id"])

        assert len(fake_db.rows("users")) == 3
