"""Unit tests for FastAPI dependency injection functions."""

import time
from unittest.mock import patch
from uuid import UUID

import pytest
from fastapi import HTTPException

from fakes import FakeSupabaseClient, seed_user
from src.api.deps import get_current_actor, get_current_user, require_admin, require_staff
from src.api.middleware.auth import AuthError, AuthErrorCode
from src.api.middleware.error_handler import AuthorizationError
from src.models.user import UserRole
from src.schemas.auth import ActorContext, TokenPayload, UserContext
from src.services.user_service import UserService

TEST_SUB = "550e8400-e29b-41d4-a716-446655440000"


def make_payload(sub: str = TEST_SUB) -> TokenPayload:
    now = int(time.time())
    return TokenPayload(sub=sub, phone="+84901234567", role="staff", exp=now + 3600, iat=now)


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_extracts_user_context_correctly(self, mock_decode: object) -> None:
        """Test get_current_user extracts UserContext from valid token."""
        mock_decode.return_value = make_payload()

        user = await get_current_user("Bearer valid-token")

        assert isinstance(user, UserContext)
        assert str(user.user_id) == TEST_SUB
        assert user.phone == "+84901234567"
        mock_decode.assert_called_once_with("valid-token")

    @pytest.mark.asyncio
    async def test_raises_401_for_missing_header(self) -> None:
        """Test get_current_user raises 401 when Authorization header is missing."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("")

        assert exc_info.value.status_code == 401
        assert "Authorization header required" in exc_info.value.detail

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["invalid-token", "Basic abc", "Bearer a b"])
    async def test_raises_401_for_invalid_header_format(self, header: str) -> None:
        """Test get_current_user raises 401 for invalid header format."""
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(header)

        assert exc_info.value.status_code == 401
        assert "Invalid authorization header format" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_expired_token(self, mock_decode: object) -> None:
        """Test get_current_user maps expired tokens to 401."""
        mock_decode.side_effect = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer expired")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_invalid_token(self, mock_decode: object) -> None:
        mock_decode.side_effect = AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE)

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer forged")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token signature"

    @pytest.mark.asyncio
    @patch("src.api.deps.decode_jwt")
    async def test_raises_401_for_non_uuid_subject(self, mock_decode: object) -> None:
        mock_decode.return_value = make_payload(sub="not-a-uuid")

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("Bearer odd-subject")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token subject"


class TestGetCurrentActor:
    """Tests for get_current_actor dependency."""

    @pytest.mark.asyncio
    async def test_role_comes_from_identity_store(self, fake_db: FakeSupabaseClient) -> None:
        """The stored role wins over the token's role claim."""
        record = seed_user(fake_db, role="admin", name="Owner")
        user = UserContext(user_id=UUID(record["id"]), role="customer")

        actor = await get_current_actor(user, UserService(fake_db))

        assert actor.role == UserRole.ADMIN
        assert actor.name == "Owner"
        assert actor.is_admin is True

    @pytest.mark.asyncio
    async def test_unknown_identity_is_forbidden(self, fake_db: FakeSupabaseClient) -> None:
        user = UserContext(user_id=UUID(TEST_SUB))

        with pytest.raises(AuthorizationError) as exc_info:
            await get_current_actor(user, UserService(fake_db))

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_suspended_identity_is_forbidden(self, fake_db: FakeSupabaseClient) -> None:
        record = seed_user(fake_db, role="staff", status="suspended")
        user = UserContext(user_id=UUID(record["id"]))

        with pytest.raises(AuthorizationError) as exc_info:
            await get_current_actor(user, UserService(fake_db))

        assert "suspended" in exc_info.value.message


class TestRoleRequirements:
    """Tests for require_staff and require_admin."""

    @staticmethod
    def actor(role: UserRole) -> ActorContext:
        return ActorContext(user_id=UUID(TEST_SUB), role=role)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.STAFF, UserRole.ADMIN])
    async def test_require_staff_allows_staff_and_admin(self, role: UserRole) -> None:
        actor = self.actor(role)

        assert await require_staff(actor) is actor

    @pytest.mark.asyncio
    async def test_require_staff_rejects_customers(self) -> None:
        with pytest.raises(AuthorizationError):
            await require_staff(self.actor(UserRole.CUSTOMER))

    @pytest.mark.asyncio
    async def test_require_admin(self) -> None:
        admin = self.actor(UserRole.ADMIN)

        assert await require_admin(admin) is admin
        with pytest.raises(AuthorizationError):
            await require_admin(self.actor(UserRole.STAFF))
