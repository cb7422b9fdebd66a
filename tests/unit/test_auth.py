"""Unit tests for JWT decoding and authentication utilities."""

import time
from typing import Any
from unittest.mock import patch

import pytest
from jose import jwt

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt

# Test JWT secret for unit tests
TEST_JWT_SECRET = "test-jwt-secret-for-unit-tests"
TEST_SUB = "550e8400-e29b-41d4-a716-446655440000"


def create_test_token(
    sub: str | None = TEST_SUB,
    phone: str | None = "+84901234567",
    role: str | None = "staff",
    exp_offset: int = 3600,
    secret: str = TEST_JWT_SECRET,
    algorithm: str = "HS256",
    include_iat: bool = True,
) -> str:
    """Create a test JWT token.

    Args:
        sub: Subject (identity id). None omits the claim.
        phone: Phone claim.
        role: Role claim.
        exp_offset: Seconds from now for expiration (negative for expired).
        secret: JWT secret for signing.
        algorithm: Signing algorithm.
        include_iat: Whether to include the iat claim.

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload: dict[str, Any] = {
        "phone": phone,
        "role": role,
        "exp": now + exp_offset,
    }
    if sub is not None:
        payload["sub"] = sub
    if include_iat:
        payload["iat"] = now
    return jwt.encode(payload, secret, algorithm=algorithm)


@pytest.fixture
def mock_settings() -> Any:
    with patch("src.api.middleware.auth.get_settings") as mock_get_settings:
        mock_get_settings.return_value.jwt_secret = TEST_JWT_SECRET
        mock_get_settings.return_value.jwt_algorithm = "HS256"
        yield mock_get_settings.return_value


class TestDecodeJWT:
    """Tests for decode_jwt function."""

    def test_decode_jwt_with_valid_token(self, mock_settings: Any) -> None:
        """Test decode_jwt successfully decodes a valid token."""
        payload = decode_jwt(create_test_token())

        assert payload.sub == TEST_SUB
        assert payload.phone == "+84901234567"
        assert payload.role == "staff"
        assert payload.exp > int(time.time())

    def test_to_user_context(self, mock_settings: Any) -> None:
        """Test the decoded payload converts to a UserContext."""
        context = decode_jwt(create_test_token()).to_user_context()

        assert str(context.user_id) == TEST_SUB
        assert context.phone == "+84901234567"

    def test_decode_jwt_expired_token(self, mock_settings: Any) -> None:
        """Test decode_jwt raises TOKEN_EXPIRED for expired tokens."""
        token = create_test_token(exp_offset=-3600)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.TOKEN_EXPIRED

    def test_decode_jwt_wrong_secret(self, mock_settings: Any) -> None:
        """Test decode_jwt raises INVALID_SIGNATURE for a foreign signature."""
        token = create_test_token(secret="some-other-secret")

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_SIGNATURE

    def test_decode_jwt_wrong_algorithm(self, mock_settings: Any) -> None:
        """Test decode_jwt rejects tokens signed with a different algorithm."""
        token = create_test_token(algorithm="HS512")

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN

    @pytest.mark.parametrize("missing", ["sub", "iat"])
    def test_decode_jwt_missing_claim(self, mock_settings: Any, missing: str) -> None:
        """Test decode_jwt rejects tokens without a required claim."""
        if missing == "sub":
            token = create_test_token(sub=None)
        else:
            token = create_test_token(include_iat=False)

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN
        assert missing in exc_info.value.message

    def test_decode_jwt_garbage(self, mock_settings: Any) -> None:
        """Test decode_jwt rejects strings that are not JWTs."""
        with pytest.raises(AuthError) as exc_info:
            decode_jwt("not-a-jwt")

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN


class TestAuthError:
    """Tests for AuthError exception."""

    def test_auth_error_carries_code(self) -> None:
        error = AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED)

        assert error.message == "Token has expired"
        assert error.code == AuthErrorCode.TOKEN_EXPIRED
        assert str(error) == "Token has expired"
