"""Authentication schemas for access tokens and caller context."""

from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.user import UserRole


class UserContext(BaseModel):
    """Authenticated caller extracted from a verified access token.

    The role claim is informational only; authorization decisions use the
    role stored in the identity record (see ActorContext).
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Identity id (from JWT sub claim)")
    phone: str | None = Field(default=None, description="Phone number claim if present")
    role: str | None = Field(default=None, description="Role claim if present")


class ActorContext(BaseModel):
    """Caller resolved against the identity store.

    Passed into the order core as the opaque role input of every mutation.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Identity id")
    role: UserRole = Field(description="Role read from the users table")
    name: str | None = Field(default=None, description="Display name")

    @property
    def is_admin(self) -> bool:
        """Check whether the caller holds the privileged role."""
        return self.role == UserRole.ADMIN

    @property
    def is_staff_or_admin(self) -> bool:
        """Check whether the caller may operate on other customers' orders."""
        return self.role in (UserRole.STAFF, UserRole.ADMIN)


class TokenPayload(BaseModel):
    """Access token claims."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the identity UUID")
    phone: str | None = Field(default=None, description="Phone number")
    role: str | None = Field(default=None, description="Role at issue time")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")

    @property
    def expiration_datetime(self) -> datetime:
        """Get expiration as datetime object."""
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext.

        Returns:
            UserContext: User context derived from token claims.
        """
        return UserContext(
            user_id=UUID(self.sub),
            phone=self.phone,
            role=self.role,
        )


class AuthenticatedResponse(BaseModel):
    """Response for the authenticated health check."""

    model_config = ConfigDict(from_attributes=True)

    authenticated: bool = Field(default=True, description="Authentication status")
    user_id: str = Field(description="Authenticated user ID")
    role: str = Field(description="Role from the identity store")
