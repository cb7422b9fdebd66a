"""FastAPI dependency injection functions."""

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError
from src.models.user import UserRole, UserStatus
from src.schemas.auth import ActorContext, UserContext
from src.services.user_service import UserService, get_user_service

logger = logging.getLogger(__name__)


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    This dependency requires a valid JWT token in the Authorization header.
    Use this for endpoints that require authentication.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = parts[1]

    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    except ValueError as e:
        # sub claim is not a UUID
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUser = Annotated[UserContext, Depends(get_current_user)]


async def get_current_actor(
    user: CurrentUser,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> ActorContext:
    """Resolve the caller's role from the identity store.

    The role claim in the token is not trusted; the users table is the
    source of truth.

    Raises:
        AuthorizationError: 403 if the identity is unknown or suspended.
    """
    record = await user_service.get_user(user.user_id)
    if not record:
        logger.warning("Token subject %s has no identity record", user.user_id)
        raise AuthorizationError("Account not found.")

    if record.get("status") == UserStatus.SUSPENDED.value:
        raise AuthorizationError("Account is suspended.")

    return ActorContext(
        user_id=user.user_id,
        role=UserRole(record["role"]),
        name=record.get("name"),
    )


CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]


async def require_staff(actor: CurrentActor) -> ActorContext:
    """Allow staff and admins.

    Raises:
        AuthorizationError: 403 for customers.
    """
    if not actor.is_staff_or_admin:
        raise AuthorizationError("Staff access required.")
    return actor


async def require_admin(actor: CurrentActor) -> ActorContext:
    """Allow admins only.

    Raises:
        AuthorizationError: 403 for staff and customers.
    """
    if not actor.is_admin:
        raise AuthorizationError("Admin access required.")
    return actor


# Type aliases for cleaner dependency injection
StaffActor = Annotated[ActorContext, Depends(require_staff)]
AdminActor = Annotated[ActorContext, Depends(require_admin)]
