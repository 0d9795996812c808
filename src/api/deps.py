"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.schemas.auth import Actor


async def get_current_actor(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> Actor:
    """Extract and validate the acting user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        Actor: The authenticated actor.

    Raises:
        AuthenticationError: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise AuthenticationError("Authentication required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    try:
        payload = decode_jwt(parts[1])
        return payload.to_actor()

    except AuthError as e:
        message = "Token has expired" if e.code == AuthErrorCode.TOKEN_EXPIRED else e.message
        raise AuthenticationError(message) from e

    except ValueError as e:
        # sub claim is not a UUID
        raise AuthenticationError("Invalid token subject") from e


async def get_admin_actor(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
    """Require the acting user to be an admin.

    Raises:
        AuthorizationError: 403 if the actor is not an admin.
    """
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor


# Type aliases for cleaner dependency injection
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(get_admin_actor)]
