"""Authentication schemas for JWT tokens and the acting party."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ADMIN_ROLE = "admin"


class Actor(BaseModel):
    """The authenticated party attempting an operation.

    Built once per request from the verified JWT and passed explicitly
    into every service call. Services never look up "who is calling"
    on their own.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: UUID | None = Field(description="Unique identifier for the user (from JWT sub claim); None for guests")
    email: str | None = Field(default=None, description="User's email address if available")
    is_admin: bool = Field(default=False, description="Whether the user holds the admin role")
    order_id: int | None = Field(
        default=None, description="Set for guests holding an order access token; scopes them to that order"
    )


class TokenPayload(BaseModel):
    """JWT token payload structure for Supabase tokens.

    Represents the claims contained in a Supabase-issued JWT.
    Used for validation and extraction of user information.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="User's role")
    app_metadata: dict[str, Any] = Field(default_factory=dict, description="Server-controlled user metadata")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")
    iss: str | None = Field(default=None, description="Issuer - token issuer URL")

    @property
    def expiration_datetime(self) -> datetime:
        """Get expiration as datetime object."""
        return datetime.fromtimestamp(self.exp)

    @property
    def is_admin(self) -> bool:
        """Admins carry role=admin in app_metadata (set server-side only)."""
        return self.app_metadata.get("role") == ADMIN_ROLE or self.role == ADMIN_ROLE

    def to_actor(self) -> Actor:
        """Convert token payload to an Actor.

        Returns:
            Actor: Acting party derived from token claims.
        """
        return Actor(
            user_id=UUID(self.sub),
            email=self.email,
            is_admin=self.is_admin,
        )
