"""JWT verification for Supabase-issued access tokens."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from src.core.config import get_settings
from src.schemas.auth import TokenPayload

ALGORITHMS = ["ES256"]
REQUIRED_CLAIMS = ["exp", "iat", "sub"]


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a bearer token cannot be trusted.

    The code tells callers whether the token expired or was malformed,
    so the 401 detail can say which.
    """

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache(maxsize=4)
def load_signing_key(jwk_json: str) -> Any:
    """Parse a JWK JSON document into a public verification key.

    Cached per document so a rotated key in settings is picked up
    without a restart once the settings cache is cleared.
    """
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise AuthError(
            f"Invalid signing key JWK format: {e}",
            AuthErrorCode.INVALID_TOKEN,
        ) from e

    return PyJWK.from_dict(jwk_data).key


def decode_jwt(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Args:
        token: The JWT token string to decode.

    Returns:
        TokenPayload: Validated token payload.

    Raises:
        AuthError: If token is invalid, expired, or has wrong signature.
    """
    public_key = load_signing_key(get_settings().supabase_signing_key_jwk)

    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            public_key,
            algorithms=ALGORITHMS,
            options={
                "verify_signature": True,
                "verify_aud": False,
                "verify_exp": True,
                "verify_iat": True,
                "require": REQUIRED_CLAIMS,
            },
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED) from e
    except jwt.InvalidSignatureError as e:
        raise AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE) from e
    except jwt.MissingRequiredClaimError as e:
        raise AuthError(f"Token missing required claim: {e}", AuthErrorCode.INVALID_TOKEN) from e
    except jwt.PyJWTError as e:
        raise AuthError(f"Invalid token: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return TokenPayload(
        sub=claims["sub"],
        email=claims.get("email"),
        role=claims.get("role"),
        app_metadata=claims.get("app_metadata") or {},
        exp=claims["exp"],
        iat=claims["iat"],
        aud=claims.get("aud"),
        iss=claims.get("iss"),
    )
