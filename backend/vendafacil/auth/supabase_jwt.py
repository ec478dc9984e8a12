"""
Supabase session token verification.

Supabase signs user access tokens with the project's JWT secret (HS256).
The sub claim is the auth user id, which is also users.id.

SECURITY:
- Tokens are verified locally; no call to Supabase is made per request
- Expired tokens and tokens for another audience are rejected
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import ExpiredSignatureError, InvalidAudienceError, InvalidTokenError

from vendafacil.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Clock skew tolerance in seconds
CLOCK_SKEW_SECONDS = 30


class SupabaseAuthError(Exception):
    """Raised when a session token cannot be verified."""

    def __init__(self, message: str, error_code: str = "verification_failed"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    email: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


def verify_supabase_token(token: str, secret: str, audience: str = "authenticated") -> Dict[str, Any]:
    """
    Verify a Supabase access token and return its claims.

    Raises:
        SupabaseAuthError: If verification fails
    """
    if not token:
        raise SupabaseAuthError("Token is required", error_code="missing_token")

    if token.startswith("Bearer "):
        token = token[7:]

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience,
            options={"require": ["sub", "exp"]},
            leeway=CLOCK_SKEW_SECONDS,
        )
    except ExpiredSignatureError:
        raise SupabaseAuthError("Token has expired", error_code="token_expired")
    except InvalidAudienceError:
        raise SupabaseAuthError("Invalid token audience", error_code="invalid_audience")
    except InvalidTokenError as e:
        raise SupabaseAuthError(f"Invalid token: {e}", error_code="invalid_token")

    return claims


def get_current_user(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    """
    FastAPI dependency resolving the caller from the Authorization header.

    Raises HTTP 401 for missing or invalid tokens and 503 when token
    verification is not configured.
    """
    if not settings.supabase_jwt_secret:
        logger.error("SUPABASE_JWT_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured"
        )

    try:
        claims = verify_supabase_token(
            authorization or "",
            settings.supabase_jwt_secret,
            audience=settings.supabase_jwt_audience,
        )
    except SupabaseAuthError as e:
        logger.warning("Session token rejected", extra={"error_code": e.error_code})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthenticatedUser(
        user_id=str(claims["sub"]),
        email=claims.get("email"),
        claims=claims,
    )
