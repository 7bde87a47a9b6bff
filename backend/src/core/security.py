"""
Bearer token helpers.

Tokens are issued by the identity service; this module only needs to read
them. ``create_access_token`` exists for local tooling and tests that need a
token the API will accept.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from jose import JWTError, jwt

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)


class TokenError(Exception):
    """Raised when a bearer token cannot be decoded or is malformed."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


def create_access_token(
    subject: UUID | str,
    expires_delta: Optional[timedelta] = None,
    **claims: Any,
) -> str:
    """
    Create a signed access token for ``subject``.

    Args:
        subject: User identifier stored in the ``sub`` claim
        expires_delta: Optional custom lifetime
        **claims: Extra claims to embed

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    payload = {
        **claims,
        "sub": str(subject),
        "iat": now,
        "exp": now + expires_delta,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token.

    Raises:
        TokenError: If the token is empty, invalid, expired or not an access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.warning(
            "Token validation failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError("Invalid or expired token", code="INVALID_TOKEN") from e

    if payload.get("type") != "access":
        raise TokenError(
            "Token is not an access token",
            code="INVALID_TOKEN_TYPE",
            token_type=payload.get("type"),
        )

    return payload


def get_token_user_id(token: str) -> UUID:
    """
    Extract the user id from an access token.

    Raises:
        TokenError: If the token is invalid or its subject is not a UUID
    """
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not subject:
        raise TokenError("Token missing subject", code="MISSING_SUBJECT")

    try:
        return UUID(subject)
    except ValueError as e:
        raise TokenError(
            "Token subject is not a valid user id",
            code="INVALID_SUBJECT",
            subject=subject,
        ) from e
