"""Bearer token handling.

Access tokens are minted by the MedGo identity service and share
``JWT_SECRET_KEY`` with this API. The only claim the dispatch service relies
on is ``sub``, the user's UUID; roles are always read from the users table.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from medgo.config import settings

TOKEN_TYPE = "access"


def create_access_token(
    user_id: UUID | str,
    expires_delta: timedelta | None = None,
    **claims: Any,
) -> str:
    """
    Issue an access token for ``user_id``.

    Used by the dev token script and by tests.

    Args:
        user_id: Token subject
        expires_delta: Lifetime, defaulting to ACCESS_TOKEN_EXPIRE_MINUTES
        **claims: Extra claims such as ``email``
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        **claims,
        "sub": str(user_id),
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verify signature, expiry and token type; None when any check fails."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    return payload if payload.get("type") == TOKEN_TYPE else None


def user_id_from_token(token: str) -> UUID | None:
    """Return the token subject as a UUID, or None for any invalid token."""
    payload = decode_access_token(token)
    subject = payload.get("sub") if payload else None
    if not isinstance(subject, str):
        return None
    try:
        return UUID(subject)
    except ValueError:
        return None
