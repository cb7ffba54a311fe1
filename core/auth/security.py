"""Password hashing and access tokens.

bcrypt hashes passwords (inputs over 72 bytes are rejected rather than
silently truncated) and python-jose signs HS256 access tokens that carry the
user id and the active organization id.
"""

import secrets
from datetime import timedelta
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.errors import AuthenticationError, ValidationError
from core.timeutils import utcnow

BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    data = password.encode("utf-8")
    if len(data) > BCRYPT_MAX_BYTES:
        raise ValidationError("Password must be at most 72 bytes")
    return data


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    """Check a password against a stored hash. Unusable inputs simply fail."""
    if not hashed:
        return False
    data = password.encode("utf-8")
    if len(data) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(data, hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: str,
    organization_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = get_settings().auth
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims: dict[str, Any] = {"sub": user_id, "org": organization_id, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a token. Raises AuthenticationError when invalid or expired."""
    settings = get_settings().auth
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    if not payload.get("sub"):
        raise AuthenticationError("Invalid token payload")
    return payload


def generate_token(nbytes: int = 32) -> str:
    """Random URL-safe token for invitations and tracking links."""
    return secrets.token_urlsafe(nbytes)
