"""Session middleware using ContextVar.

Decodes the bearer token on every request and stores the caller's identity
in a ContextVar, so dependencies and services can call
get_current_session() without threading the request through. An invalid or
missing token leaves the session empty; routes that need one fail in
``require_auth``.
"""

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.auth.security import decode_access_token
from core.errors import AuthenticationError

ORGANIZATION_HEADER = "X-Organization-ID"


@dataclass(frozen=True)
class AuthSession:
    """The user named by the access token plus an explicitly requested organization."""

    user_id: UUID
    requested_organization_id: Optional[UUID] = None


# ---------------------------------------------------------------------------
# Context variable: task-safe session state
# ---------------------------------------------------------------------------

_current_session: ContextVar[Optional[AuthSession]] = ContextVar("current_session", default=None)


def get_current_session() -> Optional[AuthSession]:
    """Return the authenticated session for the current request, if any.

    Safe to call from any async context within the request lifecycle::

        auth = get_current_session()
        if auth is None:
            raise AuthenticationError()
    """
    return _current_session.get()


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


def session_from_headers(authorization: Optional[str], organization: Optional[str]) -> Optional[AuthSession]:
    """Build the session from ``Authorization: Bearer <token>`` and ``X-Organization-ID``."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        claims = decode_access_token(token.strip())
    except AuthenticationError:
        return None
    user_id = _parse_uuid(claims.get("sub"))
    if user_id is None:
        return None
    return AuthSession(
        user_id=user_id,
        requested_organization_id=_parse_uuid(organization),
    )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class SessionMiddleware(BaseHTTPMiddleware):
    """Resolve the bearer token into the request's AuthSession.

    Priority for the acting organization (applied later in require_org):
    1. X-Organization-ID header (explicit)
    2. The user's stored active organization
    3. The user's first membership
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        auth = session_from_headers(
            request.headers.get("Authorization"),
            request.headers.get(ORGANIZATION_HEADER),
        )
        token = _current_session.set(auth)
        try:
            response = await call_next(request)
            return response
        finally:
            _current_session.reset(token)
