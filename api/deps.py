"""Shared FastAPI dependencies: authentication, organization and integrations."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware import get_current_session
from core.database import get_session
from core.errors import AuthenticationError
from core.integrations import Integrations, default_integrations
from domains.accounts.models.db_models import User
from domains.accounts.models.schemas import Role
from domains.accounts.service import OrgSession, get_user, resolve_active_organization


async def require_auth(session: AsyncSession = Depends(get_session)) -> User:
    """The signed-in user; 401 without a valid bearer token."""
    auth = get_current_session()
    if auth is None:
        raise AuthenticationError()
    return await get_user(session, auth.user_id)


async def require_org(
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> OrgSession:
    """The user's acting organization and role; 403 when there is none."""
    auth = get_current_session()
    return await resolve_active_organization(session, user, auth.requested_organization_id)


def require_role(role: Role):
    """Dependency factory: ``Depends(require_role(Role.ADMIN))``."""

    async def _check(org: OrgSession = Depends(require_org)) -> OrgSession:
        org.require_role(role)
        return org

    return _check


@lru_cache
def _integrations() -> Integrations:
    return default_integrations()


def get_integrations() -> Integrations:
    """Outbound email, webhooks and AI model. Tests override this dependency."""
    return _integrations()
