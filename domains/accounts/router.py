"""Accounts API router: auth, organizations, members, invitations, notifications.

Mounted under /api. Sign-up, sign-in and the invitation preview are public;
everything else requires a bearer token.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_auth, require_org
from core.database import get_session
from core.integrations import Integrations
from domains.accounts import notifications
from domains.accounts import service
from domains.accounts.models.db_models import User
from domains.accounts.models.schemas import (
    InvitationCreate,
    MemberRoleUpdate,
    OrganizationCreate,
    OrganizationUpdate,
    SignInRequest,
    SignUpRequest,
    SwitchOrganizationRequest,
    TokenResponse,
)
from domains.accounts.service import OrgSession

router = APIRouter()


# ============================================================================
# Auth
# ============================================================================

@router.post("/auth/sign-up", status_code=201, response_model=TokenResponse)
async def sign_up(request: SignUpRequest, session: AsyncSession = Depends(get_session)):
    return await service.sign_up(session, request)


@router.post("/auth/sign-in", response_model=TokenResponse)
async def sign_in(request: SignInRequest, session: AsyncSession = Depends(get_session)):
    return await service.sign_in(session, request)


@router.get("/auth/me")
async def me(
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Current user with the organizations they belong to."""
    return {
        "user": user.to_dict(),
        "organizations": await service.list_user_organizations(session, user.id),
    }


# ============================================================================
# Organizations
# ============================================================================

@router.get("/organizations")
async def list_organizations(
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    organizations = await service.list_user_organizations(session, user.id)
    return {"data": organizations, "count": len(organizations)}


@router.post("/organizations", status_code=201)
async def create_organization(
    request: OrganizationCreate,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_organization(session, user, request)


@router.post("/organizations/switch", response_model=TokenResponse)
async def switch_organization(
    request: SwitchOrganizationRequest,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    return await service.switch_organization(session, user, request.organization_id)


@router.get("/organizations/current")
async def current_organization(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    organization = await service.get_organization(session, org.organization_id)
    return {**organization.to_dict(), "role": org.role.value}


@router.patch("/organizations/current")
async def update_organization(
    request: OrganizationUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_organization(session, org, request)


# ============================================================================
# Members
# ============================================================================

@router.get("/organizations/current/members")
async def list_members(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    members = await service.list_members(session, org.organization_id)
    return {"data": members, "count": len(members)}


@router.patch("/organizations/current/members/{member_id}")
async def change_member_role(
    member_id: UUID,
    request: MemberRoleUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.change_member_role(session, org, member_id, request.role)


@router.delete("/organizations/current/members/{member_id}", status_code=204)
async def remove_member(
    member_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.remove_member(session, org, member_id)


# ============================================================================
# Invitations
# ============================================================================

@router.get("/invitations")
async def list_invitations(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    invitations = await service.list_invitations(session, org)
    return {"data": invitations, "count": len(invitations)}


@router.post("/invitations", status_code=201)
async def create_invitation(
    request: InvitationCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    return await service.create_invitation(session, org, request, integrations)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def delete_invitation(
    invitation_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_invitation(session, org, invitation_id)


@router.get("/invitations/token/{token}")
async def get_invitation(token: str, session: AsyncSession = Depends(get_session)):
    """Public: invitation details for the accept page."""
    return await service.get_invitation_by_token(session, token)


@router.post("/invitations/token/{token}/accept")
async def accept_invitation(
    token: str,
    user: User = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    return await service.accept_invitation(session, user, token)


# ============================================================================
# Notifications
# ============================================================================

@router.get("/notifications")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=100),
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    items = await notifications.list_notifications(
        session, org.organization_id, org.user_id, unread_only=unread_only, limit=limit
    )
    return {"data": items, "count": len(items)}


@router.get("/notifications/unread-count")
async def unread_count(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return {"count": await notifications.unread_count(session, org.organization_id, org.user_id)}


@router.post("/notifications/read-all")
async def mark_all_read(
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return {"updated": await notifications.mark_all_read(session, org.organization_id, org.user_id)}


@router.post("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await notifications.mark_read(session, org.organization_id, org.user_id, notification_id)
