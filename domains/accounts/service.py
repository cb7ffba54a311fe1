"""Accounts: sign-up/sign-in, organizations, team members and invitations.

Every authenticated request is resolved into an ``OrgSession``: the user
plus the organization the request acts on and the user's role there. Role
checks compare ranks (MEMBER < ADMIN < OWNER).
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth.security import create_access_token, generate_token, hash_password, verify_password
from core.config import get_settings
from core.email.sender import EmailMessage
from core.engine.template_engine import TemplateEngine
from core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.integrations import Integrations
from core.slugs import unique_slug
from core.timeutils import ensure_utc, utcnow
from domains.accounts.models.db_models import Invitation, Membership, Organization, User
from domains.accounts.models.schemas import (
    InvitationCreate,
    NotificationType,
    OrganizationCreate,
    OrganizationUpdate,
    Role,
    SignInRequest,
    SignUpRequest,
    has_role,
)
from domains.accounts.notifications import notify_members
from domains.crm.service import create_default_tags, ensure_default_pipeline
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import enforce_usage_limit, get_subscription

logger = logging.getLogger(__name__)


@dataclass
class OrgSession:
    """The authenticated user acting inside one organization."""

    user_id: UUID
    email: str
    name: str | None
    organization_id: UUID
    role: Role

    def has_role(self, required: Role | str) -> bool:
        return has_role(self.role, required)

    def require_role(self, required: Role | str) -> None:
        if not self.has_role(required):
            raise PermissionDeniedError("Insufficient permissions")


def _token_response(user: User) -> dict:
    org_id = str(user.active_organization_id) if user.active_organization_id else None
    return {
        "access_token": create_access_token(str(user.id), org_id),
        "token_type": "bearer",
        "user": user.to_dict(),
        "active_organization_id": org_id,
    }


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    return (await session.execute(stmt)).scalar_one_or_none()


async def sign_up(session: AsyncSession, data: SignUpRequest) -> dict:
    email = data.email.strip().lower()
    if await find_user_by_email(session, email):
        raise ConflictError("Email already registered")

    user = User(email=email, name=data.name, password_hash=hash_password(data.password))
    session.add(user)
    await session.flush()
    logger.info("User %s signed up", user.id)
    return _token_response(user)


async def sign_in(session: AsyncSession, data: SignInRequest) -> dict:
    """Unknown email and wrong password produce the same error."""
    user = await find_user_by_email(session, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return _token_response(user)


async def get_user(session: AsyncSession, user_id: UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise AuthenticationError()
    return user


async def _membership(session: AsyncSession, user_id: UUID, organization_id: UUID) -> Membership | None:
    stmt = select(Membership).where(
        Membership.user_id == user_id, Membership.organization_id == organization_id
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def resolve_active_organization(
    session: AsyncSession, user: User, requested_id: UUID | None = None
) -> OrgSession:
    """Pick the organization a request acts on.

    An explicitly requested organization must be one the user belongs to.
    Otherwise the stored active organization is used, then the user's first
    membership (persisted as the new active organization).
    """
    membership = None
    if requested_id is not None:
        membership = await _membership(session, user.id, requested_id)
        if membership is None:
            raise PermissionDeniedError("You are not a member of this organization")
    elif user.active_organization_id is not None:
        membership = await _membership(session, user.id, user.active_organization_id)

    if membership is None:
        stmt = (
            select(Membership)
            .where(Membership.user_id == user.id)
            .order_by(Membership.created_at)
            .limit(1)
        )
        membership = (await session.execute(stmt)).scalar_one_or_none()
        if membership is None:
            raise PermissionDeniedError("No organization selected")
        user.active_organization_id = membership.organization_id
        await session.flush()

    return OrgSession(
        user_id=user.id,
        email=user.email,
        name=user.name,
        organization_id=membership.organization_id,
        role=Role(membership.role),
    )


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def create_organization(session: AsyncSession, user: User, data: OrganizationCreate) -> dict:
    """Create an organization owned by ``user`` with its default data seeded."""
    slug = await unique_slug(session, Organization.slug, data.name, fallback="organization")
    organization = Organization(name=data.name, slug=slug, logo=data.logo, settings={})
    session.add(organization)
    await session.flush()

    session.add(Membership(organization_id=organization.id, user_id=user.id, role=Role.OWNER.value))
    await get_subscription(session, organization.id)
    await ensure_default_pipeline(session, organization.id)
    await create_default_tags(session, organization.id)

    user.active_organization_id = organization.id
    await session.flush()
    logger.info("Organization %s (%s) created by %s", organization.id, slug, user.id)
    return {"organization": organization.to_dict(), **_token_response(user)}


async def list_user_organizations(session: AsyncSession, user_id: UUID) -> list[dict]:
    stmt = (
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Organization.name)
    )
    return [
        {**org.to_dict(), "role": role}
        for org, role in (await session.execute(stmt)).all()
    ]


async def switch_organization(session: AsyncSession, user: User, organization_id: UUID) -> dict:
    if await _membership(session, user.id, organization_id) is None:
        raise PermissionDeniedError("You are not a member of this organization")
    user.active_organization_id = organization_id
    await session.flush()
    return _token_response(user)


async def get_organization(session: AsyncSession, organization_id: UUID) -> Organization:
    organization = await session.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError("Organization")
    return organization


async def get_organization_by_slug(session: AsyncSession, slug: str) -> Organization:
    stmt = select(Organization).where(Organization.slug == slug)
    organization = (await session.execute(stmt)).scalar_one_or_none()
    if organization is None:
        raise NotFoundError("Organization")
    return organization


async def update_organization(session: AsyncSession, org: OrgSession, data: OrganizationUpdate) -> dict:
    org.require_role(Role.ADMIN)
    organization = await get_organization(session, org.organization_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(organization, key, value)
    await session.flush()
    return organization.to_dict()


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(session: AsyncSession, organization_id: UUID) -> list[dict]:
    stmt = (
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(Membership.organization_id == organization_id)
        .order_by(Membership.created_at)
    )
    return [
        {
            **membership.to_dict(),
            "user": {"id": str(user.id), "email": user.email, "name": user.name, "image": user.image},
        }
        for membership, user in (await session.execute(stmt)).all()
    ]


async def _owner_count(session: AsyncSession, organization_id: UUID) -> int:
    stmt = select(func.count()).select_from(Membership).where(
        Membership.organization_id == organization_id, Membership.role == Role.OWNER.value
    )
    return (await session.execute(stmt)).scalar() or 0


async def _get_member(session: AsyncSession, organization_id: UUID, member_id: UUID) -> Membership:
    stmt = select(Membership).where(
        Membership.id == member_id, Membership.organization_id == organization_id
    )
    membership = (await session.execute(stmt)).scalar_one_or_none()
    if membership is None:
        raise NotFoundError("Member")
    return membership


async def change_member_role(session: AsyncSession, org: OrgSession, member_id: UUID, role: Role) -> dict:
    org.require_role(Role.ADMIN)
    membership = await _get_member(session, org.organization_id, member_id)
    role = Role(role)

    if (membership.role == Role.OWNER.value or role is Role.OWNER) and not org.has_role(Role.OWNER):
        raise PermissionDeniedError("Only owners can manage owners")
    if (
        membership.role == Role.OWNER.value
        and role is not Role.OWNER
        and await _owner_count(session, org.organization_id) <= 1
    ):
        raise ValidationError("Cannot demote the last owner")

    membership.role = role.value
    await session.flush()
    return membership.to_dict()


async def remove_member(session: AsyncSession, org: OrgSession, member_id: UUID) -> None:
    org.require_role(Role.ADMIN)
    membership = await _get_member(session, org.organization_id, member_id)

    if membership.user_id == org.user_id:
        raise ValidationError("You cannot remove yourself")
    if membership.role == Role.OWNER.value:
        if not org.has_role(Role.OWNER):
            raise PermissionDeniedError("Only owners can manage owners")
        if await _owner_count(session, org.organization_id) <= 1:
            raise ValidationError("Cannot remove the last owner")

    user = await session.get(User, membership.user_id)
    if user is not None and user.active_organization_id == org.organization_id:
        user.active_organization_id = None
    await session.delete(membership)
    await session.flush()


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

async def create_invitation(
    session: AsyncSession,
    org: OrgSession,
    data: InvitationCreate,
    integrations: Integrations,
) -> dict:
    """Invite an email address. Re-inviting renews the pending invitation.

    A failed invitation email does not fail the request; ``email_sent``
    reports the outcome.
    """
    org.require_role(Role.ADMIN)
    if data.role is Role.OWNER and not org.has_role(Role.OWNER):
        raise PermissionDeniedError("Only owners can invite owners")

    email = data.email.strip().lower()
    existing_user = await find_user_by_email(session, email)
    if existing_user and await _membership(session, existing_user.id, org.organization_id):
        raise ConflictError("User is already a member of this organization")
    await enforce_usage_limit(session, org.organization_id, Resource.USERS)

    settings = get_settings()
    expires_at = utcnow() + timedelta(days=settings.auth.invitation_expire_days)
    stmt = select(Invitation).where(
        Invitation.organization_id == org.organization_id, Invitation.email == email
    )
    invitation = (await session.execute(stmt)).scalar_one_or_none()
    renewed = invitation is not None
    if invitation is None:
        invitation = Invitation(
            organization_id=org.organization_id,
            email=email,
            token=generate_token(),
        )
        session.add(invitation)
    invitation.role = data.role.value
    invitation.expires_at = expires_at
    invitation.invited_by_id = org.user_id
    await session.flush()

    organization = await get_organization(session, org.organization_id)
    message = TemplateEngine.render("invitation", {
        "organization_name": organization.name,
        "inviter_name": org.name or org.email,
        "role": data.role.value.capitalize(),
        "invite_url": f"{settings.app_url}/invite/{invitation.token}",
        "expires_at": expires_at,
    })
    result = await integrations.mailer.send(
        EmailMessage(to=email, subject=message.subject, html=message.html, text=message.text)
    )
    if not result.success:
        logger.warning("Invitation %s created but email failed: %s", invitation.id, result.error)

    return {"invitation": invitation.to_dict(), "email_sent": result.success, "renewed": renewed}


async def list_invitations(session: AsyncSession, org: OrgSession) -> list[dict]:
    org.require_role(Role.ADMIN)
    stmt = (
        select(Invitation)
        .where(Invitation.organization_id == org.organization_id)
        .order_by(Invitation.created_at.desc())
    )
    return [i.to_dict() for i in (await session.execute(stmt)).scalars().all()]


async def delete_invitation(session: AsyncSession, org: OrgSession, invitation_id: UUID) -> None:
    org.require_role(Role.ADMIN)
    stmt = select(Invitation).where(
        Invitation.id == invitation_id, Invitation.organization_id == org.organization_id
    )
    invitation = (await session.execute(stmt)).scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation")
    await session.delete(invitation)
    await session.flush()


async def _invitation_by_token(session: AsyncSession, token: str) -> Invitation:
    stmt = select(Invitation).where(Invitation.token == token)
    invitation = (await session.execute(stmt)).scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation")
    return invitation


def _is_expired(invitation: Invitation) -> bool:
    return ensure_utc(invitation.expires_at) < utcnow()


async def get_invitation_by_token(session: AsyncSession, token: str) -> dict:
    """Public view of an invitation for the accept page."""
    invitation = await _invitation_by_token(session, token)
    organization = await get_organization(session, invitation.organization_id)
    return {
        "email": invitation.email,
        "role": invitation.role,
        "organization": {"id": str(organization.id), "name": organization.name, "slug": organization.slug},
        "expires_at": invitation.to_dict()["expires_at"],
        "expired": _is_expired(invitation),
    }


async def accept_invitation(session: AsyncSession, user: User, token: str) -> dict:
    invitation = await _invitation_by_token(session, token)
    if _is_expired(invitation):
        raise ValidationError("Invitation has expired")
    if user.email.lower() != invitation.email.lower():
        raise PermissionDeniedError("This invitation was sent to a different email address")

    organization_id = invitation.organization_id
    if await _membership(session, user.id, organization_id):
        await session.delete(invitation)
        await session.flush()
        return {"organization_id": str(organization_id), "already_member": True, **_token_response(user)}

    await enforce_usage_limit(session, organization_id, Resource.USERS)
    session.add(Membership(organization_id=organization_id, user_id=user.id, role=invitation.role))
    await session.delete(invitation)
    user.active_organization_id = organization_id
    await session.flush()

    await notify_members(
        session,
        organization_id,
        "New team member",
        f"{user.name or user.email} joined as {invitation.role.capitalize()}",
        type=NotificationType.TEAM,
        min_role=Role.ADMIN,
    )
    logger.info("User %s joined %s as %s", user.id, organization_id, invitation.role)
    return {"organization_id": str(organization_id), "already_member": False, **_token_response(user)}
