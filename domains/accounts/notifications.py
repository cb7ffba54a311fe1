"""In-app notifications.

Kept apart from the accounts service so the automation executor can notify
members without importing the auth and organization logic.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError
from core.timeutils import utcnow
from domains.accounts.models.db_models import Membership, Notification
from domains.accounts.models.schemas import NotificationType, Role, has_role

logger = logging.getLogger(__name__)


async def create_notification(
    session: AsyncSession,
    organization_id: UUID,
    user_id: UUID,
    title: str,
    message: str = "",
    type: NotificationType | str = NotificationType.SYSTEM,
    link: str | None = None,
) -> Notification:
    notification = Notification(
        organization_id=organization_id,
        user_id=user_id,
        title=title,
        message=message,
        type=NotificationType(type).value,
        link=link,
    )
    session.add(notification)
    await session.flush()
    return notification


async def notify_members(
    session: AsyncSession,
    organization_id: UUID,
    title: str,
    message: str = "",
    type: NotificationType | str = NotificationType.SYSTEM,
    link: str | None = None,
    min_role: Role | str | None = None,
) -> int:
    """Notify every member of the organization, optionally only ``min_role`` and above."""
    stmt = select(Membership).where(Membership.organization_id == organization_id)
    members = (await session.execute(stmt)).scalars().all()
    recipients = [m for m in members if min_role is None or has_role(m.role, min_role)]
    for member in recipients:
        await create_notification(session, organization_id, member.user_id, title, message, type, link)
    logger.debug("Notified %d member(s) of %s: %s", len(recipients), organization_id, title)
    return len(recipients)


async def list_notifications(
    session: AsyncSession,
    organization_id: UUID,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> list[dict]:
    stmt = select(Notification).where(
        Notification.organization_id == organization_id, Notification.user_id == user_id
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
    return [n.to_dict() for n in (await session.execute(stmt)).scalars().all()]


async def unread_count(session: AsyncSession, organization_id: UUID, user_id: UUID) -> int:
    stmt = select(func.count()).select_from(Notification).where(
        Notification.organization_id == organization_id,
        Notification.user_id == user_id,
        Notification.read.is_(False),
    )
    return (await session.execute(stmt)).scalar() or 0


async def mark_read(session: AsyncSession, organization_id: UUID, user_id: UUID, notification_id: UUID) -> dict:
    stmt = select(Notification).where(
        Notification.id == notification_id,
        Notification.organization_id == organization_id,
        Notification.user_id == user_id,
    )
    notification = (await session.execute(stmt)).scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification")
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
        await session.flush()
    return notification.to_dict()


async def mark_all_read(session: AsyncSession, organization_id: UUID, user_id: UUID) -> int:
    stmt = (
        update(Notification)
        .where(
            Notification.organization_id == organization_id,
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        .values(read=True, read_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount
