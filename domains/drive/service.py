"""Drive: folders, file records metered against plan storage, and file summaries."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.agents.base_agent import summarize_file
from core.config import get_settings
from core.errors import ExternalServiceError, NotFoundError, ValidationError
from core.integrations import Integrations
from core.timeutils import ensure_utc
from domains.drive.models.db_models import File, Folder
from domains.drive.models.schemas import FileCreate, FileUpdate, FolderCreate, FolderUpdate
from domains.drive.repository import FileRepository, FolderRepository
from domains.subscriptions.models.schemas import Resource
from domains.subscriptions.service import (
    check_usage_limit,
    decrement_usage,
    enforce_usage_limit,
    increment_usage,
)
from patterns.domain_config import get_business_config

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


def size_mb(size_bytes: int) -> float:
    return size_bytes / _BYTES_PER_MB


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------

async def get_folder_obj(session: AsyncSession, organization_id: UUID, folder_id: UUID) -> Folder:
    folder = await FolderRepository(session).get_obj(folder_id, organization_id)
    if folder is None:
        raise NotFoundError("Folder")
    return folder


async def create_folder(session: AsyncSession, organization_id: UUID, data: FolderCreate) -> dict:
    if data.parent_id is not None:
        await get_folder_obj(session, organization_id, data.parent_id)
    folder = await FolderRepository(session).create_obj(organization_id, {
        "name": data.name,
        "parent_id": data.parent_id,
        "color": data.color or get_business_config().drive.default_folder_color,
    })
    return folder.to_dict()


async def update_folder(session: AsyncSession, organization_id: UUID, folder_id: UUID, data: FolderUpdate) -> dict:
    folder = await get_folder_obj(session, organization_id, folder_id)
    updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    await FolderRepository(session).update_obj(folder, updates)
    return folder.to_dict()


async def delete_folder(session: AsyncSession, organization_id: UUID, folder_id: UUID) -> None:
    repo = FolderRepository(session)
    folder = await get_folder_obj(session, organization_id, folder_id)
    if not await repo.is_empty(folder.id):
        raise ValidationError("Folder is not empty")
    await session.delete(folder)
    await session.flush()


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

async def get_file_obj(session: AsyncSession, organization_id: UUID, file_id: UUID) -> File:
    file = await FileRepository(session).get_obj(file_id, organization_id)
    if file is None:
        raise NotFoundError("File")
    return file


async def register_upload(
    session: AsyncSession, organization_id: UUID, user_id: UUID, data: FileCreate
) -> dict:
    """Record an uploaded file and count its size against plan storage."""
    megabytes = size_mb(data.size)
    await enforce_usage_limit(session, organization_id, Resource.STORAGE, amount=megabytes)
    if data.folder_id is not None:
        await get_folder_obj(session, organization_id, data.folder_id)

    file = await FileRepository(session).create_obj(organization_id, {
        **data.model_dump(),
        "uploaded_by_id": user_id,
    })
    await increment_usage(session, organization_id, Resource.STORAGE, amount=megabytes)
    logger.info("File %s (%d bytes) registered in %s", file.id, data.size, organization_id)
    return file.to_dict()


async def update_file(session: AsyncSession, organization_id: UUID, file_id: UUID, data: FileUpdate) -> dict:
    file = await get_file_obj(session, organization_id, file_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("folder_id") is not None:
        await get_folder_obj(session, organization_id, updates["folder_id"])
    if updates.get("name") is None:
        updates.pop("name", None)
    if updates.get("tags") is None:
        updates.pop("tags", None)
    await FileRepository(session).update_obj(file, updates)
    return file.to_dict()


async def delete_file(session: AsyncSession, organization_id: UUID, file_id: UUID) -> None:
    """Delete a file record and release its storage."""
    file = await get_file_obj(session, organization_id, file_id)
    megabytes = size_mb(file.size)
    await session.delete(file)
    await session.flush()
    await decrement_usage(session, organization_id, Resource.STORAGE, amount=megabytes)


def placeholder_summary(file: File) -> str:
    uploaded = ensure_utc(file.created_at)
    return (
        f"This {file.type} file ({file.size / 1024:.2f} KB) was uploaded on "
        f"{uploaded.month}/{uploaded.day}/{uploaded.year}."
    )


async def summarize(
    session: AsyncSession, organization_id: UUID, file_id: UUID, integrations: Integrations
) -> str:
    """Store and return a summary of the file.

    Uses the AI model when one is configured and AI credits remain; otherwise,
    or when generation fails, a factual placeholder is stored.
    """
    file = await get_file_obj(session, organization_id, file_id)
    summary = None

    if integrations.ai_model is not None or get_settings().ai.enabled:
        usage = await check_usage_limit(session, organization_id, Resource.AI_CREDITS)
        if usage["allowed"]:
            description = (
                f"File name: {file.name}\nMIME type: {file.type}\nSize: {file.size} bytes\n"
                f"Description: {file.description or 'none'}\nTags: {', '.join(file.tags or []) or 'none'}"
            )
            try:
                summary = await summarize_file(description, model=integrations.ai_model)
            except ExternalServiceError:
                logger.warning("AI summary failed for file %s; using placeholder", file.id)
            else:
                await increment_usage(session, organization_id, Resource.AI_CREDITS)

    file.ai_summary = summary or placeholder_summary(file)
    await session.flush()
    return file.ai_summary
