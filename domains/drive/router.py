"""Drive API router: folders, file records and summaries."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_integrations, require_org
from core.database import get_session
from core.errors import ValidationError
from core.integrations import Integrations
from domains.accounts.service import OrgSession
from domains.drive import service
from domains.drive.models.schemas import FileCreate, FileUpdate, FolderCreate, FolderUpdate
from domains.drive.repository import (
    ROOT,
    FileRepository,
    FolderRepository,
    get_file_repository,
    get_folder_repository,
)

router = APIRouter()


# ============================================================================
# Folders
# ============================================================================

@router.get("/folders")
async def list_folders(
    parent_id: Optional[UUID] = None,
    org: OrgSession = Depends(require_org),
    repo: FolderRepository = Depends(get_folder_repository),
):
    """Folders directly under ``parent_id`` (top level when omitted)."""
    folders = await repo.children(org.organization_id, parent_id)
    return {"data": folders, "count": len(folders)}


@router.post("/folders", status_code=201)
async def create_folder(
    request: FolderCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.create_folder(session, org.organization_id, request)


@router.patch("/folders/{folder_id}")
async def update_folder(
    folder_id: UUID,
    request: FolderUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_folder(session, org.organization_id, folder_id, request)


@router.delete("/folders/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_folder(session, org.organization_id, folder_id)


# ============================================================================
# Files
# ============================================================================

@router.get("/files")
async def list_files(
    folder_id: Optional[str] = None,
    query: Optional[str] = None,
    org: OrgSession = Depends(require_org),
    repo: FileRepository = Depends(get_file_repository),
):
    """Files in ``folder_id`` (``root`` for top level, omitted for all), optionally searched."""
    folder = folder_id
    if folder_id not in (None, ROOT):
        try:
            folder = UUID(folder_id)
        except ValueError:
            raise ValidationError("Invalid folder_id") from None
    files = await repo.search(org.organization_id, folder_id=folder, query=query)
    return {"data": [f.to_dict() for f in files], "count": len(files)}


@router.post("/files", status_code=201)
async def register_upload(
    request: FileCreate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.register_upload(session, org.organization_id, org.user_id, request)


@router.get("/files/{file_id}")
async def get_file(
    file_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return (await service.get_file_obj(session, org.organization_id, file_id)).to_dict()


@router.patch("/files/{file_id}")
async def update_file(
    file_id: UUID,
    request: FileUpdate,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    return await service.update_file(session, org.organization_id, file_id, request)


@router.delete("/files/{file_id}", status_code=204)
async def delete_file(
    file_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
):
    await service.delete_file(session, org.organization_id, file_id)


@router.post("/files/{file_id}/summary")
async def summarize_file(
    file_id: UUID,
    org: OrgSession = Depends(require_org),
    session: AsyncSession = Depends(get_session),
    integrations: Integrations = Depends(get_integrations),
):
    summary = await service.summarize(session, org.organization_id, file_id, integrations)
    return {"success": True, "summary": summary}
