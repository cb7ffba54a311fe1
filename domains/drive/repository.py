"""Folder and file repositories."""

from uuid import UUID

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.drive.models.db_models import File, Folder
from patterns.repository import BaseRepository

# Sentinel for "root folder" in listings, distinct from "any folder".
ROOT = "root"


class FolderRepository(BaseRepository[Folder]):
    model = Folder
    default_order = (Folder.name,)

    async def children(self, organization_id: UUID, parent_id: UUID | None) -> list[dict]:
        """Folders directly under ``parent_id`` (None = root) with file and subfolder counts."""
        files = (
            select(File.folder_id, func.count().label("files"))
            .where(File.organization_id == organization_id)
            .group_by(File.folder_id)
            .subquery()
        )
        subfolders = (
            select(Folder.parent_id, func.count().label("children"))
            .where(Folder.organization_id == organization_id)
            .group_by(Folder.parent_id)
            .subquery()
        )
        stmt = (
            select(Folder, files.c.files, subfolders.c.children)
            .outerjoin(files, files.c.folder_id == Folder.id)
            .outerjoin(subfolders, subfolders.c.parent_id == Folder.id)
            .where(Folder.organization_id == organization_id)
            .order_by(Folder.name)
        )
        if parent_id is None:
            stmt = stmt.where(Folder.parent_id.is_(None))
        else:
            stmt = stmt.where(Folder.parent_id == parent_id)
        return [
            {**folder.to_dict(), "file_count": file_count or 0, "folder_count": child_count or 0}
            for folder, file_count, child_count in (await self.session.execute(stmt)).all()
        ]

    async def is_empty(self, folder_id: UUID) -> bool:
        file_stmt = select(func.count()).select_from(File).where(File.folder_id == folder_id)
        child_stmt = select(func.count()).select_from(Folder).where(Folder.parent_id == folder_id)
        files = (await self.session.execute(file_stmt)).scalar() or 0
        children = (await self.session.execute(child_stmt)).scalar() or 0
        return files == 0 and children == 0


class FileRepository(BaseRepository[File]):
    model = File
    default_order = (File.updated_at.desc(),)

    async def search(
        self,
        organization_id: UUID,
        folder_id: UUID | str | None = None,
        query: str | None = None,
    ) -> list[File]:
        """Files in a folder (``ROOT`` for top level, None for any) matching ``query``."""
        stmt = self._scoped(organization_id)
        if folder_id == ROOT:
            stmt = stmt.where(File.folder_id.is_(None))
        elif folder_id is not None:
            stmt = stmt.where(File.folder_id == folder_id)
        if query:
            pattern = f"%{query}%"
            stmt = stmt.where(or_(File.name.ilike(pattern), File.description.ilike(pattern)))
        return list((await self.session.execute(stmt.order_by(File.updated_at.desc()))).scalars().all())


def get_folder_repository(session: AsyncSession = Depends(get_session)) -> FolderRepository:
    return FolderRepository(session)


def get_file_repository(session: AsyncSession = Depends(get_session)) -> FileRepository:
    return FileRepository(session)
