"""SQLAlchemy models for the file drive: folders and uploaded file records."""

import uuid

from sqlalchemy import ForeignKey, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from core.timeutils import isoformat


def _id(value: uuid.UUID | None) -> str | None:
    return str(value) if value else None


class Folder(TenantMixin, Base):
    __tablename__ = "folders"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3B82F6")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "parent_id": _id(self.parent_id),
            "color": self.color,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class File(TenantMixin, Base):
    """Metadata for an uploaded file. The bytes live at ``url``."""

    __tablename__ = "files"

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(200), nullable=False)  # MIME type
    size: Mapped[int] = mapped_column(Integer, nullable=False)  # bytes
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    folder_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    uploaded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "url": self.url,
            "folder_id": _id(self.folder_id),
            "description": self.description,
            "tags": self.tags or [],
            "uploaded_by_id": _id(self.uploaded_by_id),
            "ai_summary": self.ai_summary,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
