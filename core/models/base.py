"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- TimestampMixin: UUID primary key and audit timestamps
- TenantMixin: TimestampMixin plus the owning organization_id

Every business model includes TenantMixin for multi-tenant isolation. The
organization_id column is indexed and cascades on organization delete.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from core.timeutils import utcnow


class Base(DeclarativeBase):
    """Declarative base for all UnifiedBizOS models."""
    pass


class TimestampMixin:
    """Standard audit columns.

    Adds:
    - id: UUID primary key (auto-generated)
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every change
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class TenantMixin(TimestampMixin):
    """Mixin providing multi-tenant isolation on top of the audit columns."""

    @declared_attr
    def organization_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("organizations.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        )
