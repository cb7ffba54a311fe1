"""SQLAlchemy model for funnels (public lead-capture forms)."""

from sqlalchemy import Boolean, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from core.timeutils import isoformat


class Funnel(TenantMixin, Base):
    __tablename__ = "funnels"
    __table_args__ = (UniqueConstraint("organization_id", "slug", name="uq_funnel_slug"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    template: Mapped[str | None] = mapped_column(String(30), nullable=True)
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conversions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "template": self.template,
            "steps": self.steps or [],
            "color": self.color,
            "is_published": self.is_published,
            "views": self.views,
            "conversions": self.conversions,
            "conversion_rate": round(self.conversions / self.views * 100, 1) if self.views else 0.0,
            "created_at": isoformat(self.created_at),
        }

    def public_dict(self) -> dict:
        return {
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "steps": self.steps or [],
            "color": self.color,
        }
