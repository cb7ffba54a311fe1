"""SQLAlchemy model for an organization's plan and metered usage."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from core.timeutils import isoformat


class Subscription(TenantMixin, Base):
    """One row per organization. Counted resources are derived from row counts;
    AI credits and storage are tracked here."""

    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("organization_id", name="uq_subscription_org"),)

    plan: Mapped[str] = mapped_column(String(20), nullable=False, default="FREE")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    stripe_customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_credits_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_used_mb: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id),
            "plan": self.plan,
            "status": self.status,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "current_period_end": isoformat(self.current_period_end),
            "cancel_at_period_end": self.cancel_at_period_end,
            "ai_credits_used": self.ai_credits_used,
            "storage_used_mb": round(self.storage_used_mb or 0.0, 2),
        }
