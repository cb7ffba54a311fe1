"""SQLAlchemy models for products and invoices. Amounts are integer cents."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from core.models.base import Base, TenantMixin
from core.timeutils import isoformat


class Product(TenantMixin, Base):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_interval: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stripe_product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "currency": self.currency,
            "is_recurring": self.is_recurring,
            "recurring_interval": self.recurring_interval,
            "is_active": self.is_active,
            "stripe_product_id": self.stripe_product_id,
            "stripe_price_id": self.stripe_price_id,
            "created_at": isoformat(self.created_at),
        }


class Invoice(TenantMixin, Base):
    """An invoice to a contact. Line items are stored inline as JSON."""

    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("organization_id", "invoice_number", name="uq_invoice_number"),)

    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT", index=True)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # cents
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    stripe_invoice_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "contact_id": str(self.contact_id) if self.contact_id else None,
            "invoice_number": self.invoice_number,
            "status": self.status,
            "items": self.items or [],
            "total": self.total,
            "currency": self.currency,
            "due_date": isoformat(self.due_date),
            "notes": self.notes,
            "sent_at": isoformat(self.sent_at),
            "paid_at": isoformat(self.paid_at),
            "payment_url": self.payment_url,
            "stripe_invoice_id": self.stripe_invoice_id,
            "created_at": isoformat(self.created_at),
        }
