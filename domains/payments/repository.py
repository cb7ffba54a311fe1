"""Product and invoice repositories."""

from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from domains.payments.models.db_models import Invoice, Product
from patterns.repository import BaseRepository


class ProductRepository(BaseRepository[Product]):
    model = Product
    default_order = (Product.created_at.desc(),)


class InvoiceRepository(BaseRepository[Invoice]):
    model = Invoice
    default_order = (Invoice.created_at.desc(),)

    async def numbers(self, organization_id: UUID, prefix: str) -> list[str]:
        stmt = select(Invoice.invoice_number).where(
            Invoice.organization_id == organization_id,
            Invoice.invoice_number.startswith(prefix),
        )
        return list((await self.session.execute(stmt)).scalars().all())


def get_product_repository(session: AsyncSession = Depends(get_session)) -> ProductRepository:
    return ProductRepository(session)


def get_invoice_repository(session: AsyncSession = Depends(get_session)) -> InvoiceRepository:
    return InvoiceRepository(session)
