"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations, organization
isolation and pagination. Domains subclass this to add their own queries
and expose a FastAPI dependency factory next to it.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)

_PROTECTED = ("id", "organization_id", "created_at")


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + pagination + tenant isolation.

    Subclass and set `model` to your SQLAlchemy model::

        class CompanyRepository(BaseRepository[Company]):
            model = Company

            async def search(self, organization_id: UUID, query: str):
                stmt = self._scoped(organization_id).where(
                    self.model.name.ilike(f"%{query}%"),
                )
                result = await self.session.execute(stmt)
                return [r.to_dict() for r in result.scalars().all()]
    """

    model: type[ModelT]
    default_order: tuple = ()

    def __init__(self, session: AsyncSession):
        self.session = session

    def _scoped(self, organization_id: UUID):
        return select(self.model).where(self.model.organization_id == organization_id)

    # -- List with pagination --

    async def list(
        self,
        organization_id: UUID,
        page: int = 1,
        limit: int = 50,
        filters: dict[str, Any] | None = None,
    ) -> tuple[list[dict], int]:
        """List items with pagination and optional equality filters.

        Returns (items, total_count).
        """
        stmt = self._scoped(organization_id)
        count_stmt = select(func.count()).select_from(self.model).where(
            self.model.organization_id == organization_id
        )

        if filters:
            for col_name, value in filters.items():
                if hasattr(self.model, col_name) and value is not None:
                    stmt = stmt.where(getattr(self.model, col_name) == value)
                    count_stmt = count_stmt.where(getattr(self.model, col_name) == value)

        if self.default_order:
            stmt = stmt.order_by(*self.default_order)

        offset = (page - 1) * limit
        stmt = stmt.offset(offset).limit(limit)

        result = await self.session.execute(stmt)
        items = [row.to_dict() for row in result.scalars().all()]

        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        return items, total

    # -- Get by ID --

    async def get_obj(self, item_id: UUID, organization_id: UUID) -> ModelT | None:
        """Get the ORM instance by ID within an organization."""
        stmt = self._scoped(organization_id).where(self.model.id == item_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, item_id: UUID, organization_id: UUID) -> dict | None:
        """Get a single item by ID with tenant isolation."""
        row = await self.get_obj(item_id, organization_id)
        return row.to_dict() if row else None

    async def count(self, organization_id: UUID, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).where(
            self.model.organization_id == organization_id
        )
        for col_name, value in filters.items():
            stmt = stmt.where(getattr(self.model, col_name) == value)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    # -- Create --

    async def create_obj(self, organization_id: UUID, data: dict[str, Any]) -> ModelT:
        item = self.model(organization_id=organization_id, **data)
        self.session.add(item)
        await self.session.flush()
        return item

    async def create(self, organization_id: UUID, data: dict[str, Any]) -> dict:
        """Create a new item."""
        item = await self.create_obj(organization_id, data)
        return item.to_dict()

    # -- Update --

    async def update_obj(self, item: ModelT, data: dict[str, Any]) -> ModelT:
        for key, value in data.items():
            if hasattr(item, key) and key not in _PROTECTED:
                setattr(item, key, value)
        await self.session.flush()
        return item

    async def update(
        self, item_id: UUID, organization_id: UUID, data: dict[str, Any]
    ) -> dict | None:
        """Update an existing item. Returns None if not found."""
        item = await self.get_obj(item_id, organization_id)
        if not item:
            return None
        await self.update_obj(item, data)
        return item.to_dict()

    # -- Delete --

    async def delete(self, item_id: UUID, organization_id: UUID) -> bool:
        """Delete an item. Returns True if deleted, False if not found."""
        item = await self.get_obj(item_id, organization_id)
        if not item:
            return False

        await self.session.delete(item)
        await self.session.flush()
        return True


def page_response(items: list, page: int, limit: int, total: int) -> dict:
    """Standard list envelope: ``{"data": [...], "pagination": {...}}``."""
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }
