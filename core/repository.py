"""Async repository pattern for database access.

Provides a generic base repository with tenant-isolated lookups and inserts.
Verticals subclass it and add domain-specific queries.

Example: DiscountRuleRepository extending BaseRepository.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)


def as_uuid(item_id: str | UUID) -> UUID:
    """Coerce a path/engine id into a UUID. Raises ValueError if malformed."""
    return item_id if isinstance(item_id, UUID) else UUID(str(item_id))


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with tenant isolation.

    Subclass and set `model` to your SQLAlchemy model::

        class DiscountRuleRepository(BaseRepository[DiscountRuleRecord]):
            model = DiscountRuleRecord

            async def load_rules(self, tenant_id: str, now: datetime):
                stmt = select(self.model).where(self.model.tenant_id == tenant_id)
                result = await self.session.execute(stmt)
                return [r.to_rule() for r in result.scalars().all()]
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Get by ID --

    async def get(self, item_id: str | UUID, tenant_id: str) -> dict | None:
        """Get a single item by ID with tenant isolation."""
        stmt = select(self.model).where(
            self.model.id == as_uuid(item_id),
            self.model.tenant_id == tenant_id,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return row.to_dict() if row else None

    # -- Create --

    async def create(self, tenant_id: str, data: dict[str, Any]) -> dict:
        """Create a new item."""
        item = self.model(tenant_id=tenant_id, **data)
        self.session.add(item)
        await self.session.flush()
        return item.to_dict()
