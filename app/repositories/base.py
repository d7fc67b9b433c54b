"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and add the
entity-specific queries their services need.

- Every call is routed through ``db_circuit_breaker`` so a database outage
  fails fast instead of exhausting the connection pool.
- Each write commits immediately. There are no multi-statement transactions:
  a workflow that writes two tables (e.g. a KYC review and the profile
  mirror) performs two independent commits.
- **IntegrityError** is NOT caught here; services translate it into the
  appropriate domain error.
- **OperationalError** triggers a rollback before being re-raised so the
  session is never left with a dirty transaction.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from app.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        The request-scoped async session.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # ── Internal helpers ──

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError during %s for %s", operation, self.model.__name__)
            raise

    # ── Reads ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    async def get_many(self, ids: Sequence[Any]) -> Dict[Any, ModelType]:
        """Fetch several entities by primary key, keyed by id."""
        if not ids:
            return {}
        rows = await self.list_where(self.model.id.in_(list(set(ids))))  # type: ignore[attr-defined]
        return {row.id: row for row in rows}  # type: ignore[attr-defined]

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Return a page of entities ordered by primary key."""

        async def _get_all() -> List[ModelType]:
            pk_columns = self.model.__table__.primary_key.columns
            stmt = select(self.model).order_by(*pk_columns).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_get_all)

    async def first_where(self, *criteria: Any, order_by: Any = None) -> Optional[ModelType]:
        """Return the first row matching ``criteria`` (in ``order_by`` order)."""

        async def _first() -> Optional[ModelType]:
            stmt = select(self.model).where(*criteria)
            if order_by is not None:
                stmt = stmt.order_by(order_by)
            result = await self.db.execute(stmt.limit(1))
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_first)

    async def list_where(
        self,
        *criteria: Any,
        order_by: Any = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[ModelType]:
        """Return every row matching ``criteria``, optionally paginated."""

        async def _list() -> List[ModelType]:
            stmt = select(self.model).where(*criteria)
            if order_by is not None:
                stmt = stmt.order_by(order_by)
            if skip:
                stmt = stmt.offset(skip)
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_list)

    async def count(self, *criteria: Any) -> int:
        """Count rows, optionally restricted by ``criteria``."""

        async def _count() -> int:
            stmt = select(func.count()).select_from(self.model)
            if criteria:
                stmt = stmt.where(*criteria)
            result = await self.db.execute(stmt)
            return result.scalar_one()

        return await self._execute_with_circuit_breaker(_count)

    # ── Writes ──

    async def create(self, obj_in: ModelType) -> ModelType:
        """Insert a new entity and return the refreshed instance."""

        async def _create() -> ModelType:
            self.db.add(obj_in)
            await self._commit("create")
            await self.db.refresh(obj_in)
            return obj_in

        return await self._execute_with_circuit_breaker(_create)

    async def create_many(self, objs: Sequence[ModelType]) -> int:
        """Insert several entities in one commit. Returns the number inserted."""
        if not objs:
            return 0

        async def _create_many() -> int:
            self.db.add_all(list(objs))
            await self._commit("create_many")
            return len(objs)

        return await self._execute_with_circuit_breaker(_create_many)

    async def update(self, entity: ModelType) -> ModelType:
        """
        Persist changes to an entity the caller has already mutated.

        Merges, commits and refreshes so DB-side defaults are reflected.
        """

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit("update")
            await self.db.refresh(merged)
            return merged

        return await self._execute_with_circuit_breaker(_update)

    async def update_where(self, values: Dict[str, Any], *criteria: Any) -> int:
        """
        Single-statement conditional UPDATE. Returns the affected row count.

        Instances already loaded in the session are synchronised with the new
        values, so callers can keep using them after a successful update.
        """

        async def _update_where() -> int:
            stmt = update(self.model).where(*criteria).values(**values)
            result = await self.db.execute(stmt)
            await self._commit("update_where")
            return result.rowcount or 0

        return await self._execute_with_circuit_breaker(_update_where)

    async def delete(self, id: Any) -> bool:
        """Delete by primary key. Returns ``False`` if the row did not exist."""

        async def _delete() -> bool:
            entity = await self.db.get(self.model, id)
            if entity is None:
                return False
            await self.db.delete(entity)
            await self._commit("delete")
            return True

        return await self._execute_with_circuit_breaker(_delete)

    async def delete_where(self, *criteria: Any) -> int:
        """Bulk DELETE. Returns the affected row count."""

        async def _delete_where() -> int:
            result = await self.db.execute(delete(self.model).where(*criteria))
            await self._commit("delete_where")
            return result.rowcount or 0

        return await self._execute_with_circuit_breaker(_delete_where)
