"""Tenant-scoped data access.

Every read and write takes a tenant id and filters on it; there is no
unscoped variant. An entity that exists in another tenant is reported
exactly like a missing one.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import ColumnElement, Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vanguard_engine.common.models import Base

M = TypeVar("M", bound=Base)


class TenantScopedRepository(Generic[M]):
    """CRUD helpers for a model with ``id`` and ``tenant_id`` columns."""

    def __init__(self, model: type[M]):
        self.model = model

    def scoped(self, tenant_id: str) -> Select:
        if not tenant_id:
            raise ValueError("tenant_id is required")
        return select(self.model).where(self.model.tenant_id == tenant_id)

    async def get(
        self, session: AsyncSession, tenant_id: str, entity_id: str, *options: Any
    ) -> M | None:
        query = self.scoped(tenant_id).where(self.model.id == entity_id)
        if options:
            query = query.options(*options)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def find_one(
        self, session: AsyncSession, tenant_id: str, *criteria: ColumnElement[bool]
    ) -> M | None:
        result = await session.execute(self.scoped(tenant_id).where(*criteria))
        return result.scalar_one_or_none()

    async def find_all(
        self,
        session: AsyncSession,
        tenant_id: str,
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] = (),
        options: Sequence[Any] = (),
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[M]:
        query = self.scoped(tenant_id).where(*criteria)
        if options:
            query = query.options(*options)
        if order_by:
            query = query.order_by(*order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def count(
        self, session: AsyncSession, tenant_id: str, *criteria: ColumnElement[bool]
    ) -> int:
        query = (
            select(func.count())
            .select_from(self.model)
            .where(self.model.tenant_id == tenant_id, *criteria)
        )
        result = await session.execute(query)
        return int(result.scalar_one())

    async def add(self, session: AsyncSession, tenant_id: str, entity: M) -> M:
        entity.tenant_id = tenant_id
        session.add(entity)
        await session.flush()
        return entity

    async def update_where(
        self,
        session: AsyncSession,
        tenant_id: str,
        entity_id: str,
        *conditions: ColumnElement[bool],
        **values: Any,
    ) -> int:
        """Conditional UPDATE; returns the number of rows affected.

        Callers use ``conditions`` as a compare-and-swap guard and must treat
        zero rows as a lost race.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == entity_id,
                self.model.tenant_id == tenant_id,
                *conditions,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
