"""Generic async repository: primary-key reads, row locks, inserts and compare-and-set updates."""
from __future__ import annotations

from typing import Any, ClassVar, Generic, Iterable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import ColumnElement, select, update
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Subclasses set ``model``. Nothing here commits; the caller owns the transaction."""

    model: ClassVar[type]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @classmethod
    def _id_is(cls, id: UUID) -> ColumnElement[bool]:
        (pk,) = cls.model.__table__.primary_key.columns
        return pk == id

    async def get_by_id(self, id: UUID) -> Optional[ModelT]:
        return await self.session.get(self.model, id)  # type: ignore[return-value]

    async def get_for_update(self, id: UUID) -> Optional[ModelT]:
        """``SELECT … FOR UPDATE``: the lock is held until the surrounding transaction ends.

        populate_existing refreshes a row already in the identity map, so the
        caller validates against the locked version.
        """
        stmt = (
            select(self.model)
            .where(self._id_is(id))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()  # type: ignore[return-value]

    async def create(self, data: dict[str, Any]) -> ModelT:
        row = self.model(**data)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row  # type: ignore[return-value]

    async def create_many(self, rows: Iterable[dict[str, Any]]) -> List[ModelT]:
        created = [self.model(**data) for data in rows]
        self.session.add_all(created)
        await self.session.flush()
        return created  # type: ignore[return-value]

    async def update(self, id: UUID, data: dict[str, Any]) -> Optional[ModelT]:
        """Unconditional update of one row; None when it does not exist."""
        row = await self.get_by_id(id)
        if row is None:
            return None
        for attr, value in data.items():
            setattr(row, attr, value)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def guarded_update(
        self,
        id: UUID,
        *,
        expected_status: Iterable[str],
        values: dict[str, Any],
        extra: Iterable[ColumnElement[bool]] = (),
    ) -> Optional[ModelT]:
        """
        Compare-and-set on ``status``: the UPDATE only matches while the row is
        still in one of *expected_status* and every *extra* condition holds.

        None means another writer got there first (or the row is gone); the
        caller decides whether that is a conflict or an idempotent no-op.
        """
        stmt = (
            update(self.model)
            .where(self._id_is(id), self.model.status.in_(list(expected_status)), *extra)
            .values(**values)
            .returning(self.model)
            .execution_options(synchronize_session="fetch")
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()  # type: ignore[return-value]
