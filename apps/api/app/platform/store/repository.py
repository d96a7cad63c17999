from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, delete, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from app.core.database import Base


ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Typed CRUD accessors over a single table.

    Repositories never commit; the calling service owns the transaction.
    """

    model: type[ModelT]

    @property
    def table_name(self) -> str:
        return str(self.model.__tablename__)

    def get(self, session: Session, entity_id: uuid.UUID) -> ModelT | None:
        return session.get(self.model, entity_id)

    def locked_select(self, entity_id: uuid.UUID, *, lock: bool = True) -> Select[tuple[ModelT]]:
        stmt = select(self.model).where(self._id_column() == entity_id)
        if lock:
            stmt = stmt.with_for_update()
        return stmt.execution_options(populate_existing=True)

    def get_for_update(self, session: Session, entity_id: uuid.UUID, *, lock: bool = True) -> ModelT | None:
        return session.scalar(self.locked_select(entity_id, lock=lock))

    def exists(self, session: Session, entity_id: uuid.UUID) -> bool:
        count = session.scalar(select(func.count()).select_from(self.model).where(self._id_column() == entity_id))
        return bool(count)

    def add(self, session: Session, entity: ModelT) -> ModelT:
        session.add(entity)
        session.flush()
        return entity

    def add_all(self, session: Session, entities: Iterable[ModelT]) -> list[ModelT]:
        rows = list(entities)
        session.add_all(rows)
        session.flush()
        return rows

    def list_where(
        self,
        session: Session,
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] = (),
    ) -> list[ModelT]:
        stmt = select(self.model).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(session.scalars(stmt).all())

    def list_ids(self, session: Session, *criteria: ColumnElement[bool]) -> list[uuid.UUID]:
        return list(session.scalars(select(self._id_column()).where(*criteria)).all())

    def delete_where(self, session: Session, *criteria: ColumnElement[bool]) -> int:
        result = session.execute(
            delete(self.model).where(*criteria).execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def delete_by_id(self, session: Session, entity_id: uuid.UUID) -> bool:
        return self.delete_where(session, self._id_column() == entity_id) > 0

    def column(self, name: str) -> InstrumentedAttribute[Any]:
        attribute = getattr(self.model, name, None)
        if attribute is None:
            raise AttributeError(f"{self.model.__name__} has no column '{name}'")
        return attribute

    def _id_column(self) -> InstrumentedAttribute[Any]:
        return self.column("id")
