"""Session-bound data access shared by the concrete repositories.

Repositories stage rows and run queries. Transactions belong to the Unit of
Work: nothing here commits or rolls back.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select
from sqlalchemy.orm import Session

from refreshguard.core.extensions import db

E = TypeVar("E")


class BaseRepository(Generic[E]):
    """Data access for one mapped ``model``.

    :param session: Session of the enclosing Unit of Work. When omitted the
        Flask-scoped ``db.session`` is used.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else cast(Session, db.session)

    def get(self, entity_id: int) -> E | None:
        return self.session.get(self.model, entity_id)

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its primary key is assigned."""
        self.session.add(instance)
        self.flush()
        return instance

    def flush(self) -> None:
        self.session.flush()

    def scalar(self, stmt: Select[Any]) -> Any:
        """First column of the only matching row, ``None`` when nothing matches."""
        return self.session.execute(stmt).scalar_one_or_none()

    def scalars(self, stmt: Select[Any]) -> list[Any]:
        return list(self.session.execute(stmt).scalars())
