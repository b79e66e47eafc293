"""Unit of Work over the Flask-SQLAlchemy scoped session."""

from __future__ import annotations

from sqlalchemy.orm import Session

from refreshguard.core.extensions import db
from refreshguard.repositories import RefreshCredentialRepository, UserRepository
from refreshguard.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Both repositories share ``session``, so users and credential rows
    move in the same transaction."""

    def __init__(self, session: Session | None = None) -> None:
        self.session: Session = db.session if session is None else session
        self.users = UserRepository(session=self.session)
        self.credentials = RefreshCredentialRepository(session=self.session)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
