"""Transaction boundary shared by the identity use cases and the SQL store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refreshguard.repositories import RefreshCredentialRepository, UserRepository


class UnitOfWork(ABC):
    """Group repository calls into one atomic change.

    Subclasses bind ``users`` and ``credentials`` to a single transaction and
    supply :meth:`commit` / :meth:`rollback`. Leaving the ``with`` block
    normally commits; an exception, or a failed commit, rolls back and
    propagates.
    """

    users: UserRepository
    credentials: RefreshCredentialRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
