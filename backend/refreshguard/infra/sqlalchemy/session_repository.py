# refreshguard/infra/sqlalchemy/session_repository.py
from __future__ import annotations

from collections.abc import Callable, Iterable

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from refreshguard.services._shared.errors import StoreUnavailableError
from refreshguard.services._shared.ports import CredentialSnapshot, SessionRepository, StoreResult
from refreshguard.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork


def _user_id(principal_id: str) -> int | None:
    try:
        return int(principal_id)
    except (TypeError, ValueError):
        return None


class SQLAlchemySessionRepository(SessionRepository):
    """
    Credential sets stored as ``refresh_credentials`` rows.

    The set version lives on ``users.credential_version``. ``store`` bumps it
    with a single conditional ``UPDATE`` and rewrites the rows in the same
    transaction, so a writer that read an older version changes nothing and
    gets :attr:`StoreResult.CONFLICT`.

    :param uow_factory: Builds the Unit of Work owning each transaction.
    :param statement_timeout: Seconds any single statement may run or wait
        on a lock (PostgreSQL ``statement_timeout``, SQLite ``busy_timeout``);
        ``None`` keeps the server default.
    """

    def __init__(
        self,
        uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        *,
        statement_timeout: float | None = None,
    ):
        self._uow_factory = uow_factory
        self._statement_timeout = statement_timeout

    def _limit(self, uow: SQLAlchemyUnitOfWork) -> None:
        """Bound every statement of the open transaction by the timeout."""
        if self._statement_timeout is None:
            return
        ms = max(int(self._statement_timeout * 1000), 1)
        dialect = uow.session.get_bind().dialect.name
        if dialect == "postgresql":
            # transaction-local, reset on commit or rollback
            uow.session.execute(
                text("SELECT set_config('statement_timeout', :ms, true)"), {"ms": str(ms)}
            )
        elif dialect == "sqlite":
            uow.session.execute(text(f"PRAGMA busy_timeout = {ms}"))

    def load(self, principal_id: str) -> CredentialSnapshot | None:
        user_id = _user_id(principal_id)
        if user_id is None:
            return None
        try:
            with self._uow_factory() as uow:
                self._limit(uow)
                version = uow.credentials.current_version(user_id)
                if version is None:
                    return None
                token_ids = uow.credentials.token_ids_for(user_id)
        except OperationalError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        return CredentialSnapshot(
            principal_id=str(user_id), token_ids=tuple(token_ids), version=version
        )

    def store(
        self, principal_id: str, token_ids: Iterable[str], *, expected_version: int
    ) -> StoreResult:
        user_id = _user_id(principal_id)
        if user_id is None:
            return StoreResult.CONFLICT
        new_ids = list(dict.fromkeys(token_ids))
        try:
            with self._uow_factory() as uow:
                self._limit(uow)
                if not uow.credentials.compare_and_bump_version(user_id, expected_version):
                    return StoreResult.CONFLICT
                uow.credentials.replace_for(user_id, new_ids)
        except IntegrityError:
            # token id already honored elsewhere: a concurrent writer got there first
            return StoreResult.CONFLICT
        except OperationalError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        return StoreResult.OK

    def find_owner(self, token_id: str) -> str | None:
        try:
            with self._uow_factory() as uow:
                self._limit(uow)
                owner = uow.credentials.owner_of(token_id)
        except OperationalError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        return None if owner is None else str(owner)
