from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol


class StoreResult(Enum):
    """Outcome of a conditional write to the credential store."""

    OK = auto()
    CONFLICT = auto()


@dataclass(frozen=True, slots=True)
class CredentialSnapshot:
    """
    Read-model for one principal's credential set.

    :ivar principal_id: Owner of the set.
    :ivar token_ids: Honored refresh token identifiers, in insertion order.
    :ivar version: Opaque version; pass it back as ``expected_version``.
    """

    principal_id: str
    token_ids: tuple[str, ...]
    version: int


class SessionRepository(Protocol):
    """
    Durable mapping ``principal_id -> credential set`` with compare-and-swap writes.

    Implementations MUST make ``store`` atomic: either the whole set is replaced
    and the version bumped, or nothing changes and ``CONFLICT`` is returned.
    They raise :class:`~refreshguard.services._shared.errors.StoreUnavailableError`
    when the backend cannot be reached.
    """

    def load(self, principal_id: str) -> CredentialSnapshot | None:
        """Return the current snapshot, or ``None`` for an unknown principal."""
        ...

    def store(
        self, principal_id: str, token_ids: Iterable[str], *, expected_version: int
    ) -> StoreResult: ...

    def find_owner(self, token_id: str) -> str | None:
        """Return the principal whose set currently contains ``token_id``."""
        ...


class InMemorySessionRepository(SessionRepository):
    """Thread-safe in-memory repository used in tests and single-process setups."""

    def __init__(self, principals: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._sets: dict[str, tuple[str, ...]] = {}
        self._versions: dict[str, int] = {}
        self._owners: dict[str, str] = {}
        for principal_id in principals:
            self.add_principal(principal_id)

    def add_principal(self, principal_id: str) -> None:
        """Make ``principal_id`` known with an empty set (no-op if present)."""
        with self._lock:
            self._sets.setdefault(principal_id, ())
            self._versions.setdefault(principal_id, 0)

    def load(self, principal_id: str) -> CredentialSnapshot | None:
        with self._lock:
            if principal_id not in self._sets:
                return None
            return CredentialSnapshot(
                principal_id=principal_id,
                token_ids=self._sets[principal_id],
                version=self._versions[principal_id],
            )

    def store(
        self, principal_id: str, token_ids: Iterable[str], *, expected_version: int
    ) -> StoreResult:
        new_ids = tuple(token_ids)
        with self._lock:
            if self._versions.get(principal_id, 0) != expected_version:
                return StoreResult.CONFLICT
            for old in self._sets.get(principal_id, ()):
                self._owners.pop(old, None)
            for token_id in new_ids:
                self._owners[token_id] = principal_id
            self._sets[principal_id] = new_ids
            self._versions[principal_id] = expected_version + 1
            return StoreResult.OK

    def find_owner(self, token_id: str) -> str | None:
        with self._lock:
            return self._owners.get(token_id)
