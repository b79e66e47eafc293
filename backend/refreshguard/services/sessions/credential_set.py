# refreshguard/services/sessions/credential_set.py
from __future__ import annotations

import hashlib
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


def token_id_for(token: str) -> str:
    """
    Derive the identifier stored for an encoded refresh token.

    :param token: Encoded refresh JWT as presented by the client.
    :returns: SHA-256 hex digest (64 chars); raw tokens never reach the store.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CredentialSet:
    """
    Refresh-token identifiers currently honored for one principal.

    Immutable value: every operation returns a new set. Entries are unique;
    insertion order is kept for diagnostics only and never drives a decision.

    :ivar token_ids: Honored identifiers, oldest first.
    """

    token_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # dict preserves first-seen order while dropping duplicates
        object.__setattr__(self, "token_ids", tuple(dict.fromkeys(self.token_ids)))

    @classmethod
    def of(cls, token_ids: Iterable[str]) -> CredentialSet:
        """Build a set from any iterable of identifiers."""
        return cls(tuple(token_ids))

    def contains(self, token_id: str) -> bool:
        return token_id in self.token_ids

    def without(self, token_id: str) -> CredentialSet:
        """Remove ``token_id`` if present; returns ``self`` when absent."""
        if token_id not in self.token_ids:
            return self
        return CredentialSet(tuple(t for t in self.token_ids if t != token_id))

    def appended(self, token_id: str) -> CredentialSet:
        """Add ``token_id`` as the newest entry (no-op when already honored)."""
        if token_id in self.token_ids:
            return self
        return CredentialSet((*self.token_ids, token_id))

    def cleared(self) -> CredentialSet:
        return CredentialSet()

    def __contains__(self, token_id: object) -> bool:
        return token_id in self.token_ids

    def __iter__(self) -> Iterator[str]:
        return iter(self.token_ids)

    def __len__(self) -> int:
        return len(self.token_ids)
