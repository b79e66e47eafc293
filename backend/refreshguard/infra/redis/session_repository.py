# refreshguard/infra/redis/session_repository.py
from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from refreshguard.services._shared.errors import StoreUnavailableError
from refreshguard.services._shared.ports import CredentialSnapshot, SessionRepository, StoreResult


def _text(value: bytes | str | None, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


@dataclass(slots=True)
class RedisSessionRepository(SessionRepository):
    """
    Redis-backed credential sets with optimistic locking.

    Layout
    ------
    ``rg:set:<principal>``
        Hash with ``version`` and ``tokens`` (JSON list, insertion order).
    ``rg:owner:<token_id>``
        Principal honoring that token id.

    ``store`` WATCHes the set hash, checks the version and rewrites the hash
    plus the owner index in one MULTI/EXEC; a concurrent write aborts the
    transaction and is reported as :attr:`StoreResult.CONFLICT`.

    :param r: A Redis client (already connected).
    :param prefix: Key namespace.
    """

    r: redis.Redis
    prefix: str = "rg"

    # -------------------- helpers --------------------

    def _ks(self, principal_id: str) -> str:
        return f"{self.prefix}:set:{principal_id}"

    def _ko(self, token_id: str) -> str:
        return f"{self.prefix}:owner:{token_id}"

    @staticmethod
    def _decode(raw: dict) -> tuple[int, tuple[str, ...]]:
        version = int(_text(raw.get(b"version", raw.get("version")), "0"))
        tokens = json.loads(_text(raw.get(b"tokens", raw.get("tokens")), "[]"))
        return version, tuple(str(t) for t in tokens)

    # -------------------- API ------------------------

    def load(self, principal_id: str) -> CredentialSnapshot | None:
        try:
            raw = self.r.hgetall(self._ks(principal_id))
        except RedisError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        if not raw:
            return None
        version, tokens = self._decode(raw)
        return CredentialSnapshot(principal_id=principal_id, token_ids=tokens, version=version)

    def store(
        self, principal_id: str, token_ids: Iterable[str], *, expected_version: int
    ) -> StoreResult:
        new_ids = tuple(dict.fromkeys(token_ids))
        key = self._ks(principal_id)
        try:
            with self.r.pipeline() as p:
                p.watch(key)
                raw = p.hgetall(key)
                version, old_ids = self._decode(raw) if raw else (0, ())
                if version != expected_version:
                    p.unwatch()
                    return StoreResult.CONFLICT

                p.multi()
                p.hset(
                    key,
                    mapping={"version": str(version + 1), "tokens": json.dumps(list(new_ids))},
                )
                stale = [self._ko(t) for t in old_ids if t not in new_ids]
                if stale:
                    p.delete(*stale)
                for token_id in new_ids:
                    p.set(self._ko(token_id), principal_id)
                p.execute()
        except WatchError:
            return StoreResult.CONFLICT
        except RedisError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        return StoreResult.OK

    def find_owner(self, token_id: str) -> str | None:
        try:
            owner = self.r.get(self._ko(token_id))
        except RedisError as exc:
            raise StoreUnavailableError("Credential store unavailable") from exc
        return _text(owner) or None
