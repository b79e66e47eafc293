from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class TokenClass(str, Enum):
    """Token class discriminator, stored in the ``type`` claim."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class SigningKey:
    """
    Key material for one token class.

    :ivar kid: Key identifier written to the JWT header.
    :ivar secret: HMAC secret (or PEM for asymmetric algorithms).
    """

    kid: str
    secret: str = field(repr=False)


class KeyProvider(Protocol):
    """Port for signing keys, with rotation support through ``kid`` lookups."""

    def signing_key(self, token_class: TokenClass) -> SigningKey: ...

    def verification_key(self, token_class: TokenClass, kid: str | None) -> SigningKey | None: ...


class StaticKeyProvider(KeyProvider):
    """
    Key provider over fixed key material.

    Each class has one active key (used to sign) plus any number of retired
    keys that are still accepted for verification, so secrets can rotate
    without invalidating tokens already in circulation.
    """

    def __init__(
        self,
        *,
        active: Mapping[TokenClass, SigningKey],
        retired: Mapping[TokenClass, Iterable[SigningKey]] | None = None,
    ) -> None:
        missing = [tc.value for tc in TokenClass if tc not in active]
        if missing:
            raise ValueError(f"No active signing key for: {', '.join(missing)}")
        if active[TokenClass.ACCESS].secret == active[TokenClass.REFRESH].secret:
            raise ValueError("Access and refresh tokens must use distinct secrets.")
        self._active = dict(active)
        self._by_kid: dict[TokenClass, dict[str, SigningKey]] = {}
        for token_class in TokenClass:
            keys = [self._active[token_class], *((retired or {}).get(token_class, ()))]
            self._by_kid[token_class] = {k.kid: k for k in keys}

    def signing_key(self, token_class: TokenClass) -> SigningKey:
        return self._active[token_class]

    def verification_key(self, token_class: TokenClass, kid: str | None) -> SigningKey | None:
        if kid is None:
            return self._active[token_class]
        return self._by_kid[token_class].get(kid)

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> StaticKeyProvider:
        """Build from ``ACCESS_TOKEN_*`` / ``REFRESH_TOKEN_*`` config values."""
        active: dict[TokenClass, SigningKey] = {}
        retired: dict[TokenClass, list[SigningKey]] = {}
        for token_class in TokenClass:
            prefix = f"{token_class.value.upper()}_TOKEN"
            active[token_class] = SigningKey(
                kid=str(config[f"{prefix}_KEY_ID"]), secret=str(config[f"{prefix}_SECRET"])
            )
            retired[token_class] = parse_key_list(str(config.get(f"{prefix}_RETIRED_KEYS") or ""))
        return cls(active=active, retired=retired)


def parse_key_list(raw: str) -> list[SigningKey]:
    """Parse ``"kid:secret,kid2:secret2"`` into signing keys.

    :raises ValueError: If an entry has no ``kid:`` prefix.
    """
    keys: list[SigningKey] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        kid, sep, secret = chunk.partition(":")
        if not sep or not kid or not secret:
            raise ValueError(f"Malformed key entry (expected kid:secret): {kid or chunk!r}")
        keys.append(SigningKey(kid=kid.strip(), secret=secret.strip()))
    return keys
