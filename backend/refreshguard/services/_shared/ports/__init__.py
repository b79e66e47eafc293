"""
refreshguard.services._shared.ports
===================================

*Ports* (hexagonal interfaces) the session layer depends on.

Modules
-------
- :mod:`clock`:
    :class:`~.Clock` plus a wall clock and a manual clock for tests.
- :mod:`key_provider`:
    :class:`~.KeyProvider`: signing/verification key material per token class.
- :mod:`session_repository`:
    :class:`~.SessionRepository`: compare-and-swap persistence of credential sets.

Concrete adapters (SQLAlchemy, Redis) live under ``refreshguard.infra``.
"""

from __future__ import annotations

from .clock import Clock, ManualClock, SystemClock
from .key_provider import KeyProvider, SigningKey, StaticKeyProvider, TokenClass
from .session_repository import (
    CredentialSnapshot,
    InMemorySessionRepository,
    SessionRepository,
    StoreResult,
)

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "KeyProvider",
    "SigningKey",
    "StaticKeyProvider",
    "TokenClass",
    "SessionRepository",
    "CredentialSnapshot",
    "StoreResult",
    "InMemorySessionRepository",
]
