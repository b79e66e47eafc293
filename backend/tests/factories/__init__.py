"""Factory Boy base class bound to the per-test SAVEPOINT session."""

from __future__ import annotations

import factory
from sqlalchemy.orm import Session

_session: Session | None = None


def bind_session(session: Session | None) -> None:
    """Point every factory at ``session`` (``None`` unbinds)."""
    global _session
    _session = session


def current_session() -> Session:
    if _session is None:
        raise RuntimeError("No session bound for factories; request the 'session' fixture.")
    return _session


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        # Resolved on every build so each test gets its own session
        sqlalchemy_session_factory = current_session
        sqlalchemy_session_persistence = "flush"
