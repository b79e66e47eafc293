"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. Pure session-layer
fixtures (codec, engine, in-memory store, manual clock) live here too.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest
from refreshguard.core.config import TestingConfig
from refreshguard.core.extensions import db as _db  # Flask-SQLAlchemy instance
from refreshguard.factory import create_app  # application factory under test
from refreshguard.services._shared.ports import (
    InMemorySessionRepository,
    ManualClock,
    SigningKey,
    StaticKeyProvider,
    TokenClass,
)
from refreshguard.services.sessions import (
    RotationEngine,
    SessionService,
    SessionTokenConfig,
    TokenCodec,
)
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

ACCESS_KEY = SigningKey(kid="access-1", secret="unit-access-secret-0123456789abcdef")
REFRESH_KEY = SigningKey(kid="refresh-1", secret="unit-refresh-secret-0123456789abcdef")


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Notes
    -----
    The fixture mirrors the SQLAlchemy 2.0 pattern for transactional tests: it
    begins a top-level transaction, starts a SAVEPOINT per test, and reinstalls
    the SAVEPOINT whenever SQLAlchemy ends one. Units of Work commit against
    the SAVEPOINT, so the outer rollback still discards everything.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import bind_session

    bind_session(session)
    yield
    bind_session(None)


@pytest.fixture()
def client(app, session):
    """Flask test client sharing the transactional session."""
    return app.test_client()


# -- Session layer doubles -----------------------------------------------------
@pytest.fixture()
def clock() -> ManualClock:
    """Deterministic clock pinned to a fixed instant."""
    return ManualClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture()
def keys() -> StaticKeyProvider:
    """Distinct access/refresh keys, no retired keys."""
    return StaticKeyProvider(
        active={TokenClass.ACCESS: ACCESS_KEY, TokenClass.REFRESH: REFRESH_KEY}
    )


@pytest.fixture()
def codec(keys, clock) -> TokenCodec:
    return TokenCodec(keys, clock)


@pytest.fixture()
def engine(codec) -> RotationEngine:
    return RotationEngine(codec, SessionTokenConfig())


@pytest.fixture()
def repository() -> InMemorySessionRepository:
    """In-memory credential store knowing principals ``"1"`` and ``"2"``."""
    return InMemorySessionRepository(principals=("1", "2"))


@pytest.fixture()
def sessions(repository, engine) -> SessionService:
    """Session service wired to the in-memory store and manual clock."""
    return SessionService(repository=repository, engine=engine)
