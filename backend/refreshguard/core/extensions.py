"""Process-wide extension singletons and the Redis connection."""

from __future__ import annotations

import logging

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

log = logging.getLogger(__name__)

# Deterministic constraint names; ``violates()`` matches on them
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
# Keys on the client address restored by ProxyFix
limiter = Limiter(key_func=get_remote_address)
redis_client: redis.Redis | None = None


def connect_redis(url: str, timeout: float | None = None) -> redis.Redis:
    """Open a client for ``url`` and ping it once.

    :raises RuntimeError: When the server cannot be reached; the app must not
        start with a credential store it cannot use.
    """
    client = redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {url!r}") from exc
    return client


def init_app(app: Flask) -> None:
    """Bind the extensions to ``app`` and connect Redis when ``REDIS_URL`` is set.

    Importing :mod:`refreshguard.models` here registers the tables on
    ``metadata`` before Flask-Migrate inspects it. :func:`shutdown` releases
    what this acquires.
    """
    global redis_client

    db.init_app(app)
    from refreshguard import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    url = app.config.get("REDIS_URL")
    redis_client = connect_redis(url, app.config.get("REDIS_SOCKET_TIMEOUT")) if url else None
    if redis_client is None:
        app.extensions.pop("redis_client", None)
    else:
        app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    if redis_client is None:
        raise RuntimeError("Redis is not configured; set REDIS_URL.")
    return redis_client


def shutdown(app: Flask) -> None:
    """Dispose of the database pool and close Redis connections."""
    global redis_client
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    if redis_client is not None:
        redis_client.close()
        redis_client = None
        app.extensions.pop("redis_client", None)
    log.info("extensions.shutdown", extra={"event": "shutdown"})
