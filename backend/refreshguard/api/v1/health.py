"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from refreshguard.api.deps import json_response, timing
from refreshguard.core import extensions
from refreshguard.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and session store health information."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    store = str(current_app.config.get("SESSION_STORE", "sqlalchemy"))
    store_status = db_status if store == "sqlalchemy" else "ok"
    if store == "redis":
        try:
            extensions.get_redis().ping()
        except (RedisError, RuntimeError):  # pragma: no cover - depends on Redis
            current_app.logger.exception("healthcheck.redis_error")
            store_status = "fail"

    healthy = db_status == "ok" and store_status == "ok"
    payload = {
        "status": "ok" if healthy else "degraded",
        "db": db_status,
        "session_store": {"backend": store, "status": store_status},
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)
