"""Process-scoped token and session wiring for the Flask application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from flask import Flask, current_app

from refreshguard.core.errors import Unauthorized, api_error_response
from refreshguard.core.extensions import get_redis, jwt
from refreshguard.services._shared.ports import (
    InMemorySessionRepository,
    SessionRepository,
    StaticKeyProvider,
    SystemClock,
    TokenClass,
)
from refreshguard.services.sessions import (
    RotationEngine,
    SessionService,
    SessionTokenConfig,
    TokenCodec,
)

log = logging.getLogger(__name__)

EXTENSION_KEY = "refreshguard.sessions"


@dataclass(slots=True)
class SessionRuntime:
    """Objects built once per process and shared by every request."""

    keys: StaticKeyProvider
    codec: TokenCodec
    engine: RotationEngine
    repository: SessionRepository
    max_attempts: int
    timeout: float

    def service(self) -> SessionService:
        return SessionService(
            repository=self.repository,
            engine=self.engine,
            max_attempts=self.max_attempts,
            timeout=self.timeout,
        )


def build_session_repository(app: Flask) -> SessionRepository:
    """Select the credential store named by ``SESSION_STORE``."""
    backend = str(app.config.get("SESSION_STORE", "sqlalchemy")).lower()
    if backend == "memory":
        return InMemorySessionRepository()
    if backend == "redis":
        from refreshguard.infra.redis import RedisSessionRepository

        return RedisSessionRepository(r=get_redis())
    if backend == "sqlalchemy":
        from refreshguard.infra.sqlalchemy import SQLAlchemySessionRepository

        return SQLAlchemySessionRepository(
            statement_timeout=float(app.config.get("SESSION_STORE_TIMEOUT_SECONDS", 5.0))
        )
    raise RuntimeError(f"Unknown SESSION_STORE {backend!r}")


def init_app(app: Flask) -> None:
    """
    Build the codec, engine and credential store, and hook Flask-JWT-Extended.

    Notes
    -----
    Runs after :func:`refreshguard.core.extensions.init_app` (the Redis store
    needs the client) and before the first request.
    """
    keys = StaticKeyProvider.from_config(app.config)
    codec = TokenCodec(
        keys,
        SystemClock(),
        algorithm=app.config.get("JWT_ALGORITHM", "HS256"),
        issuer=app.config.get("JWT_ISSUER"),
        leeway=timedelta(seconds=int(app.config.get("JWT_LEEWAY_SECONDS", 0))),
    )
    engine = RotationEngine(
        codec,
        SessionTokenConfig(
            access_ttl=app.config["ACCESS_TOKEN_TTL"],
            refresh_ttl=app.config["REFRESH_TOKEN_TTL"],
        ),
    )
    app.extensions[EXTENSION_KEY] = SessionRuntime(
        keys=keys,
        codec=codec,
        engine=engine,
        repository=build_session_repository(app),
        max_attempts=int(app.config.get("ROTATION_MAX_ATTEMPTS", 3)),
        timeout=float(app.config.get("SESSION_STORE_TIMEOUT_SECONDS", 5.0)),
    )
    log.info(
        "sessions.init",
        extra={"event": "sessions.init", "outcome": app.config.get("SESSION_STORE")},
    )
    _register_jwt_callbacks()


def runtime() -> SessionRuntime:
    """Return the runtime bound to the current application."""
    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError as exc:
        raise RuntimeError("Sessions are not initialized. Call init_app() first.") from exc


def session_service() -> SessionService:
    return runtime().service()


def _register_jwt_callbacks() -> None:
    """Let ``@jwt_required`` verify access tokens with the rotating key set."""

    @jwt.decode_key_loader
    def _decode_key(jwt_header: dict[str, Any], _jwt_data: dict[str, Any]) -> str:
        keys = runtime().keys
        key = keys.verification_key(TokenClass.ACCESS, jwt_header.get("kid"))
        # Unknown kid: fall back to the active key so the signature check fails
        return (key or keys.signing_key(TokenClass.ACCESS)).secret

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return api_error_response(Unauthorized("Missing access token"))

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return api_error_response(Unauthorized("Invalid access token"))

    @jwt.expired_token_loader
    def _expired_token(_jwt_header: dict[str, Any], _jwt_data: dict[str, Any]):
        return api_error_response(Unauthorized("Access token expired"))

    @jwt.token_verification_failed_loader
    def _rejected_token(_jwt_header: dict[str, Any], _jwt_data: dict[str, Any]):
        return api_error_response(Unauthorized("Invalid access token"))
