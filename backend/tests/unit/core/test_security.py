"""Wiring of the session runtime and the access-token key loader."""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest
from flask import Flask
from refreshguard.core import extensions
from refreshguard.core.security import EXTENSION_KEY, build_session_repository, runtime
from refreshguard.infra.redis import RedisSessionRepository
from refreshguard.infra.sqlalchemy import SQLAlchemySessionRepository
from refreshguard.services._shared.ports import (
    InMemorySessionRepository,
    SigningKey,
    StaticKeyProvider,
    SystemClock,
    TokenClass,
)
from refreshguard.services.sessions import SessionService, TokenCodec

from tests.factories.user import UserFactory


def _app_with(**config) -> Flask:
    app = Flask("store-selection")
    app.config.update(config)
    return app


@pytest.mark.parametrize(
    "backend, expected",
    [("memory", InMemorySessionRepository), ("sqlalchemy", SQLAlchemySessionRepository)],
)
def test_build_session_repository(backend, expected):
    assert isinstance(build_session_repository(_app_with(SESSION_STORE=backend)), expected)


def test_build_redis_repository(monkeypatch):
    monkeypatch.setattr(extensions, "redis_client", fakeredis.FakeRedis())
    repository = build_session_repository(_app_with(SESSION_STORE="redis"))
    assert isinstance(repository, RedisSessionRepository)


def test_redis_store_without_client_fails(monkeypatch):
    monkeypatch.setattr(extensions, "redis_client", None)
    with pytest.raises(RuntimeError):
        build_session_repository(_app_with(SESSION_STORE="redis"))


def test_unknown_store_is_rejected():
    with pytest.raises(RuntimeError, match="SESSION_STORE"):
        build_session_repository(_app_with(SESSION_STORE="cassandra"))


def test_runtime_is_built_from_config(app):
    rt = app.extensions[EXTENSION_KEY]

    assert rt is runtime()
    assert rt.keys.signing_key(TokenClass.ACCESS).kid == app.config["ACCESS_TOKEN_KEY_ID"]
    assert rt.engine.config.refresh_ttl == app.config["REFRESH_TOKEN_TTL"]
    assert rt.max_attempts == app.config["ROTATION_MAX_ATTEMPTS"]
    assert isinstance(rt.service(), SessionService)


def test_access_token_signed_with_retired_key_is_accepted(app, session, monkeypatch):
    user = UserFactory()
    session.commit()
    user_id = user.id
    rt = app.extensions[EXTENSION_KEY]
    current = rt.keys.signing_key(TokenClass.ACCESS)
    refresh = rt.keys.signing_key(TokenClass.REFRESH)
    old = SigningKey(kid="access-old", secret="retired-access-secret-0123456789abc")
    legacy_codec = TokenCodec(
        StaticKeyProvider(active={TokenClass.ACCESS: old, TokenClass.REFRESH: refresh}),
        SystemClock(),
    )
    token = legacy_codec.issue(str(user_id), TokenClass.ACCESS, timedelta(minutes=5))
    client = app.test_client(use_cookies=False)
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401

    monkeypatch.setattr(
        rt,
        "keys",
        StaticKeyProvider(
            active={TokenClass.ACCESS: current, TokenClass.REFRESH: refresh},
            retired={TokenClass.ACCESS: [old]},
        ),
    )
    resp = client.get("/api/v1/auth/me", headers=headers)

    assert resp.status_code == 200
    assert resp.get_json()["data"]["id"] == user_id
