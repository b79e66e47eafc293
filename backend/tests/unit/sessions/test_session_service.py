"""Behavioral tests for SessionService over the in-memory credential store."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from refreshguard.core.logger import SECURITY_LOGGER
from refreshguard.services._shared.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    TransientError,
    UnauthorizedError,
)
from refreshguard.services._shared.ports import (
    InMemorySessionRepository,
    StoreResult,
    TokenClass,
)
from refreshguard.services.sessions import RefreshEvent, SessionService, token_id_for
from refreshguard.services.sessions.engine import Decision, Outcome


def _login(sessions, principal_id: str = "1", presented: str | None = None):
    return sessions.start(RefreshEvent(principal_id=principal_id, presented_token=presented))


def _refresh(sessions, token: str | None):
    return sessions.refresh(RefreshEvent(presented_token=token))


def _ids(repository, principal_id: str = "1") -> tuple[str, ...]:
    return repository.load(principal_id).token_ids


class FlakyRepository(InMemorySessionRepository):
    """Loses the first ``conflicts`` compare-and-swap writes."""

    def __init__(self, *args, conflicts: int = 0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.conflicts = conflicts
        self.store_calls = 0

    def store(self, principal_id, token_ids, *, expected_version):
        self.store_calls += 1
        if self.conflicts:
            self.conflicts -= 1
            return StoreResult.CONFLICT
        return super().store(principal_id, token_ids, expected_version=expected_version)


class DownRepository(InMemorySessionRepository):
    def load(self, principal_id):
        raise StoreUnavailableError("store down")


# --------------------------------------------------------------------------- #
# Login
# --------------------------------------------------------------------------- #


def test_login_adds_exactly_one_token(sessions, repository):
    before = _ids(repository)

    pair = _login(sessions)

    after = _ids(repository)
    assert len(after) == len(before) + 1
    assert token_id_for(pair.refresh_token) in after


def test_login_without_principal_is_unauthorized(sessions):
    with pytest.raises(UnauthorizedError):
        sessions.start(RefreshEvent())


def test_login_for_unknown_principal_starts_empty_set(sessions, repository):
    pair = _login(sessions, principal_id="99")

    snapshot = repository.load("99")
    assert snapshot.token_ids == (token_id_for(pair.refresh_token),)
    assert snapshot.version == 1


def test_login_with_own_cookie_replaces_it(sessions, repository):
    first = _login(sessions)

    second = _login(sessions, presented=first.refresh_token)

    assert _ids(repository) == (token_id_for(second.refresh_token),)


def test_login_with_stale_cookie_is_not_reuse(sessions, repository):
    first = _login(sessions)
    _refresh(sessions, first.refresh_token)
    honored = _ids(repository)

    _login(sessions, presented=first.refresh_token)

    assert set(honored) <= set(_ids(repository))
    assert len(_ids(repository)) == len(honored) + 1


# --------------------------------------------------------------------------- #
# Refresh
# --------------------------------------------------------------------------- #


def test_refresh_is_single_use(sessions, repository):
    pair = _login(sessions)

    rotated = _refresh(sessions, pair.refresh_token)

    assert rotated.refresh_token != pair.refresh_token
    assert _ids(repository) == (token_id_for(rotated.refresh_token),)


def test_refresh_without_token_is_unauthorized(sessions):
    with pytest.raises(UnauthorizedError):
        _refresh(sessions, None)


def test_login_refresh_replay_scenario(sessions, repository, caplog):
    t1 = _login(sessions).refresh_token
    t2 = _refresh(sessions, t1).refresh_token

    with caplog.at_level(logging.WARNING, logger=SECURITY_LOGGER):
        with pytest.raises(ForbiddenError):
            _refresh(sessions, t1)

    reuse = [r for r in caplog.records if r.name == SECURITY_LOGGER]
    assert len(reuse) == 1
    assert reuse[0].levelno == logging.WARNING
    assert reuse[0].principal_id == "1"
    assert reuse[0].outcome == "reuse_detected"
    assert _ids(repository) == ()
    # Legitimate holder is logged out too
    with pytest.raises(ForbiddenError):
        _refresh(sessions, t2)


def test_reuse_clears_every_session_of_the_principal(sessions, repository):
    t1 = _login(sessions).refresh_token
    t2 = _login(sessions).refresh_token
    t3 = _login(sessions).refresh_token
    assert len(_ids(repository)) == 3
    _refresh(sessions, t1)

    with pytest.raises(ForbiddenError):
        _refresh(sessions, t1)

    assert _ids(repository) == ()
    for token in (t2, t3):
        with pytest.raises(ForbiddenError):
            _refresh(sessions, token)


def test_reuse_does_not_leak_across_principals(sessions, repository):
    mine = _login(sessions, "1").refresh_token
    theirs = _login(sessions, "2").refresh_token
    _refresh(sessions, mine)
    before = repository.load("2")

    with pytest.raises(ForbiddenError):
        _refresh(sessions, mine)

    assert repository.load("2") == before
    assert _refresh(sessions, theirs).refresh_token


def test_expiry_only_affects_the_expired_token(sessions, repository, clock, engine):
    short = _login(sessions).refresh_token
    clock.advance(engine.config.refresh_ttl - timedelta(minutes=1))
    fresh = _login(sessions).refresh_token
    clock.advance(timedelta(minutes=2))

    with pytest.raises(ForbiddenError):
        _refresh(sessions, short)

    assert _ids(repository) == (token_id_for(fresh),)
    assert _refresh(sessions, fresh).refresh_token


def test_garbage_token_is_forbidden_without_writes(sessions, repository):
    pair = _login(sessions)
    version = repository.load("1").version

    with pytest.raises(ForbiddenError):
        _refresh(sessions, "not-a-token")

    assert repository.load("1").version == version
    assert _ids(repository) == (token_id_for(pair.refresh_token),)


def test_token_of_unknown_principal_is_forbidden(sessions, codec):
    orphan = codec.issue("404", TokenClass.REFRESH, timedelta(hours=1))
    with pytest.raises(ForbiddenError):
        _refresh(sessions, orphan)


def test_refused_tokens_share_one_message(sessions, clock, engine):
    stale = _login(sessions).refresh_token
    _refresh(sessions, stale)
    expired = _login(sessions, "2").refresh_token
    clock.advance(engine.config.refresh_ttl)

    messages = set()
    for token in ("junk", stale, expired):
        with pytest.raises(ForbiddenError) as excinfo:
            _refresh(sessions, token)
        messages.add(str(excinfo.value))
    assert messages == {"Forbidden"}


# --------------------------------------------------------------------------- #
# Logout
# --------------------------------------------------------------------------- #


def test_logout_removes_only_the_presented_token(sessions, repository):
    a = _login(sessions).refresh_token
    b = _login(sessions).refresh_token

    sessions.logout(RefreshEvent(presented_token=a))

    assert _ids(repository) == (token_id_for(b),)


def test_logout_is_idempotent(sessions, repository):
    token = _login(sessions).refresh_token

    sessions.logout(RefreshEvent(presented_token=token))
    version = repository.load("1").version
    sessions.logout(RefreshEvent(presented_token=token))
    sessions.logout(RefreshEvent(presented_token="garbage"))
    sessions.logout(RefreshEvent())

    assert repository.load("1").version == version
    assert _ids(repository) == ()


def test_logged_out_token_replayed_is_reuse(sessions, repository):
    a = _login(sessions).refresh_token
    _login(sessions)
    sessions.logout(RefreshEvent(presented_token=a))

    with pytest.raises(ForbiddenError):
        _refresh(sessions, a)

    assert _ids(repository) == ()


# --------------------------------------------------------------------------- #
# Concurrency and store failures
# --------------------------------------------------------------------------- #


def test_lost_race_is_retried(engine):
    repository = FlakyRepository(("1",), conflicts=2)
    sessions = SessionService(repository=repository, engine=engine, max_attempts=3)

    pair = _login(sessions)

    assert repository.store_calls == 3
    assert _ids(repository) == (token_id_for(pair.refresh_token),)


def test_exhausted_retries_raise_conflict(engine):
    repository = FlakyRepository(("1",), conflicts=5)
    sessions = SessionService(repository=repository, engine=engine, max_attempts=2)

    with pytest.raises(ConflictError):
        _login(sessions)

    assert repository.store_calls == 2
    assert _ids(repository) == ()


def test_concurrent_consumption_is_conflict_not_reuse(engine, codec):
    class RacingRepository(InMemorySessionRepository):
        """Another request rotates the token between lookup and write."""

        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self.raced = False

        def store(self, principal_id, token_ids, *, expected_version):
            if not self.raced and expected_version > 0:
                self.raced = True
                rival = SessionService(repository=self, engine=engine)
                rival.refresh(RefreshEvent(presented_token=self.victim))
            return super().store(principal_id, token_ids, expected_version=expected_version)

    repository = RacingRepository(("1",))
    sessions = SessionService(repository=repository, engine=engine)
    token = _login(sessions).refresh_token
    repository.victim = token

    with pytest.raises(ConflictError):
        _refresh(sessions, token)

    # The rival's successor survives; no reuse was declared
    assert len(_ids(repository)) == 1


def test_timeout_surfaces_as_transient(sessions, engine, repository):
    ticks = iter([0.0, 10.0])
    slow = SessionService(
        repository=repository, engine=engine, timeout=5.0, monotonic=lambda: next(ticks)
    )

    with pytest.raises(TransientError):
        _login(slow)


def test_store_outage_is_transient(engine):
    sessions = SessionService(repository=DownRepository(("1",)), engine=engine)
    with pytest.raises(TransientError):
        _login(sessions)


def test_max_attempts_must_be_positive(repository, engine):
    with pytest.raises(ValueError):
        SessionService(repository=repository, engine=engine, max_attempts=0)


# --------------------------------------------------------------------------- #
# Administration
# --------------------------------------------------------------------------- #


def test_describe_returns_stored_set(sessions):
    pair = _login(sessions)

    view = sessions.describe("1")

    assert view.principal_id == "1"
    assert view.token_ids == (token_id_for(pair.refresh_token),)
    assert view.version == 1


def test_describe_unknown_principal(sessions):
    with pytest.raises(NotFoundError):
        sessions.describe("404")


def test_revoke_all_counts_and_clears(sessions, repository):
    tokens = [_login(sessions).refresh_token for _ in range(3)]

    assert sessions.revoke_all("1") == 3
    assert _ids(repository) == ()
    assert sessions.revoke_all("1") == 0
    with pytest.raises(ForbiddenError):
        _refresh(sessions, tokens[0])


def test_revoke_all_unknown_principal(sessions):
    with pytest.raises(NotFoundError):
        sessions.revoke_all("404")


def test_login_decision_without_tokens_is_an_error(repository, engine, monkeypatch):
    """An engine bug surfaces as an error, not as a ``None`` token pair."""
    monkeypatch.setattr(
        engine, "login", lambda *args, **kwargs: Decision(outcome=Outcome.ISSUED, principal_id="1")
    )
    sessions = SessionService(repository=repository, engine=engine)

    with pytest.raises(RuntimeError, match="no token pair"):
        _login(sessions)
    assert _ids(repository) == ()
