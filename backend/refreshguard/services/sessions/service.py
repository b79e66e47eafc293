# refreshguard/services/sessions/service.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from refreshguard.core.logger import security_logger
from refreshguard.services._shared.base import BaseService
from refreshguard.services._shared.errors import (
    ConflictError,
    NotFoundError,
    TransientError,
    UnauthorizedError,
    error_for,
)
from refreshguard.services._shared.ports import CredentialSnapshot, SessionRepository, StoreResult
from refreshguard.services.sessions.credential_set import CredentialSet, token_id_for
from refreshguard.services.sessions.dto import RefreshEvent, SessionView, TokenPair
from refreshguard.services.sessions.engine import Decision, Outcome, RotationEngine

log = logging.getLogger(__name__)


def _issued(decision: Decision) -> TokenPair:
    if decision.tokens is None:
        raise RuntimeError(f"{decision.outcome} decision carries no token pair")
    return decision.tokens


class SessionService(BaseService):
    """
    Session lifecycle service (login issuance / refresh rotation / logout).

    Each operation is a read-modify-write over one principal's credential set,
    committed with a compare-and-swap on the set version. A lost race re-reads
    the set and re-derives the transition from scratch, up to
    ``max_attempts`` times. The store write is the commit point: tokens are
    minted before it and nothing that can fail runs after it.
    """

    def __init__(
        self,
        *,
        repository: SessionRepository,
        engine: RotationEngine,
        max_attempts: int = 3,
        timeout: float = 5.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param repository: Credential set store (compare-and-swap writes).
        :param engine: Rotation state machine.
        :param max_attempts: Attempts before a lost race surfaces as a conflict.
        :param timeout: Seconds one operation may spend against the store.
        :param monotonic: Time source for the timeout (injectable for tests).
        """
        super().__init__()
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.repository = repository
        self.engine = engine
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._monotonic = monotonic

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def start(self, event: RefreshEvent) -> TokenPair:
        """
        Issue a pair to an already authenticated principal.

        :param event: ``principal_id`` is the authenticated user; the
            presented token (cookie from a previous session) is optional.
        :returns: New token pair.
        """
        principal_id = event.principal_id
        if not principal_id:
            raise UnauthorizedError("No session")

        def attempt() -> Decision | None:
            snapshot = self.repository.load(principal_id) or CredentialSnapshot(
                principal_id=principal_id, token_ids=(), version=0
            )
            decision = self.engine.login(
                principal_id, CredentialSet.of(snapshot.token_ids), event.presented_token
            )
            return decision if self._apply(snapshot, decision) else None

        decision = self._with_retries("session.login", attempt)
        self._report(decision)
        return _issued(decision)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, event: RefreshEvent) -> TokenPair:
        """
        Rotate the presented refresh token.

        Security
        --------
        - Every success removes the presented token and adds its successor.
        - A token honored by no set but signed for a known principal is a
          replay: that principal's whole set is cleared.
        - Invalid, expired and replayed tokens all fail with the same
          :class:`ForbiddenError`.
        """
        presented = event.presented_token
        if not presented:
            raise UnauthorizedError("No session")
        token_id = token_id_for(presented)
        seen_honored = False

        def attempt() -> Decision | None:
            nonlocal seen_honored
            owner_id = self.repository.find_owner(token_id)
            snapshot = self.repository.load(owner_id) if owner_id else None

            if owner_id and snapshot is not None:
                current = CredentialSet.of(snapshot.token_ids)
                if not current.contains(token_id):
                    # rotated between lookup and load: read again
                    seen_honored = True
                    return None
                seen_honored = True
                decision = self.engine.refresh(presented, owner_id=owner_id, current=current)
                return decision if self._apply(snapshot, decision) else None

            if seen_honored:
                # A concurrent request consumed this token after we saw it
                # honored; that is a lost race, not a replay.
                raise ConflictError("CredentialSet", "refresh token consumed concurrently")

            principal_id = self.engine.attribute(presented)
            owner_snapshot = self.repository.load(principal_id) if principal_id else None
            decision = self.engine.replay(
                presented,
                principal_id=principal_id,
                current=CredentialSet.of(owner_snapshot.token_ids) if owner_snapshot else None,
            )
            if owner_snapshot is None:
                return decision
            return decision if self._apply(owner_snapshot, decision) else None

        decision = self._with_retries("session.refresh", attempt)
        self._report(decision)
        if decision.error is not None:
            raise error_for(decision.error)
        return _issued(decision)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, event: RefreshEvent) -> None:
        """Forget the presented token. Idempotent: absent or missing tokens succeed."""
        presented = event.presented_token
        if not presented:
            return
        token_id = token_id_for(presented)

        def attempt() -> Decision | None:
            owner_id = self.repository.find_owner(token_id)
            snapshot = self.repository.load(owner_id) if owner_id else None
            if not owner_id or snapshot is None:
                return Decision(outcome=Outcome.UNCHANGED)
            decision = self.engine.logout(
                presented, principal_id=owner_id, current=CredentialSet.of(snapshot.token_ids)
            )
            return decision if self._apply(snapshot, decision) else None

        self._report(self._with_retries("session.logout", attempt))

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    def describe(self, principal_id: str) -> SessionView:
        """Return the stored set of ``principal_id``."""
        snapshot = self.repository.load(principal_id)
        if snapshot is None:
            raise NotFoundError("User", principal_id)
        return SessionView(
            principal_id=snapshot.principal_id,
            token_ids=snapshot.token_ids,
            version=snapshot.version,
        )

    def revoke_all(self, principal_id: str) -> int:
        """
        Clear every refresh token of ``principal_id`` (operator action).

        :returns: Number of tokens revoked.
        """
        revoked = 0

        def attempt() -> Decision | None:
            nonlocal revoked
            snapshot = self.repository.load(principal_id)
            if snapshot is None:
                raise NotFoundError("User", principal_id)
            revoked = len(snapshot.token_ids)
            if not revoked:
                return Decision(outcome=Outcome.UNCHANGED, principal_id=principal_id)
            decision = Decision(
                outcome=Outcome.REVOKED,
                principal_id=principal_id,
                credentials=CredentialSet.of(snapshot.token_ids).cleared(),
            )
            return decision if self._apply(snapshot, decision) else None

        self._report(self._with_retries("session.revoke_all", attempt))
        return revoked

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _apply(self, snapshot: CredentialSnapshot, decision: Decision) -> bool:
        """Persist ``decision``; ``False`` means the compare-and-swap lost."""
        if decision.credentials is None:
            return True
        result = self.repository.store(
            snapshot.principal_id,
            decision.credentials.token_ids,
            expected_version=snapshot.version,
        )
        return result is StoreResult.OK

    def _with_retries(self, event: str, attempt: Callable[[], Decision | None]) -> Decision:
        """Run ``attempt`` until it commits, the attempts run out or time is up."""
        deadline = self._monotonic() + self.timeout
        for number in range(1, self.max_attempts + 1):
            if self._monotonic() >= deadline:
                log.warning("session.timeout", extra={"event": event, "attempt": number})
                raise TransientError("Session store timed out")
            decision = attempt()
            if decision is not None:
                return decision
            log.info("session.conflict", extra={"event": event, "attempt": number})
        raise ConflictError("CredentialSet", "concurrent update")

    def _report(self, decision: Decision) -> None:
        extra = {
            "event": f"session.{decision.outcome.value}",
            "principal_id": decision.principal_id,
            "outcome": decision.outcome.value,
        }
        if decision.outcome is Outcome.REUSE_DETECTED:
            security_logger().warning(
                "refresh token reuse detected; all sessions revoked", extra=extra
            )
        elif decision.outcome is Outcome.REVOKED and decision.reason is not None:
            log.info("refresh token refused (%s)", decision.reason.value, extra=extra)
        elif decision.outcome is Outcome.REJECTED:
            log.info("refresh token rejected", extra=extra)
        elif decision.outcome is not Outcome.UNCHANGED:
            log.info(decision.outcome.value, extra=extra)
