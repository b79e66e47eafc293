# refreshguard/services/sessions/engine.py
"""
Refresh-token rotation and reuse-detection state machine.

The engine is a pure decision function. Given the presented refresh token (or
none) and the principal's current :class:`CredentialSet`, it returns a
:class:`Decision`: the next set to persist (if any), a freshly minted
:class:`TokenPair` (if any) and the error kind to report (if any).
Persistence, retries and logging belong to
:class:`~refreshguard.services.sessions.service.SessionService`.

States, implicit in the set contents plus the event:

* no prior session: no token presented, or a login with a token this
  principal does not honor;
* valid refresh: the presented token is in its owner's set;
* stale refresh: the token is in no set but its signature names a principal
  (already rotated out or logged out, then replayed);
* invalid signature: the token is in no set and cannot be attributed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from refreshguard.services._shared.errors import ErrorKind
from refreshguard.services._shared.ports import TokenClass
from refreshguard.services.sessions.codec import TokenCodec, VerificationError
from refreshguard.services.sessions.credential_set import CredentialSet, token_id_for
from refreshguard.services.sessions.dto import SessionTokenConfig, TokenPair


class Outcome(str, Enum):
    """What a decision does to the principal's credential set."""

    ISSUED = "issued"
    ROTATED = "rotated"
    REVOKED = "revoked"
    REUSE_DETECTED = "reuse_detected"
    REJECTED = "rejected"
    LOGGED_OUT = "logged_out"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class Decision:
    """
    Result of one engine transition.

    :ivar outcome: Transition taken.
    :ivar principal_id: Principal whose set is affected (``None`` if unknown).
    :ivar credentials: Next set to persist; ``None`` means no write.
    :ivar tokens: New pair to hand to the caller on success.
    :ivar error: Externally visible failure kind, ``None`` on success.
    :ivar reason: Internal verification detail, never shown to callers.
    """

    outcome: Outcome
    principal_id: str | None = None
    credentials: CredentialSet | None = None
    tokens: TokenPair | None = None
    error: ErrorKind | None = None
    reason: VerificationError | None = None

    @property
    def writes(self) -> bool:
        return self.credentials is not None


class RotationEngine:
    """
    Decide every login, refresh and logout transition.

    :param codec: Token codec used to mint and verify tokens.
    :param config: Token lifetimes.
    """

    def __init__(self, codec: TokenCodec, config: SessionTokenConfig | None = None) -> None:
        self.codec = codec
        self.config = config or SessionTokenConfig()

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(
        self, principal_id: str, current: CredentialSet, presented: str | None = None
    ) -> Decision:
        """
        Issue a new pair to an authenticated principal.

        A presented token this principal still honors is dropped first, so one
        browser never accumulates tokens. Stale cookies are benign here; reuse
        detection only happens on refresh.
        """
        retained = current
        if presented:
            token_id = token_id_for(presented)
            if current.contains(token_id):
                retained = current.without(token_id)
        pair = self._mint(principal_id, fresh=True)
        return Decision(
            outcome=Outcome.ISSUED,
            principal_id=principal_id,
            credentials=retained.appended(token_id_for(pair.refresh_token)),
            tokens=pair,
        )

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self, presented: str, *, owner_id: str, current: CredentialSet) -> Decision:
        """
        Rotate a token found in ``owner_id``'s set.

        :param presented: Encoded refresh token.
        :param owner_id: Principal whose set contains the token.
        :param current: That principal's set; must contain the token.
        """
        token_id = token_id_for(presented)
        if not current.contains(token_id):
            raise ValueError("refresh() requires a token honored by its owner's set.")

        verification = self.codec.verify(presented, TokenClass.REFRESH)
        claims = verification.claims
        if claims is None or not verification.ok:
            # One bad token is not evidence of theft: drop only that one
            return Decision(
                outcome=Outcome.REVOKED,
                principal_id=owner_id,
                credentials=current.without(token_id),
                error=ErrorKind.FORBIDDEN,
                reason=verification.error,
            )

        if claims.principal_id != owner_id:
            return Decision(
                outcome=Outcome.REJECTED, principal_id=owner_id, error=ErrorKind.FORBIDDEN
            )

        pair = self._mint(owner_id, fresh=False)
        return Decision(
            outcome=Outcome.ROTATED,
            principal_id=owner_id,
            credentials=current.without(token_id).appended(token_id_for(pair.refresh_token)),
            tokens=pair,
        )

    def attribute(self, presented: str) -> str | None:
        """
        Read the subject of a token honored by no set (signature check only).

        The token authorizes nothing; an expired token is still attributable.

        :returns: Principal id, or ``None`` when the signature does not hold.
        """
        verification = self.codec.verify(presented, TokenClass.REFRESH, check_expiry=False)
        if not verification.ok or verification.claims is None:
            return None
        return verification.claims.principal_id

    def replay(
        self, presented: str, *, principal_id: str | None, current: CredentialSet | None
    ) -> Decision:
        """
        React to a token that is in no principal's set.

        :param presented: Encoded refresh token.
        :param principal_id: Result of :meth:`attribute` (``None`` if unattributable).
        :param current: Attributed principal's set (``None`` if unknown principal).
        """
        if principal_id is None:
            return Decision(
                outcome=Outcome.REJECTED,
                error=ErrorKind.FORBIDDEN,
                reason=VerificationError.BAD_SIGNATURE,
            )
        if current is None:
            return Decision(
                outcome=Outcome.REJECTED, principal_id=principal_id, error=ErrorKind.FORBIDDEN
            )
        return Decision(
            outcome=Outcome.REUSE_DETECTED,
            principal_id=principal_id,
            # clearing an empty set is a no-op
            credentials=current.cleared() if len(current) else None,
            error=ErrorKind.FORBIDDEN,
        )

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, presented: str, *, principal_id: str, current: CredentialSet) -> Decision:
        """Drop ``presented`` from the set if honored; absent tokens are fine."""
        token_id = token_id_for(presented)
        if not current.contains(token_id):
            return Decision(outcome=Outcome.UNCHANGED, principal_id=principal_id)
        return Decision(
            outcome=Outcome.LOGGED_OUT,
            principal_id=principal_id,
            credentials=current.without(token_id),
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _mint(self, principal_id: str, *, fresh: bool) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue(
                principal_id, TokenClass.ACCESS, self.config.access_ttl, fresh=fresh
            ),
            refresh_token=self.codec.issue(
                principal_id, TokenClass.REFRESH, self.config.refresh_ttl
            ),
        )
