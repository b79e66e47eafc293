# refreshguard/services/sessions/codec.py
"""
Signing and verification of access/refresh tokens.

The codec is pure over its injected :class:`KeyProvider` and :class:`Clock`:
it never reads the wall clock nor performs I/O, so it is thread-safe and
fully deterministic under a :class:`ManualClock`.

Verification never raises for bad input. It returns a :class:`Verification`
carrying either the decoded claims or exactly one :class:`VerificationError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

import jwt

from refreshguard.services._shared.ports import Clock, KeyProvider, TokenClass

REQUIRED_CLAIMS = ("sub", "type", "jti", "iat", "exp")


class VerificationError(str, Enum):
    """Why a presented token was refused."""

    MALFORMED = "malformed"
    EXPIRED = "expired"
    WRONG_CLASS = "wrong-class"
    BAD_SIGNATURE = "bad-signature"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """
    Verified content of a token.

    :ivar principal_id: Subject (``sub`` claim).
    :ivar token_class: Access or refresh.
    :ivar issued_at: ``iat`` as an aware UTC datetime.
    :ivar expires_at: ``exp`` as an aware UTC datetime.
    :ivar jti: Unique token id; makes every minted token structurally new.
    """

    principal_id: str
    token_class: TokenClass
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True, slots=True)
class Verification:
    """Typed verification result: ``claims`` on success, ``error`` otherwise."""

    claims: TokenClaims | None = None
    error: VerificationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.claims is not None

    @classmethod
    def failed(cls, error: VerificationError) -> Verification:
        return cls(error=error)


class TokenCodec:
    """
    Issue and verify signed tokens for both token classes.

    Access and refresh tokens are signed with distinct keys and carry a
    ``type`` claim, so an access token can never pass as a refresh token.
    Each token's header names its key (``kid``); verification resolves the key
    among the active and retired keys of the *expected* class.

    Access tokens follow the Flask-JWT-Extended claim layout (``sub`` string,
    ``type``, ``jti``, ``fresh``, ``iat``, ``exp``) so ``@jwt_required``
    endpoints accept them unchanged.
    """

    def __init__(
        self,
        keys: KeyProvider,
        clock: Clock,
        *,
        algorithm: str = "HS256",
        issuer: str | None = None,
        leeway: timedelta = timedelta(0),
    ) -> None:
        self.keys = keys
        self.clock = clock
        self.algorithm = algorithm
        self.issuer = issuer
        self.leeway = leeway

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(
        self,
        principal_id: str,
        token_class: TokenClass,
        ttl: timedelta,
        *,
        fresh: bool = False,
    ) -> str:
        """
        Mint a new signed token.

        :param principal_id: Subject of the token.
        :param token_class: :attr:`TokenClass.ACCESS` or :attr:`TokenClass.REFRESH`.
        :param ttl: Lifetime counted from the codec clock.
        :param fresh: Flask-JWT-Extended freshness flag (access tokens only).
        :returns: Encoded JWT.
        """
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive.")
        now = self.clock.now()
        key = self.keys.signing_key(token_class)
        payload: dict[str, object] = {
            "sub": str(principal_id),
            "type": token_class.value,
            "jti": uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        if token_class is TokenClass.ACCESS:
            payload["fresh"] = fresh
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, key.secret, algorithm=self.algorithm, headers={"kid": key.kid})

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify(
        self,
        token: str,
        expected_class: TokenClass,
        *,
        check_expiry: bool = True,
    ) -> Verification:
        """
        Verify signature, class and (optionally) expiry of ``token``.

        :param token: Encoded JWT.
        :param expected_class: Class the caller requires.
        :param check_expiry: ``False`` checks the signature only; used to
            attribute a replayed refresh token to its subject.
        :returns: :class:`Verification` (never raises for bad tokens).
        """
        if not token or not isinstance(token, str):
            return Verification.failed(VerificationError.MALFORMED)
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError:
            return Verification.failed(VerificationError.MALFORMED)
        if header.get("alg") != self.algorithm:
            return Verification.failed(VerificationError.BAD_SIGNATURE)

        kid = header.get("kid")
        key = self.keys.verification_key(expected_class, kid)
        if key is None:
            other = (
                TokenClass.ACCESS if expected_class is TokenClass.REFRESH else TokenClass.REFRESH
            )
            if kid is not None and self.keys.verification_key(other, kid) is not None:
                return Verification.failed(VerificationError.WRONG_CLASS)
            return Verification.failed(VerificationError.BAD_SIGNATURE)

        try:
            payload = jwt.decode(
                token,
                key.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={
                    # expiry is checked below against the injected clock
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidIssuerError):
            return Verification.failed(VerificationError.BAD_SIGNATURE)
        except jwt.InvalidTokenError:
            return Verification.failed(VerificationError.MALFORMED)

        if payload.get("type") != expected_class.value:
            return Verification.failed(VerificationError.WRONG_CLASS)

        try:
            claims = TokenClaims(
                principal_id=self._subject(payload["sub"]),
                token_class=expected_class,
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
                jti=str(payload["jti"]),
            )
        except (TypeError, ValueError, OverflowError):
            return Verification.failed(VerificationError.MALFORMED)

        if check_expiry and claims.expires_at <= self.clock.now() - self.leeway:
            return Verification.failed(VerificationError.EXPIRED)
        return Verification(claims=claims)

    @staticmethod
    def _subject(raw: object) -> str:
        if not isinstance(raw, str) or not raw:
            raise ValueError("Token subject must be a non-empty string.")
        return raw
