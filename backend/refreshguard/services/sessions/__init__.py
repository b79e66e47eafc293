"""Refresh-token rotation: credential sets, token codec, engine and service."""

from __future__ import annotations

from .codec import TokenClaims, TokenCodec, Verification, VerificationError
from .credential_set import CredentialSet, token_id_for
from .dto import RefreshEvent, SessionTokenConfig, SessionView, TokenPair
from .engine import Decision, Outcome, RotationEngine
from .service import SessionService

__all__ = [
    "CredentialSet",
    "Decision",
    "Outcome",
    "RefreshEvent",
    "RotationEngine",
    "SessionService",
    "SessionTokenConfig",
    "SessionView",
    "TokenClaims",
    "TokenCodec",
    "TokenPair",
    "Verification",
    "VerificationError",
    "token_id_for",
]
