# refreshguard/services/sessions/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RefreshEvent:
    """
    Inbound session event as seen by the rotation engine.

    :param presented_token: Encoded refresh JWT sent by the client, if any.
    :type presented_token: str | None
    :param principal_id: Principal the event is about: the authenticated user
        on login, the store owner of the presented token on refresh, ``None``
        when no owner is known.
    :type principal_id: str | None
    """

    presented_token: str | None = None
    principal_id: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Freshly minted access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class SessionView:
    """
    Diagnostic view of one principal's honored refresh tokens.

    :param principal_id: Owner of the set.
    :param token_ids: Honored identifiers, oldest first.
    :param version: Store version of the set.
    """

    principal_id: str
    token_ids: tuple[str, ...]
    version: int


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionTokenConfig:
    """
    Token emission configuration.

    :param access_ttl: Access token lifetime.
    :type access_ttl: timedelta
    :param refresh_ttl: Refresh token lifetime.
    :type refresh_ttl: timedelta
    """

    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=1)
