"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. The translation to HTTP responses (RFC 7807) is handled by
``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, *markers: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    markers : str
        Constraint names (PostgreSQL, e.g. ``'uq_users_email'``) or
        ``table.column`` pairs (SQLite reports those instead).

    Returns
    -------
    bool
        True if the IntegrityError matches one of the markers.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    return any(marker.lower() in message for marker in markers)


class ErrorKind(Enum):
    """Externally visible failure classes of the session operations."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    TRANSIENT = "transient"


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - ``kind`` drives the HTTP translation; subclasses override it.
    """

    kind: ErrorKind = ErrorKind.BAD_REQUEST


class BadRequestError(ServiceError):
    """Required input is missing or unusable."""


class UnauthorizedError(ServiceError):
    """No session evidence at all, or the primary credentials were rejected."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(ServiceError):
    """
    A presented refresh token was refused.

    Invalid, expired and reused tokens all raise this same error with the same
    message so callers cannot tell the cases apart.
    """

    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised on uniqueness conflicts or when a compare-and-swap race was lost
    too many times. Callers may retry the whole operation.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    kind = ErrorKind.CONFLICT

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


class TransientError(ServiceError):
    """A dependency was unavailable or too slow; retry with backoff."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str = "Service temporarily unavailable", *, retry_after: int = 1):
        super().__init__(message)
        self.retry_after = retry_after


class StoreUnavailableError(TransientError):
    """Raised by session repository adapters when their backend fails."""


def error_for(kind: ErrorKind) -> ServiceError:
    """Build the canonical exception for an engine-reported error kind."""
    if kind is ErrorKind.FORBIDDEN:
        return ForbiddenError()
    if kind is ErrorKind.UNAUTHORIZED:
        return UnauthorizedError("No session")
    if kind is ErrorKind.CONFLICT:
        return ConflictError("CredentialSet", "concurrent update")
    if kind is ErrorKind.TRANSIENT:
        return TransientError()
    return BadRequestError("Bad request")
