"""Shared plumbing for application services: units of work and error mapping."""

from __future__ import annotations

from collections.abc import Callable

from refreshguard.core import errors as api_errors
from refreshguard.services._shared.errors import (
    ErrorKind,
    NotFoundError,
    ServiceError,
    TransientError,
)
from refreshguard.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

# HTTP error built for each service error kind
_BY_KIND: dict[ErrorKind, Callable[[ServiceError], api_errors.APIError]] = {
    ErrorKind.BAD_REQUEST: lambda exc: api_errors.APIError(str(exc) or None),
    ErrorKind.UNAUTHORIZED: lambda exc: api_errors.Unauthorized(str(exc) or None),
    # Fixed message: a refused token never says which check failed
    ErrorKind.FORBIDDEN: lambda exc: api_errors.Forbidden(),
    ErrorKind.CONFLICT: lambda exc: api_errors.Conflict(str(exc)),
    ErrorKind.TRANSIENT: lambda exc: api_errors.ServiceUnavailable(
        retry_after=exc.retry_after if isinstance(exc, TransientError) else 1
    ),
}


class BaseService:
    """
    Base class for application services.

    Services reach storage through a Unit of Work (or a session repository
    port) and raise :class:`ServiceError`; route handlers call
    :meth:`translate_exceptions` to obtain the matching HTTP error.
    """

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """Open a read-write Unit of Work on the request session."""
        return SQLAlchemyUnitOfWork()

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map a service error to its :class:`~refreshguard.core.errors.APIError`.

        :param exc: Exception caught around a service call.
        :returns: The HTTP error to raise, or ``exc`` itself when it is not a
            service error.
        """
        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))
        if isinstance(exc, ServiceError):
            return _BY_KIND[exc.kind](exc)
        return exc
