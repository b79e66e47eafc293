"""Problem Details (RFC 7807) responses for every error the API emits.

Handlers registered here turn exceptions into ``application/problem+json``
bodies carrying a stable ``code`` and the request correlation id. Client
errors are logged at WARNING; server-side failures at ERROR with traceback.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from refreshguard.core.logger import ensure_request_id

log = logging.getLogger(__name__)

# Machine-readable ``code`` for statuses raised outside APIError
STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    422: "unprocessable_entity",
    429: "too_many_requests",
    500: "internal_server_error",
    503: "service_unavailable",
}


def problem_body(
    status: int, code: str, detail: str, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    """
    Build the problem document for the current request.

    :param status: HTTP status; its reason phrase becomes ``title``.
    :param code: Stable snake_case identifier clients may branch on.
    :param detail: Client-safe explanation.
    :param details: Optional structured context such as field errors.
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": int(status),
        "detail": detail,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    return body


def _render(
    body: dict[str, Any],
    *,
    headers: dict[str, str] | None = None,
    exc_info: bool = False,
) -> tuple[Response, int]:
    status = int(body["status"])
    log.log(
        logging.ERROR if status >= 500 else logging.WARNING,
        "%s: status=%s detail=%s request_id=%s",
        body["code"],
        status,
        body["detail"],
        body["request_id"],
        exc_info=exc_info,
    )
    response = jsonify(body)
    response.mimetype = "application/problem+json"
    response.headers.update(headers or {})
    return response, status


class APIError(Exception):
    """
    Error raised by route handlers and rendered as a problem response.

    Subclasses pin ``status_code``, ``code`` and ``default_message``; the
    constructor arguments override them per instance.

    Parameters
    ----------
    message : str, optional
        Client-facing ``detail``.
    status_code, code : optional
        Override the class defaults.
    details : dict[str, Any] | None, optional
        Structured context added to the body.
    headers : dict[str, str] | None, optional
        Extra response headers (e.g. ``Retry-After``).
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    code: str = "bad_request"
    default_message: str = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status_code = int(status_code or self.status_code)
        self.code = code or self.code
        self.details = details or {}
        self.headers = headers or {}

    def to_problem(self) -> dict[str, Any]:
        return problem_body(self.status_code, self.code, self.message, self.details)


class NotFound(APIError):
    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class Conflict(APIError):
    """Uniqueness collisions and compare-and-swap races lost too often."""

    status_code = HTTPStatus.CONFLICT
    code = "conflict"
    default_message = "Conflict"


class Unauthorized(APIError):
    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(APIError):
    """A presented credential was refused."""

    status_code = HTTPStatus.FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class ServiceUnavailable(APIError):
    """Retryable backend failure; ``retry_after`` seconds go in the header."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    code = "service_unavailable"
    default_message = "Service temporarily unavailable"

    def __init__(self, message: str | None = None, *, retry_after: int = 1) -> None:
        super().__init__(message, headers={"Retry-After": str(retry_after)})


def api_error_response(err: APIError) -> tuple[Response, int]:
    """Render ``err``; also used directly by handlers that post-process the response."""
    return _render(err.to_problem(), headers=err.headers)


def _http_exception(err: HTTPException) -> tuple[Response, int]:
    status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
    code = STATUS_CODES.get(status, "error")
    if status == HTTPStatus.NOT_FOUND and request:
        detail = f"Route '{request.path}' not found"
    else:
        detail = (err.description or code.replace("_", " ").capitalize()).strip()
    return _render(problem_body(status, code, detail))


def _validation_error(err: ValidationError) -> tuple[Response, int]:
    body = problem_body(
        HTTPStatus.UNPROCESSABLE_ENTITY,
        "validation_error",
        "Validation failed",
        {"errors": err.messages},
    )
    return _render(body)


def _integrity_error(err: IntegrityError) -> tuple[Response, int]:
    # Constraint names stay in the log, never in the body
    body = problem_body(HTTPStatus.CONFLICT, "conflict", "Resource conflict")
    return _render(body, exc_info=True)


def _operational_error(err: OperationalError) -> tuple[Response, int]:
    body = problem_body(
        HTTPStatus.SERVICE_UNAVAILABLE, "service_unavailable", "Service temporarily unavailable"
    )
    return _render(body, headers={"Retry-After": "1"}, exc_info=True)


def _unexpected_error(err: Exception) -> tuple[Response, int]:
    body = problem_body(
        HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error"
    )
    return _render(body, exc_info=True)


def init_app(app: Flask) -> None:
    """Register the problem handlers, most specific exception first."""
    app.register_error_handler(APIError, api_error_response)
    app.register_error_handler(HTTPException, _http_exception)
    app.register_error_handler(ValidationError, _validation_error)
    app.register_error_handler(IntegrityError, _integrity_error)
    app.register_error_handler(OperationalError, _operational_error)
    app.register_error_handler(Exception, _unexpected_error)
