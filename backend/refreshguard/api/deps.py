"""Request helpers shared by the v1 route handlers."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from marshmallow import Schema

from refreshguard.schemas import RefreshSchema
from refreshguard.services._shared.errors import BadRequestError

F = TypeVar("F", bound=Callable[..., Any])

log = logging.getLogger("refreshguard.api")
refresh_schema = RefreshSchema()


def presented_refresh_token(*, allow_body: bool = True) -> str | None:
    """Return the refresh token sent by the client, cookie first.

    :param allow_body: Also accept ``{"refresh_token": ...}`` in a JSON body,
        for clients that cannot keep cookies.
    :returns: The raw token, or ``None`` when the request carries none.
    """
    cookie = request.cookies.get(current_app.config.get("JWT_REFRESH_COOKIE_NAME", "refresh_token"))
    if cookie:
        return cookie
    if not (allow_body and request.is_json):
        return None
    return refresh_schema.load(request.get_json(silent=True) or {}).get("refresh_token") or None


def json_response(payload: Any, *, status: int = 200) -> Response:
    response = jsonify(payload)
    response.status_code = status
    return response


def empty_response(status: int = 204) -> Response:
    return current_app.response_class(status=status)


def timing(func: F) -> F:
    """Log how long the wrapped handler took, even when it raises."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        started = time.perf_counter_ns()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter_ns() - started) / 1_000_000
            log.debug(
                "request.elapsed",
                extra={"endpoint": request.endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


def load_body(schema: Schema) -> dict[str, Any]:
    """Validate the JSON body against ``schema``.

    Absent or blank required fields are a :class:`BadRequestError` (400);
    present but invalid values raise Marshmallow's ``ValidationError`` (422).
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    missing = [
        name
        for name, field in schema.fields.items()
        if field.required and data.get(field.data_key or name) in (None, "")
    ]
    if missing:
        raise BadRequestError(f"Missing required field(s): {', '.join(missing)}")
    return schema.load(data)
