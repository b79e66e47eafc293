"""Authentication endpoints: registration, login, token refresh and logout."""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app
from flask_jwt_extended import (
    get_jwt_identity,
    jwt_required,
    set_access_cookies,
    set_refresh_cookies,
    unset_jwt_cookies,
)

from refreshguard.api.deps import (
    empty_response,
    json_response,
    load_body,
    presented_refresh_token,
    timing,
)
from refreshguard.core.errors import APIError, api_error_response
from refreshguard.core.extensions import limiter
from refreshguard.core.security import session_service
from refreshguard.schemas import LoginSchema, RegisterSchema, TokenPairSchema, UserSchema
from refreshguard.services._shared.errors import ErrorKind, ServiceError
from refreshguard.services.identity import IdentityService, UserAuthIn, UserRegisterIn
from refreshguard.services.sessions import RefreshEvent, TokenPair

log = logging.getLogger(__name__)
bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
token_schema = TokenPairSchema()
user_schema = UserSchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _with_tokens(response: Response, pair: TokenPair) -> Response:
    """Attach the pair as cookies living as long as each token."""

    access_ttl = current_app.config["ACCESS_TOKEN_TTL"]
    refresh_ttl = current_app.config["REFRESH_TOKEN_TTL"]
    set_access_cookies(response, pair.access_token, max_age=int(access_ttl.total_seconds()))
    set_refresh_cookies(response, pair.refresh_token, max_age=int(refresh_ttl.total_seconds()))
    return response


def _refused(err: APIError) -> tuple[Response, int]:
    """Render a refusal and drop the caller's session cookies."""

    response, status = api_error_response(err)
    unset_jwt_cookies(response)
    return response, status


def _failure(service, exc: ServiceError):
    """Translate a service error; a burned token also loses its cookies."""

    translated = service.translate_exceptions(exc)
    if exc.kind is ErrorKind.FORBIDDEN and isinstance(translated, APIError):
        return _refused(translated)
    raise translated from exc


@bp.post("/register")
@timing
def register():
    """Register a new user and start its first session."""

    identity = IdentityService()
    sessions = session_service()
    try:
        payload = load_body(register_schema)
        user = identity.register_user(
            UserRegisterIn(
                email=payload["email"],
                password=payload["password"],
                full_name=payload.get("full_name"),
            )
        )
    except ServiceError as exc:
        raise identity.translate_exceptions(exc) from exc
    try:
        pair = sessions.start(RefreshEvent(principal_id=user.principal_id))
    except ServiceError as exc:
        # The account is committed; the client can log in once the store recovers
        log.warning(
            "register.session_not_started",
            extra={
                "event": "register",
                "principal_id": user.principal_id,
                "outcome": exc.kind.value,
            },
        )
        raise sessions.translate_exceptions(exc) from exc
    body = {"data": user_schema.dump(user), "tokens": token_schema.dump(pair)}
    return _with_tokens(json_response(body, status=201), pair)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue a token pair.

    A refresh cookie left by an earlier session of this browser is dropped
    from the principal's set instead of piling up.
    """

    identity = IdentityService()
    sessions = session_service()
    try:
        data = load_body(login_schema)
        user = identity.authenticate(UserAuthIn(email=data["email"], password=data["password"]))
        pair = sessions.start(
            RefreshEvent(
                principal_id=user.principal_id,
                presented_token=presented_refresh_token(allow_body=False),
            )
        )
    except ServiceError as exc:
        raise identity.translate_exceptions(exc) from exc
    return _with_tokens(json_response({"data": token_schema.dump(pair)}), pair)


@bp.route("/refresh", methods=["GET", "POST"])
@bp.get("/refresh_token")
@timing
def refresh():
    """Rotate the presented refresh token into a new pair."""

    sessions = session_service()
    try:
        pair = sessions.refresh(RefreshEvent(presented_token=presented_refresh_token()))
    except ServiceError as exc:
        return _failure(sessions, exc)
    return _with_tokens(json_response({"data": token_schema.dump(pair)}), pair)


@bp.route("/logout", methods=["GET", "POST"])
@timing
def logout():
    """Forget the presented refresh token; always ``204`` and cleared cookies."""

    sessions = session_service()
    try:
        sessions.logout(RefreshEvent(presented_token=presented_refresh_token()))
    except ServiceError as exc:
        return _failure(sessions, exc)
    response = empty_response(204)
    unset_jwt_cookies(response)
    return response


@bp.get("/me")
@jwt_required()
@timing
def me():
    """Return the authenticated user profile."""

    identity = IdentityService()
    try:
        user = identity.get_user(get_jwt_identity())
    except ServiceError as exc:
        raise identity.translate_exceptions(exc) from exc
    return json_response({"data": user_schema.dump(user)})
