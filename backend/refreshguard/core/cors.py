"""Cross-origin policy for the ``/api`` routes."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

# Response headers readable by cross-origin callers
EXPOSED_HEADERS = ("X-Request-ID", "Retry-After")
ALLOWED_HEADERS = ("Authorization", "Content-Type", "X-Request-ID")


def parse_origins(raw: str | None) -> list[str] | None:
    """Split a comma separated origin list; ``None`` means any origin."""
    origins = [item.strip() for item in (raw or "").split(",") if item.strip()]
    return None if not origins or origins == ["*"] else origins


def init_app(app: Flask) -> None:
    """Apply ``CORS_ORIGINS`` to the API.

    Refresh tokens ride in cookies, so credentialed requests are allowed only
    when an explicit origin list is configured.
    """
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    CORS(
        app,
        resources={r"/api/*": {"origins": origins or "*"}},
        supports_credentials=origins is not None,
        allow_headers=list(ALLOWED_HEADERS),
        expose_headers=list(EXPOSED_HEADERS),
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
