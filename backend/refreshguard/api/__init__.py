"""HTTP surface of the service, mounted per API version."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from flask import Blueprint, Flask

logger = logging.getLogger(__name__)


def mount(app: Flask, *, prefix: str, routes: Iterable[tuple[Blueprint, str]]) -> None:
    """Register ``routes`` below ``prefix``.

    :param app: Application receiving the blueprints.
    :param prefix: Version root such as ``"/api/v1"``; surrounding slashes are ignored.
    :param routes: ``(blueprint, relative_path)`` pairs; an empty path mounts
        the blueprint on the version root itself.
    """
    root = "/" + prefix.strip("/")
    for blueprint, relative in routes:
        url_prefix = root if not relative.strip("/") else f"{root}/{relative.strip('/')}"
        app.register_blueprint(blueprint, url_prefix=url_prefix)
        logger.debug("mounted %s at %s", blueprint.name, url_prefix)


def init_app(app: Flask) -> None:
    """Mount every supported API version."""
    from refreshguard.api.v1 import API_VERSION, ROUTES

    base = app.config.get("API_BASE_PREFIX", "/api")
    mount(app, prefix=f"{base}/{API_VERSION}", routes=ROUTES)


__all__ = ["init_app", "mount"]
