"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from importlib import import_module

from flask import Flask

from refreshguard.core.config import BaseConfig, get_config
from refreshguard.core.logger import configure_logging

# Modules exposing ``init_app(app)``, in wiring order. Proxy handling wraps the
# WSGI app first; extensions exist before the session runtime reads them;
# error handlers come after the blueprints they cover.
INITIALIZERS: tuple[str, ...] = (
    "refreshguard.core.proxy",
    "refreshguard.core.extensions",
    "refreshguard.core.security",
    "refreshguard.core.logger",
    "refreshguard.core.cors",
    "refreshguard.api",
    "refreshguard.core.errors",
    "refreshguard.cli",
)


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config object or import path; ``APP_ENV`` picks one when omitted.
    :param instance_relative_config: Look for overrides in the instance folder.
    :param instance_config_filename: Optional override file read from that folder.

    Process-scoped state (database engine, Redis client, token codec and
    credential store) is created here, before the first request, and released
    by :func:`refreshguard.core.extensions.shutdown`.
    """
    app = Flask(__name__, instance_relative_config=instance_relative_config)
    app.config.from_object(config if config is not None else get_config())
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    for module in INITIALIZERS:
        import_module(module).init_app(app)
    app.logger.debug("application ready", extra={"event": "app_created"})
    return app
