"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Loads .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_minutes(name: str, default: int) -> timedelta:
    """Read a lifetime expressed in whole minutes.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: int
        Minutes used when the variable is unset or blank.

    Returns
    -------
    datetime.timedelta
        Parsed lifetime.
    """
    raw = (os.getenv(name) or "").strip()
    return timedelta(minutes=int(raw) if raw else default)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    ACCESS_TOKEN_SECRET / REFRESH_TOKEN_SECRET: str
        Distinct HMAC secrets for the two token classes.
    ACCESS_TOKEN_KEY_ID / REFRESH_TOKEN_KEY_ID: str
        ``kid`` header stamped on newly issued tokens.
    ACCESS_TOKEN_RETIRED_KEYS / REFRESH_TOKEN_RETIRED_KEYS: str
        ``kid:secret`` pairs (comma separated) still accepted for verification.
    ACCESS_TOKEN_TTL / REFRESH_TOKEN_TTL: timedelta
        Token lifetimes (``*_EXPIRES_IN`` env vars, in minutes).
    SESSION_STORE: str
        Credential set backend: ``sqlalchemy`` | ``redis`` | ``memory``.
    ROTATION_MAX_ATTEMPTS: int
        Compare-and-swap attempts before a rotation reports a conflict.
    SESSION_STORE_TIMEOUT_SECONDS: float
        Budget for one read-modify-write cycle against the store.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # Token signing (distinct material per token class)
    ACCESS_TOKEN_SECRET = os.getenv(
        "ACCESS_TOKEN_SECRET", "CHANGE_ME_ACCESS_TOKEN_SECRET_0123456789"
    )
    ACCESS_TOKEN_KEY_ID = os.getenv("ACCESS_TOKEN_KEY_ID", "access-1")
    ACCESS_TOKEN_RETIRED_KEYS = os.getenv("ACCESS_TOKEN_RETIRED_KEYS", "")
    REFRESH_TOKEN_SECRET = os.getenv(
        "REFRESH_TOKEN_SECRET", "CHANGE_ME_REFRESH_TOKEN_SECRET_0123456789"
    )
    REFRESH_TOKEN_KEY_ID = os.getenv("REFRESH_TOKEN_KEY_ID", "refresh-1")
    REFRESH_TOKEN_RETIRED_KEYS = os.getenv("REFRESH_TOKEN_RETIRED_KEYS", "")
    ACCESS_TOKEN_TTL = env_minutes("ACCESS_TOKEN_EXPIRES_IN", 15)
    REFRESH_TOKEN_TTL = env_minutes("REFRESH_TOKEN_EXPIRES_IN", 24 * 60)
    JWT_ISSUER = os.getenv("JWT_ISSUER") or None
    JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "0"))

    # Flask-JWT-Extended (authenticates API calls with access tokens)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_SECRET_KEY = ACCESS_TOKEN_SECRET
    JWT_TOKEN_LOCATION = ["headers", "cookies"]
    JWT_ACCESS_COOKIE_NAME = "access_token"
    JWT_REFRESH_COOKIE_NAME = "refresh_token"
    JWT_COOKIE_SECURE = env_bool("JWT_COOKIE_SECURE", True)
    JWT_COOKIE_SAMESITE = os.getenv("JWT_COOKIE_SAMESITE", "None")
    # Tokens are minted by TokenCodec without a csrf claim
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_DECODE_ISSUER = JWT_ISSUER
    JWT_DECODE_LEEWAY = JWT_LEEWAY_SECONDS

    # Credential set store
    SESSION_STORE = os.getenv("SESSION_STORE", "sqlalchemy").strip().lower()
    REDIS_URL = os.getenv("REDIS_URL") or None
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2.0"))
    ROTATION_MAX_ATTEMPTS = int(os.getenv("ROTATION_MAX_ATTEMPTS", "3"))
    SESSION_STORE_TIMEOUT_SECONDS = float(os.getenv("SESSION_STORE_TIMEOUT_SECONDS", "5.0"))

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Rate limiting
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # Trusted reverse proxies in front of the app (0 disables ProxyFix)
    PROXYFIX_HOPS = int(os.getenv("PROXYFIX_HOPS", "1"))

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and allows plain-HTTP cookies so the
    browser flow works against ``localhost``.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    JWT_COOKIE_SECURE = env_bool("JWT_COOKIE_SECURE", False)
    JWT_COOKIE_SAMESITE = os.getenv("JWT_COOKIE_SAMESITE", "Lax")
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables rate limiting.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Pins token secrets so tests never depend on the environment.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS: dict[str, object] = {}
    ACCESS_TOKEN_SECRET = "testing-access-secret-0123456789abcdef"
    ACCESS_TOKEN_KEY_ID = "access-test"
    ACCESS_TOKEN_RETIRED_KEYS = ""
    REFRESH_TOKEN_SECRET = "testing-refresh-secret-0123456789abcdef"
    REFRESH_TOKEN_KEY_ID = "refresh-test"
    REFRESH_TOKEN_RETIRED_KEYS = ""
    ACCESS_TOKEN_TTL = timedelta(minutes=15)
    REFRESH_TOKEN_TTL = timedelta(days=1)
    JWT_ISSUER = None
    JWT_DECODE_ISSUER = None
    JWT_SECRET_KEY = ACCESS_TOKEN_SECRET
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = "Lax"
    SESSION_STORE = "sqlalchemy"
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled and bounds how long a request may wait
    for a pooled database connection.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_timeout": float(os.getenv("SESSION_STORE_TIMEOUT_SECONDS", "5.0")),
    }


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
