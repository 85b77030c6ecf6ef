"""
Marker Map Moderation Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])

Map and thread options mirror the board-level settings moderators manage:
starting view, zoom bounds, paging, thread mirroring and the retention
window for reviewed suggestions.
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'markermap_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name, "")
    return int(raw) if raw.strip() else default


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # Redis (rate-limit storage for the API and the geocoder)
    REDIS_URL = os.getenv("REDIS_URL", "")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL") or "memory://"

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Board identity (used in the geocoder User-Agent and thread links)
    BOARD_TITLE = os.getenv("BOARD_TITLE", "Community Map")
    BOARD_URL = os.getenv("BOARD_URL", "http://localhost:5000")
    APP_VERSION = "1.0.0"

    # ── Map display ──────────────────────────────────────────────────────
    MAP_STARTING_LAT = os.getenv("MAP_STARTING_LAT", "51.505")
    MAP_STARTING_LNG = os.getenv("MAP_STARTING_LNG", "-0.09")
    MAP_STARTING_ZOOM = os.getenv("MAP_STARTING_ZOOM", "13")
    MAP_MIN_ZOOM = os.getenv("MAP_MIN_ZOOM", "3")
    MAP_MAX_ZOOM = os.getenv("MAP_MAX_ZOOM", "18")
    MAP_MARKERS_PER_PAGE = _env_int("MAP_MARKERS_PER_PAGE", 20)
    MAP_PUBLIC_URL = os.getenv("MAP_PUBLIC_URL", "http://localhost:5000/map")
    THREAD_URL_TEMPLATE = os.getenv("THREAD_URL_TEMPLATE", "{board_url}/threads/{thread_id}")

    # ── Thread mirroring ─────────────────────────────────────────────────
    ENABLE_THREAD_CREATION = _env_bool("ENABLE_THREAD_CREATION")
    THREAD_CREATION_FORUM_ID = _env_int("THREAD_CREATION_FORUM_ID")
    USE_SPECIFIC_ACCOUNT_FOR_THREADS = _env_bool("USE_SPECIFIC_ACCOUNT_FOR_THREADS")
    SPECIFIC_ACCOUNT_FOR_THREAD = _env_int("SPECIFIC_ACCOUNT_FOR_THREAD")
    FALLBACK_THREAD_USER_ID = _env_int("FALLBACK_THREAD_USER_ID", 1)

    # ── Retention ────────────────────────────────────────────────────────
    SUGGESTION_RETENTION_DAYS = _env_int("SUGGESTION_RETENTION_DAYS", 30)

    # ── Geocoding (Nominatim) ────────────────────────────────────────────
    GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
    GEOCODER_TIMEOUT = int(os.getenv("GEOCODER_TIMEOUT", "10"))
    GEOCODER_MIN_INTERVAL_SECONDS = int(os.getenv("GEOCODER_MIN_INTERVAL_SECONDS", "2"))
    GEOCODER_MAX_WAIT_SECONDS = float(os.getenv("GEOCODER_MAX_WAIT_SECONDS", "5"))


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    # Auth disabled in test environment
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    ENABLE_THREAD_CREATION = False
    THREAD_CREATION_FORUM_ID = None
    USE_SPECIFIC_ACCOUNT_FOR_THREADS = False
    SPECIFIC_ACCOUNT_FOR_THREAD = None
    MAP_PUBLIC_URL = "http://testserver/map"
    BOARD_URL = "http://testserver"
    GEOCODER_MAX_WAIT_SECONDS = 0


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
