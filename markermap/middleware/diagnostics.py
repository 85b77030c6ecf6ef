"""
Startup diagnostics: runs once when the Flask app starts.

Checks the database, the map options moderators configure (starting
coordinates and zoom must be numeric and in range, the thread forum must
exist when thread creation is on) and logs a summary banner.
"""

import logging
import sys

from flask import Flask

from markermap.models import db

logger = logging.getLogger(__name__)


def check_map_options(config) -> list[str]:
    """Return one message per invalid map option (empty when all are valid)."""
    issues: list[str] = []

    numeric = {}
    for key in ("MAP_STARTING_LAT", "MAP_STARTING_LNG", "MAP_STARTING_ZOOM",
                "MAP_MIN_ZOOM", "MAP_MAX_ZOOM"):
        raw = config.get(key)
        try:
            numeric[key] = float(raw)
        except (TypeError, ValueError):
            issues.append(f"{key} must be numeric (got {raw!r})")

    lat = numeric.get("MAP_STARTING_LAT")
    if lat is not None and not -90 <= lat <= 90:
        issues.append(f"MAP_STARTING_LAT must be between -90 and 90 (got {lat})")
    lng = numeric.get("MAP_STARTING_LNG")
    if lng is not None and not -180 <= lng <= 180:
        issues.append(f"MAP_STARTING_LNG must be between -180 and 180 (got {lng})")
    min_zoom, max_zoom = numeric.get("MAP_MIN_ZOOM"), numeric.get("MAP_MAX_ZOOM")
    if min_zoom is not None and max_zoom is not None and min_zoom > max_zoom:
        issues.append("MAP_MIN_ZOOM must not exceed MAP_MAX_ZOOM")

    if config.get("ENABLE_THREAD_CREATION"):
        forum_id = config.get("THREAD_CREATION_FORUM_ID")
        if not forum_id:
            issues.append("Thread creation enabled but THREAD_CREATION_FORUM_ID is not set")
        else:
            from markermap.models.forum import Forum
            if db.session.get(Forum, forum_id) is None:
                issues.append(f"THREAD_CREATION_FORUM_ID {forum_id} does not match a forum")
    return issues


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Redis ────────────────────────────────────────────────────
        redis_url = app.config.get("REDIS_URL", "")
        redis_status = "not configured"
        if redis_url:
            try:
                import redis as redis_lib
                redis_lib.from_url(redis_url, socket_timeout=2).ping()
                redis_status = "ok"
            except Exception:
                redis_status = "unreachable"
                issues.append("Redis unreachable: rate limits and the geocoder budget will fail")

        # ── Map options ──────────────────────────────────────────────
        if db_status == "ok":
            issues.extend(check_map_options(app.config))

        auth_enabled = str(app.config.get("API_AUTH_ENABLED", "false")).lower() == "true"
        threads = "ENABLED" if app.config.get("ENABLE_THREAD_CREATION") else "DISABLED"

        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  Marker Map Platform · Startup Diagnostics                   ║
╠══════════════════════════════════════════════════════════════╣
║  Python      : {py:<46s}║
║  Debug       : {str(app.debug):<46s}║
║  Database    : {f'{db_type} ({db_status})':<46s}║
║  Redis       : {redis_status:<46s}║
║  Auth        : {'ENABLED' if auth_enabled else 'DISABLED':<46s}║
║  Threads     : {threads:<46s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
