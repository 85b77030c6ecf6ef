"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in markermap/__init__.py with no default limits and shares its
storage (memory:// or Redis) with the geocoding gateway's upstream budget.

Usage:
    from markermap.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

MAP_READ_LIMIT = "200/minute"
MAP_WRITE_LIMIT = "60/minute"
ADMIN_LIMIT = "20/minute"


def rate_limit_key():
    """Rate limit key: the board user when known, else remote IP."""
    user_id = getattr(g, "current_user_id", None)
    if user_id:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per user, falling back to remote IP):
        - Map endpoints:    200/minute overall, 60/minute for mutations
        - Admin endpoints:  20/minute (import/export are heavy)

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("map")
    if bp:
        limiter.limit(MAP_READ_LIMIT, key_func=rate_limit_key)(bp)
        limiter.limit(
            MAP_WRITE_LIMIT,
            key_func=rate_limit_key,
            exempt_when=lambda: flask_request.method in ("GET", "HEAD", "OPTIONS"),
        )(bp)

    bp = app.blueprints.get("map_admin")
    if bp:
        limiter.limit(ADMIN_LIMIT, key_func=rate_limit_key)(bp)

    app.logger.info(
        "Rate limiter configured: map read %s, map write %s, admin %s",
        MAP_READ_LIMIT, MAP_WRITE_LIMIT, ADMIN_LIMIT,
    )
