"""
Marker Map Moderation Platform
Authentication, identity & permission middleware.

Provides:
    - API key authentication via X-API-Key header or ?api_key= query param
    - Role-based access control (RBAC) decorator
    - Current board user from the X-User-Id header
    - ``acting_as`` scope for work done on behalf of another account
      (thread creation by the configured system account)

Security model:
    - Reading the map and submitting suggestions needs the 'member' role
    - Managing markers and reviewing suggestions needs 'moderator'
    - API keys and roles are configured via environment variables

Configuration (env vars):
    API_KEYS         : comma-separated list of valid API keys
                        e.g. "key1:moderator,key2:member"
                        Format: "<key>:<role>" where role is moderator|member
    API_AUTH_ENABLED : set to "false" to disable auth (development only)
"""

import contextlib
import functools
import logging
import os
from typing import Optional

from flask import current_app, g, has_request_context, jsonify, request

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"moderator", "member"}

# Role hierarchy: moderator > member
ROLE_HIERARCHY = {
    "moderator": {"moderator", "member"},
    "member": {"member"},
}


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS env var into {key: role} mapping.

    Format: "key1:moderator,key2:member"
    Keys without a role default to 'member'.
    """
    raw = os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, role = entry.rsplit(":", 1)
            role = role.strip().lower()
            if role not in ROLES:
                logger.warning("Unknown role '%s' for API key, defaulting to 'member'", role)
                role = "member"
            keys[key.strip()] = role
        else:
            keys[entry] = "member"
    return keys


def _is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in (
            "false", "0", "no", "off",
        )
    except RuntimeError:
        # Outside app context
        return True


def _get_api_key_from_request() -> Optional[str]:
    """Extract API key from request header or query parameter."""
    key = request.headers.get("X-API-Key", "").strip()
    if key:
        return key
    return request.args.get("api_key", "").strip() or None


def _get_user_id_from_request() -> Optional[int]:
    raw = request.headers.get("X-User-Id", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric X-User-Id header: %s", raw[:20])
        return None


# ── Identity helpers ─────────────────────────────────────────────────────────

def current_user_id() -> Optional[int]:
    """Return the identity work is currently performed as.

    An active ``acting_as`` scope wins over the request's own user.
    """
    acting = getattr(g, "acting_user_id", None)
    if acting is not None:
        return acting
    return getattr(g, "current_user_id", None)


@contextlib.contextmanager
def acting_as(user_id: int):
    """Temporarily perform work as ``user_id``; the previous identity is restored."""
    previous = getattr(g, "acting_user_id", None)
    g.acting_user_id = user_id
    try:
        yield user_id
    finally:
        g.acting_user_id = previous


def can_manage_map_markers() -> bool:
    role = getattr(g, "current_user_role", None)
    return "moderator" in ROLE_HIERARCHY.get(role, set())


# ── Role decorator ───────────────────────────────────────────────────────────

def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @map_bp.route("/markers", methods=["POST"])
        @require_role("moderator")
        def create_marker(): ...

    Role hierarchy: moderator > member
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_role = getattr(g, "current_user_role", None)
            if not user_role:
                return jsonify({"error": "Authentication required"}), 401

            allowed = ROLE_HIERARCHY.get(user_role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    user_role, minimum_role, request.path,
                )
                return jsonify({"error": "Insufficient permissions"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


require_moderator = require_role("moderator")


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Attaches a before_request hook for API routes
    - Skips the health check and pre-flight requests
    """
    @app.before_request
    def _before_request_auth():
        if not has_request_context() or not request.path.startswith("/api/v1/"):
            return None
        if request.path == "/api/v1/health" or request.method == "OPTIONS":
            return None

        g.current_user_id = _get_user_id_from_request()

        if not _is_auth_enabled():
            g.current_user_role = "moderator"
            g.api_key = "dev-mode"
            return None

        api_key = _get_api_key_from_request()
        if not api_key:
            return jsonify({"error": "Authentication required. Provide X-API-Key header."}), 401

        api_keys = _parse_api_keys()
        if not api_keys:
            logger.error("API_KEYS env var is not configured but API_AUTH_ENABLED=true")
            return jsonify({"error": "Server authentication not configured"}), 500

        role = api_keys.get(api_key)
        if role is None:
            logger.warning("Invalid API key attempt: %s...", api_key[:8])
            return jsonify({"error": "Invalid API key"}), 401

        g.current_user_role = role
        g.api_key = api_key
        return None

    logger.info("Auth middleware installed (enabled=%s)", _is_auth_enabled())
