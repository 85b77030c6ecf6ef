"""
Marker Map Moderation Platform
Marker ↔ discussion-thread synchronization.

A marker with ``create_thread`` set is mirrored into a forum thread whose
title carries the marker's lifecycle status as a bracketed prefix:

    "[Active] Lake Park"  →  marker deactivated  →  "[Inactive] Lake Park"

All forum access goes through ``forum_gateway``. Functions here flush but
never commit; ``sync_marker_thread`` wraps one operation in its own
commit/rollback for the best-effort calls made after a marker is saved.

Usage:
    from markermap.services.thread_sync import sync_marker_thread, handle_marker_thread_updates

    sync_marker_thread(marker, handle_marker_thread_updates)
"""

import logging
import re
from datetime import datetime, timezone

from flask import current_app

from markermap.auth import acting_as
from markermap.integrations.forum_gateway import forum_gateway
from markermap.models import db
from markermap.models.marker import MapMarker, MarkerStatus

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(rf"^\[({MarkerStatus.regex_alternation()})\] (.+)$", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════════════════════
#  Title helpers
# ═══════════════════════════════════════════════════════════════════════════

def derive_status(marker, deleted: bool = False) -> MarkerStatus:
    return MarkerStatus.derive(bool(marker.active), bool(marker.create_thread), deleted=deleted)


def format_thread_title(base_title: str, status: MarkerStatus) -> str:
    return f"[{status.value}] {base_title}"


def extract_base_title(title: str) -> str:
    """Strip a recognized status prefix; any other title comes back whole."""
    match = _PREFIX_RE.match(title or "")
    return match.group(2) if match else title


def build_thread_message(marker) -> str:
    """BBCode body of the thread's first post."""
    status = derive_status(marker)
    map_url = f"{current_app.config['MAP_PUBLIC_URL']}?marker={marker.id}"
    updated = datetime.now(timezone.utc).strftime("%b %d, %Y at %H:%M UTC")
    return (
        f"[B]Title:[/B] {marker.title}\n"
        f"[B]Description:[/B] {marker.content or ''}\n"
        f"[B]Location:[/B] {marker.lat}, {marker.lng}\n"
        f"[B]Status:[/B] {status.value}\n"
        f"[B]Type:[/B] {marker.type or ''}\n\n"
        f"[URL={map_url}]View on Map[/URL]\n\n"
        "[CENTER][B]This thread is associated with a map marker[/B][/CENTER]\n"
        f"[CENTER][SIZE=1]Last updated: {updated}[/SIZE][/CENTER]"
    )


def _resolve_thread_author(marker):
    """Configured system account, else the marker owner, else the fallback account."""
    cfg = current_app.config
    user = None
    if cfg.get("USE_SPECIFIC_ACCOUNT_FOR_THREADS"):
        user = forum_gateway.find_user(cfg.get("SPECIFIC_ACCOUNT_FOR_THREAD"))
    elif marker.user_id:
        user = forum_gateway.find_user(marker.user_id)
    if user is None:
        user = forum_gateway.find_user(cfg.get("FALLBACK_THREAD_USER_ID"))
    return user


# ═══════════════════════════════════════════════════════════════════════════
#  Thread operations
# ═══════════════════════════════════════════════════════════════════════════

def create_thread_for_marker(marker, custom_title: str | None = None) -> bool:
    """Create the marker's thread in the configured forum.

    ``marker.thread_id`` is only assigned once the thread exists.
    """
    cfg = current_app.config
    if not cfg.get("ENABLE_THREAD_CREATION"):
        logger.info("Thread creation disabled; skipping marker %s", marker.id,
                    extra={"marker_id": marker.id})
        return False

    forum_id = cfg.get("THREAD_CREATION_FORUM_ID")
    if not forum_id:
        logger.warning("Thread creation skipped: no forum configured",
                       extra={"marker_id": marker.id})
        return False

    forum = forum_gateway.find_forum(forum_id)
    if forum is None:
        logger.error("Thread creation failed: Forum not found with ID %s", forum_id,
                     extra={"marker_id": marker.id, "event_type": "thread.create_failed"})
        return False

    author = _resolve_thread_author(marker)
    if author is None:
        logger.error("Thread creation failed: Could not find a valid user for thread creation",
                     extra={"marker_id": marker.id, "event_type": "thread.create_failed"})
        return False

    with acting_as(author.id):
        title = format_thread_title(custom_title or marker.title, derive_status(marker))
        message = build_thread_message(marker)

        errors = forum_gateway.validate_thread(title, message)
        if errors:
            logger.error("Thread creation validation failed: %s", ", ".join(errors),
                         extra={"marker_id": marker.id, "event_type": "thread.create_failed"})
            return False

        thread = forum_gateway.create_thread(forum, title, message)
        if marker.thread_lock:
            forum_gateway.set_locked(thread, True)

    marker.thread_id = thread.id
    db.session.flush()
    logger.info("Thread %s created for marker %s", thread.id, marker.id,
                extra={"marker_id": marker.id, "thread_id": thread.id,
                       "event_type": "thread.created"})
    return True


def update_thread(marker, update_content: bool = True, update_title: bool = True) -> bool:
    """Refresh the first post, lock state and status prefix of the marker's thread."""
    thread = forum_gateway.find_thread(marker.thread_id)
    if thread is None:
        return False

    success = True
    if update_content and not forum_gateway.replace_first_post(thread, build_thread_message(marker)):
        logger.warning("Thread %s has no first post to update", thread.id,
                       extra={"marker_id": marker.id, "thread_id": thread.id})
        success = False

    forum_gateway.set_locked(thread, bool(marker.thread_lock))

    if update_title:
        base = extract_base_title(marker.title)
        forum_gateway.set_title(thread, format_thread_title(base, derive_status(marker)))

    return success


def mark_thread_as_deleted(marker) -> bool:
    thread = forum_gateway.find_thread(marker.thread_id)
    if thread is None:
        return False
    base = extract_base_title(thread.title)
    forum_gateway.set_title(thread, format_thread_title(base, MarkerStatus.DELETED))
    return True


def handle_marker_thread_updates(marker) -> bool:
    if marker.create_thread and not marker.thread_id:
        return create_thread_for_marker(marker)
    if marker.thread_id:
        return update_thread(marker)
    return True


def sync_marker_thread(marker, operation=handle_marker_thread_updates, **kwargs) -> bool:
    """Run one thread operation in its own commit; failures are logged, never raised."""
    try:
        ok = operation(marker, **kwargs)
        db.session.commit()
        return ok
    except Exception:
        db.session.rollback()
        logger.exception("Thread sync failed for marker %s", getattr(marker, "id", None),
                         extra={"marker_id": getattr(marker, "id", None),
                                "event_type": "thread.sync_failed"})
        return False


def retry_pending_thread_creation(limit: int = 50) -> int:
    """Create threads for active markers that asked for one but never got it."""
    markers = (
        MapMarker.query
        .filter(MapMarker.active.is_(True),
                MapMarker.create_thread.is_(True),
                MapMarker.thread_id.is_(None))
        .order_by(MapMarker.id)
        .limit(limit)
        .all()
    )
    created = 0
    for marker in markers:
        if sync_marker_thread(marker, create_thread_for_marker):
            created += 1
    if markers:
        logger.info("Thread retry: %d of %d pending markers now have threads",
                    created, len(markers), extra={"event_type": "thread.retry"})
    return created
