"""
Marker Map Moderation Platform
Marker Store: CRUD, display projection, event queries and expiry cleanup.

Create and validation raise; update and delete are tolerant and return a
sentinel (None / False) after logging, so callers in request handlers and
background jobs can carry on.

Usage:
    from markermap.services import marker_service

    marker = marker_service.create_marker({"lat": 51.5, "lng": -0.09, "title": "Lake Park"})
    marker_service.update_marker(marker.id, {"title": "Lake Park North"})
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from markupsafe import escape
from sqlalchemy.orm import selectinload

from markermap.auth import current_user_id
from markermap.core.exceptions import NotFoundError
from markermap.models import db
from markermap.models.marker import ICON_VARIANT_PREFIXES, MapMarker
from markermap.services.thread_sync import sync_marker_thread, update_thread
from markermap.services.validation import validate_marker_data

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = ("title", "lat", "lng", "content", "icon", "type")
_INCLUDABLE = {"user": MapMarker.user, "thread": MapMarker.thread}

_FALLBACK_LAT = 51.505
_FALLBACK_LNG = -0.09


def _utcnow():
    return datetime.now(timezone.utc)


def _with_includes(query, includes):
    for name in includes or ():
        rel = _INCLUDABLE.get(name)
        if rel is not None:
            query = query.options(selectinload(rel))
    return query


def _snapshot(marker) -> dict:
    return {field: getattr(marker, field) for field in _SNAPSHOT_FIELDS}


# ═══════════════════════════════════════════════════════════════════════════
#  Queries
# ═══════════════════════════════════════════════════════════════════════════

def get_active_markers(type_filter: str | None = None, includes=None) -> list[MapMarker]:
    """Active markers, newest first, optionally restricted to one type."""
    query = MapMarker.query.filter(MapMarker.active.is_(True))
    if type_filter:
        query = query.filter(MapMarker.type == type_filter)
    query = _with_includes(query, includes)
    return query.order_by(MapMarker.create_date.desc(), MapMarker.id.desc()).all()


def get_all_markers(includes=None, page: int = 1, per_page: int | None = None):
    """One page of every marker (active or not), newest first.

    Returns:
        (items, total)
    """
    per_page = per_page or current_app.config.get("MAP_MARKERS_PER_PAGE", 20)
    page = max(int(page or 1), 1)
    query = _with_includes(MapMarker.query, includes)
    total = query.count()
    items = (
        query.order_by(MapMarker.create_date.desc(), MapMarker.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def get_all_markers_unbounded(includes=None) -> list[MapMarker]:
    return _with_includes(MapMarker.query, includes).order_by(MapMarker.id).all()


def get_marker_or_fail(marker_id: int) -> MapMarker:
    marker = db.session.get(MapMarker, marker_id)
    if marker is None:
        raise NotFoundError(resource="MapMarker", resource_id=marker_id)
    return marker


# ═══════════════════════════════════════════════════════════════════════════
#  Mutations
# ═══════════════════════════════════════════════════════════════════════════

def create_marker(data: dict, commit: bool = True) -> MapMarker:
    """Validate and persist a new marker.

    Raises:
        ValidationError: when any field rule fails.
    """
    clean = validate_marker_data(data)
    now = _utcnow()
    marker = MapMarker(**clean)
    if marker.active is None:
        marker.active = True
    marker.create_date = now
    marker.update_date = now
    db.session.add(marker)
    db.session.flush()
    if commit:
        db.session.commit()

    logger.info(
        "Map marker created: %s", marker.title,
        extra={
            "event_type": "marker.created",
            "marker_id": marker.id,
            "context": {
                "lat": marker.lat,
                "lng": marker.lng,
                "type": marker.type,
                "user_id": marker.user_id,
                "thread_id": marker.thread_id,
            },
        },
    )
    return marker


def merged_update_data(marker: MapMarker, data: dict) -> dict:
    """Current marker fields overlaid with ``data``; the payload an update validates."""
    data = data or {}
    merged = {**marker.to_dict(), **data}
    for key in ("start_date", "end_date"):
        if key not in data:
            merged[key] = getattr(marker, key)
    return merged


def update_marker(marker_or_id, data: dict, commit: bool = True) -> MapMarker | None:
    """Apply ``data`` to a marker; returns None (logged) on any failure.

    Fields absent from ``data`` keep their current values.
    """
    try:
        marker = marker_or_id
        if not isinstance(marker, MapMarker):
            marker = get_marker_or_fail(marker_or_id)

        before = _snapshot(marker)
        clean = validate_marker_data(merged_update_data(marker, data))
        for key, value in clean.items():
            setattr(marker, key, value)
        marker.touch()
        db.session.flush()
        if commit:
            db.session.commit()
    except Exception as exc:
        if commit:
            db.session.rollback()
        marker_id = marker_or_id.id if isinstance(marker_or_id, MapMarker) else marker_or_id
        logger.error("Map marker update failed: %s", exc,
                     extra={"event_type": "marker.update_failed", "marker_id": marker_id})
        return None

    logger.info(
        "Map marker updated: %s", marker.title,
        extra={
            "event_type": "marker.updated",
            "marker_id": marker.id,
            "user_id": current_user_id(),
            "context": {"before": before, "after": _snapshot(marker)},
        },
    )
    return marker


def delete_marker(marker_id: int) -> bool:
    try:
        marker = get_marker_or_fail(marker_id)
        details = _snapshot(marker)
        db.session.delete(marker)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.error("Map marker delete failed: %s", exc,
                     extra={"event_type": "marker.delete_failed", "marker_id": marker_id})
        return False

    logger.info("Map marker deleted: %s", details["title"],
                extra={"event_type": "marker.deleted", "marker_id": marker_id,
                       "user_id": current_user_id(), "context": details})
    return True


# ═══════════════════════════════════════════════════════════════════════════
#  Display projection
# ═══════════════════════════════════════════════════════════════════════════

def _text(value):
    return str(escape(value)) if value is not None else None


def _thread_url(thread_id):
    if not thread_id:
        return None
    cfg = current_app.config
    return cfg["THREAD_URL_TEMPLATE"].format(board_url=cfg["BOARD_URL"].rstrip("/"),
                                             thread_id=thread_id)


def _starting_coordinate(key: str, fallback: float) -> float:
    try:
        return float(current_app.config.get(key) or fallback)
    except (TypeError, ValueError):
        return fallback


def process_markers_for_display(markers, can_manage: bool) -> dict:
    """Build the map UI payload; every text field is HTML-escaped.

    Returns:
        {"markers": [...], "marker_types": [...], "all_markers": [...]}
        where ``all_markers`` is only present for moderators.
    """
    public = []
    types: dict = {}

    for marker in markers:
        if not marker.active:
            continue
        public.append({
            "id": marker.id,
            "lat": marker.lat,
            "lng": marker.lng,
            "title": _text(marker.title),
            "content": _text(marker.content),
            "icon": _text(marker.icon),
            "icon_variant": _text(marker.icon_variant),
            "icon_color": _text(marker.icon_color),
            "marker_color": _text(marker.marker_color),
            "type": _text(marker.type),
            "thread_id": marker.thread_id,
            "thread_url": _thread_url(marker.thread_id),
        })
        if marker.type not in types:
            types[marker.type] = {
                "name": _text(marker.type),
                "icon": _text(marker.icon),
                "icon_variant": _text(marker.icon_variant),
                "icon_color": _text(marker.icon_color),
            }

    if not public:
        public.append({
            "id": None,
            "lat": _starting_coordinate("MAP_STARTING_LAT", _FALLBACK_LAT),
            "lng": _starting_coordinate("MAP_STARTING_LNG", _FALLBACK_LNG),
            "title": "Default Marker",
            "content": "No markers currently exist.",
            "icon": "frown",
            "icon_variant": "solid",
            "icon_color": "red",
            "marker_color": "blue",
            "type": "default",
            "thread_id": None,
            "thread_url": None,
        })
        types["default"] = {"name": "default", "icon": "frown",
                            "icon_variant": "solid", "icon_color": "red"}

    result = {"markers": public, "marker_types": list(types.values())}
    if can_manage:
        result["all_markers"] = [
            {key: _text(value) if isinstance(value, str) else value
             for key, value in marker.to_dict().items()}
            for marker in markers
        ]
    return result


# ═══════════════════════════════════════════════════════════════════════════
#  Events
# ═══════════════════════════════════════════════════════════════════════════

def get_event_markers(limit: int = 10) -> list[dict]:
    """Upcoming and running events: active, windowed, not yet ended."""
    now = _utcnow()
    markers = (
        MapMarker.query
        .filter(
            MapMarker.active.is_(True),
            MapMarker.start_date.isnot(None),
            MapMarker.end_date.isnot(None),
            MapMarker.end_date >= now,
        )
        .order_by(MapMarker.start_date.asc(), MapMarker.id.asc())
        .limit(limit)
        .all()
    )
    events = []
    for marker in markers:
        prefix = ICON_VARIANT_PREFIXES.get(marker.icon_variant, "fas")
        events.append({
            "id": marker.id,
            "title": _text(marker.title),
            "lat": marker.lat,
            "lng": marker.lng,
            "type": _text(marker.type),
            "icon": _text(marker.icon),
            "icon_prefix": prefix,
            "icon_class": f"{prefix} fa-{escape(marker.icon or 'map-marker')}",
            "icon_color": _text(marker.icon_color),
            "marker_color": _text(marker.marker_color),
            "start_date": marker.start_date.isoformat(),
            "end_date": marker.end_date.isoformat(),
            "thread_url": _thread_url(marker.thread_id),
        })
    return events


def cleanup_past_events() -> int:
    """Deactivate (never delete) active markers whose event window has ended.

    Returns the number of markers deactivated. Each affected marker's thread
    title is resynced afterwards; thread failures are logged only.
    """
    now = _utcnow()
    expired = (
        MapMarker.query
        .filter(
            MapMarker.active.is_(True),
            MapMarker.end_date.isnot(None),
            MapMarker.end_date < now,
        )
        .all()
    )
    if not expired:
        return 0

    details = []
    for marker in expired:
        marker.active = False
        marker.update_date = now
        details.append({"marker_id": marker.id, "title": marker.title,
                        "end_date": marker.end_date.isoformat()})
    db.session.commit()

    logger.info(
        "Deactivated %d past event marker(s)", len(expired),
        extra={"event_type": "marker.events_expired", "context": {"markers": details}},
    )

    for marker in expired:
        if marker.thread_id:
            sync_marker_thread(marker, update_thread, update_content=False)
    return len(expired)
