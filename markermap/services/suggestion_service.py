"""
Marker Map Moderation Platform
Suggestion Store: visitor submissions, pending queue and retention purge.

Only pending suggestions may be edited; approved and rejected ones are
frozen until the retention job deletes them.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy.orm import selectinload

from markermap.core.exceptions import NotFoundError, ValidationError
from markermap.models import db
from markermap.models.marker import MapMarkerSuggestion
from markermap.services.validation import validate_suggestion_data

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("approved", "rejected")


def get_pending_suggestions(includes=None, page: int = 1, per_page: int | None = None):
    """Pending suggestions, newest first.

    Returns:
        (items, total)
    """
    per_page = per_page or current_app.config.get("MAP_MARKERS_PER_PAGE", 20)
    page = max(int(page or 1), 1)
    query = MapMarkerSuggestion.query.filter_by(status="pending")
    if "user" in (includes or ()):
        query = query.options(selectinload(MapMarkerSuggestion.user))
    total = query.count()
    items = (
        query.order_by(MapMarkerSuggestion.create_date.desc(), MapMarkerSuggestion.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def get_suggestion_or_fail(suggestion_id: int) -> MapMarkerSuggestion:
    suggestion = db.session.get(MapMarkerSuggestion, suggestion_id)
    if suggestion is None:
        raise NotFoundError(resource="MapMarkerSuggestion", resource_id=suggestion_id)
    return suggestion


def create_suggestion(data: dict, commit: bool = True) -> MapMarkerSuggestion:
    """Validate and persist a visitor suggestion.

    Raises:
        ValidationError: when any field rule fails.
    """
    clean = validate_suggestion_data(data)
    suggestion = MapMarkerSuggestion(**clean)
    suggestion.create_date = datetime.now(timezone.utc)
    db.session.add(suggestion)
    db.session.flush()
    if commit:
        db.session.commit()

    logger.info(
        "Map marker suggestion created: %s", suggestion.title,
        extra={
            "event_type": "suggestion.created",
            "suggestion_id": suggestion.id,
            "context": {"lat": suggestion.lat, "lng": suggestion.lng,
                        "type": suggestion.type, "user_id": suggestion.user_id},
        },
    )
    return suggestion


def update_suggestion(suggestion: MapMarkerSuggestion, data: dict, commit: bool = True):
    """Overwrite a pending suggestion's fields.

    Raises:
        ValidationError: the suggestion was already reviewed, or a field rule fails.
    """
    if not suggestion.is_pending:
        raise ValidationError(
            f"Suggestion {suggestion.id} has already been {suggestion.status} and cannot be edited."
        )
    # Status only changes through review
    data = {key: value for key, value in (data or {}).items() if key != "status"}
    merged = {**suggestion.to_dict(), **data}
    for key in ("start_date", "end_date"):
        if key not in data:
            merged[key] = getattr(suggestion, key)
    clean = validate_suggestion_data(merged)
    for key, value in clean.items():
        setattr(suggestion, key, value)
    db.session.flush()
    if commit:
        db.session.commit()
    return suggestion


def cleanup_old_suggestions(older_than_days: int | None = None) -> int:
    """Delete reviewed suggestions created more than ``older_than_days`` ago.

    Pending suggestions are never purged. Returns the number deleted.
    """
    if older_than_days is None:
        older_than_days = current_app.config.get("SUGGESTION_RETENTION_DAYS", 30)
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_days * 86400)

    stale = (
        MapMarkerSuggestion.query
        .filter(
            MapMarkerSuggestion.status.in_(TERMINAL_STATUSES),
            MapMarkerSuggestion.create_date < cutoff,
        )
        .all()
    )
    if not stale:
        return 0

    details = [
        {"suggestion_id": s.id, "title": s.title, "status": s.status,
         "create_date": s.create_date.isoformat() if s.create_date else None}
        for s in stale
    ]
    logger.info(
        "Purging %d reviewed suggestion(s) older than %d days", len(stale), older_than_days,
        extra={"event_type": "suggestion.purged", "context": {"suggestions": details}},
    )
    for suggestion in stale:
        db.session.delete(suggestion)
    db.session.commit()
    return len(stale)
