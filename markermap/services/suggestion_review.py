"""
Marker Map Moderation Platform
Suggestion review state machine.

    pending ──approve──▶ approved   (materializes a new MapMarker)
    pending ──reject───▶ rejected

Both target states are terminal. A review claims the suggestion with one
conditional UPDATE (``WHERE status = 'pending'``), so two moderators
approving at the same moment produce exactly one marker: the loser's
UPDATE matches zero rows and is treated as "already handled".

Thread creation for the new marker runs after the review commits and is
best effort; markers left without a thread are retried by the
``marker_thread_retry`` job.

Usage:
    from markermap.services.suggestion_review import approve_suggestion

    if not approve_suggestion(suggestion_id):
        ...  # not found, failed validation, or already rejected
"""

import logging
from datetime import datetime, timezone

from markermap.auth import current_user_id
from markermap.models import db
from markermap.models.marker import SHARED_FIELDS, MapMarkerSuggestion
from markermap.services import marker_service
from markermap.services.suggestion_service import get_suggestion_or_fail
from markermap.services.thread_sync import create_thread_for_marker, sync_marker_thread

logger = logging.getLogger(__name__)

SUGGESTION_TRANSITIONS = {
    "approve": {"from": ["pending"], "to": "approved"},
    "reject": {"from": ["pending"], "to": "rejected"},
}


def _claim(suggestion_id: int, action: str) -> bool:
    """Move the suggestion out of pending; False when another review got there first."""
    rule = SUGGESTION_TRANSITIONS[action]
    claimed = (
        MapMarkerSuggestion.query
        .filter(MapMarkerSuggestion.id == suggestion_id,
                MapMarkerSuggestion.status.in_(rule["from"]))
        .update(
            {
                "status": rule["to"],
                "reviewed_by": current_user_id(),
                "reviewed_at": datetime.now(timezone.utc),
            },
            synchronize_session="fetch",
        )
    )
    return claimed == 1


def _already_handled(suggestion_id: int, action: str) -> bool:
    db.session.rollback()
    suggestion = db.session.get(MapMarkerSuggestion, suggestion_id)
    target = SUGGESTION_TRANSITIONS[action]["to"]
    handled = suggestion is not None and suggestion.status == target
    logger.info(
        "Suggestion %s not pending (status=%s); %s is a no-op",
        suggestion_id, suggestion.status if suggestion else None, action,
        extra={"event_type": f"suggestion.{action}_noop", "suggestion_id": suggestion_id},
    )
    return handled


def approve_suggestion(suggestion_id: int) -> bool:
    """Approve a pending suggestion and create its marker in one transaction.

    Returns True when the suggestion ends up approved (including a repeat
    call on an already approved one), False otherwise. Never raises.
    """
    try:
        suggestion = get_suggestion_or_fail(suggestion_id)
        data = {field: getattr(suggestion, field) for field in SHARED_FIELDS}
        data["active"] = True

        if not _claim(suggestion_id, "approve"):
            return _already_handled(suggestion_id, "approve")

        marker = marker_service.create_marker(data, commit=False)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.error("Failed to approve suggestion %s: %s", suggestion_id, exc,
                     extra={"event_type": "suggestion.approve_failed",
                            "suggestion_id": suggestion_id})
        return False

    logger.info(
        "Suggestion %s approved as marker %s", suggestion_id, marker.id,
        extra={"event_type": "suggestion.approved", "suggestion_id": suggestion_id,
               "marker_id": marker.id, "user_id": current_user_id()},
    )

    if marker.create_thread:
        sync_marker_thread(marker, create_thread_for_marker)
    return True


def reject_suggestion(suggestion_id: int) -> bool:
    """Reject a pending suggestion. Same return contract as approve."""
    try:
        get_suggestion_or_fail(suggestion_id)
        if not _claim(suggestion_id, "reject"):
            return _already_handled(suggestion_id, "reject")
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.error("Failed to reject suggestion %s: %s", suggestion_id, exc,
                     extra={"event_type": "suggestion.reject_failed",
                            "suggestion_id": suggestion_id})
        return False

    logger.info("Suggestion %s rejected", suggestion_id,
                extra={"event_type": "suggestion.rejected", "suggestion_id": suggestion_id,
                       "user_id": current_user_id()})
    return True
