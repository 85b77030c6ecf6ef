"""
Suggestion review state machine (SUGGESTION_TRANSITIONS).

    pending ──approve──▶ approved   (exactly one new marker)
    pending ──reject───▶ rejected

Both targets are terminal. Repeating the same review is a no-op that still
reports success; reviewing in the other direction afterwards fails.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from flask import g

from markermap.models import db
from markermap.models.forum import Thread
from markermap.models.marker import MapMarker, MapMarkerSuggestion
from markermap.services import suggestion_service
from markermap.services.suggestion_review import (
    SUGGESTION_TRANSITIONS,
    approve_suggestion,
    reject_suggestion,
)


def _suggestion(**overrides) -> MapMarkerSuggestion:
    data = {
        "lat": 40.7128, "lng": -74.006, "title": "Harbor fair", "content": "Food stalls",
        "icon": "anchor", "icon_variant": "regular", "marker_color": "green", "type": "event",
        "user_id": 5,
    }
    data.update(overrides)
    return suggestion_service.create_suggestion(data)


def _status(suggestion_id):
    db.session.expire_all()
    return db.session.get(MapMarkerSuggestion, suggestion_id).status


class TestTransitionTable:
    def test_only_pending_is_reviewable(self):
        for rule in SUGGESTION_TRANSITIONS.values():
            assert rule["from"] == ["pending"]
        assert SUGGESTION_TRANSITIONS["approve"]["to"] == "approved"
        assert SUGGESTION_TRANSITIONS["reject"]["to"] == "rejected"


# ═════════════════════════════════════════════════════════════════════════════
# Approve
# ═════════════════════════════════════════════════════════════════════════════


class TestApprove:
    def test_approve_creates_exactly_one_marker(self):
        s = _suggestion()
        assert approve_suggestion(s.id) is True

        markers = MapMarker.query.all()
        assert len(markers) == 1
        marker = markers[0]
        assert marker.title == "Harbor fair"
        assert marker.content == "Food stalls"
        assert marker.icon == "anchor"
        assert marker.icon_variant == "regular"
        assert marker.marker_color == "green"
        assert marker.type == "event"
        assert marker.user_id == 5
        assert marker.active is True
        assert _status(s.id) == "approved"

    def test_approve_records_reviewer(self):
        s = _suggestion()
        g.current_user_id = 42
        assert approve_suggestion(s.id) is True
        reviewed = db.session.get(MapMarkerSuggestion, s.id)
        assert reviewed.reviewed_by == 42
        assert reviewed.reviewed_at is not None

    def test_second_approve_is_noop(self):
        s = _suggestion()
        assert approve_suggestion(s.id) is True
        assert approve_suggestion(s.id) is True
        assert MapMarker.query.count() == 1

    def test_approve_after_reject_fails(self):
        s = _suggestion()
        assert reject_suggestion(s.id) is True
        assert approve_suggestion(s.id) is False
        assert MapMarker.query.count() == 0
        assert _status(s.id) == "rejected"

    def test_approve_missing_returns_false(self):
        assert approve_suggestion(9999) is False

    def test_event_window_carried_over(self):
        start = datetime.now(timezone.utc) + timedelta(days=1)
        s = _suggestion(start_date=start, end_date=start + timedelta(hours=3))
        approve_suggestion(s.id)
        marker = MapMarker.query.one()
        assert marker.start_date is not None
        assert marker.end_date is not None

    def test_failed_marker_creation_leaves_suggestion_pending(self):
        s = _suggestion()
        with patch("markermap.services.suggestion_review.marker_service.create_marker",
                   side_effect=RuntimeError("db down")):
            assert approve_suggestion(s.id) is False
        assert _status(s.id) == "pending"
        assert MapMarker.query.count() == 0


class TestApproveWithThreads:
    def test_thread_created_after_approval(self, thread_config):
        s = _suggestion(create_thread=True, thread_lock=True)
        assert approve_suggestion(s.id) is True

        marker = MapMarker.query.one()
        assert marker.thread_id is not None
        thread = db.session.get(Thread, marker.thread_id)
        assert thread.title == "[Active] Harbor fair"
        assert thread.discussion_open is False

    def test_thread_failure_does_not_undo_approval(self, thread_config):
        s = _suggestion(create_thread=True)
        with patch("markermap.services.thread_sync.forum_gateway.create_thread",
                   side_effect=RuntimeError("forum offline")):
            assert approve_suggestion(s.id) is True

        marker = MapMarker.query.one()
        assert marker.thread_id is None
        assert _status(s.id) == "approved"

    def test_no_thread_when_not_requested(self, thread_config):
        s = _suggestion(create_thread=False)
        approve_suggestion(s.id)
        assert MapMarker.query.one().thread_id is None
        assert Thread.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# Reject
# ═════════════════════════════════════════════════════════════════════════════


class TestReject:
    def test_reject_pending(self):
        s = _suggestion()
        assert reject_suggestion(s.id) is True
        assert _status(s.id) == "rejected"
        assert MapMarker.query.count() == 0

    def test_second_reject_is_noop(self):
        s = _suggestion()
        assert reject_suggestion(s.id) is True
        assert reject_suggestion(s.id) is True
        assert _status(s.id) == "rejected"

    def test_reject_after_approve_fails(self):
        s = _suggestion()
        approve_suggestion(s.id)
        assert reject_suggestion(s.id) is False
        assert _status(s.id) == "approved"
        assert MapMarker.query.count() == 1

    def test_reject_missing_returns_false(self):
        assert reject_suggestion(31337) is False
