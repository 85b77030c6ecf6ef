"""
Suggestion store: submissions, pending queue, edits and the retention purge.
"""

from datetime import datetime, timedelta, timezone

import pytest

from markermap.core.exceptions import NotFoundError, ValidationError
from markermap.models import db
from markermap.models.marker import MapMarkerSuggestion
from markermap.services import suggestion_service


def _make_suggestion(status: str = "pending", age_days: float = 0, **overrides) -> MapMarkerSuggestion:
    data = {"lat": 48.85, "lng": 2.35, "title": "Canal walk"}
    data.update(overrides)
    s = suggestion_service.create_suggestion(data)
    s.status = status
    s.create_date = datetime.now(timezone.utc) - timedelta(days=age_days)
    db.session.commit()
    return s


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateSuggestion:
    def test_defaults_to_pending(self):
        s = suggestion_service.create_suggestion({"lat": 1, "lng": 2, "title": "Spot"})
        assert s.status == "pending"
        assert s.is_pending
        assert s.icon_variant == "solid"
        assert s.reviewed_by is None

    def test_invalid_suggestion_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            suggestion_service.create_suggestion({"lat": 1, "lng": 2})
        assert exc_info.value.messages == ["Title is required."]

    def test_get_missing_raises(self):
        with pytest.raises(NotFoundError):
            suggestion_service.get_suggestion_or_fail(77)


class TestPendingQueue:
    def test_only_pending_newest_first(self):
        _make_suggestion(title="Old", age_days=3)
        _make_suggestion(title="New", age_days=1)
        _make_suggestion(title="Done", status="approved")
        _make_suggestion(title="Nope", status="rejected")

        items, total = suggestion_service.get_pending_suggestions()
        assert total == 2
        assert [s.title for s in items] == ["New", "Old"]

    def test_paging(self):
        for i in range(3):
            _make_suggestion(title=f"S{i}", age_days=i)
        items, total = suggestion_service.get_pending_suggestions(page=2, per_page=2)
        assert total == 3
        assert [s.title for s in items] == ["S2"]


# ═════════════════════════════════════════════════════════════════════════════
# Edit
# ═════════════════════════════════════════════════════════════════════════════


class TestUpdateSuggestion:
    def test_pending_suggestion_editable(self):
        s = _make_suggestion()
        updated = suggestion_service.update_suggestion(s, {"title": "Canal walk east", "content": "Nice"})
        assert updated.title == "Canal walk east"
        assert updated.content == "Nice"
        assert updated.lat == 48.85

    def test_status_cannot_be_changed_by_edit(self):
        s = _make_suggestion()
        suggestion_service.update_suggestion(s, {"status": "approved"})
        assert db.session.get(MapMarkerSuggestion, s.id).status == "pending"

    @pytest.mark.parametrize("status", ["approved", "rejected"])
    def test_reviewed_suggestion_frozen(self, status):
        s = _make_suggestion(status=status)
        with pytest.raises(ValidationError):
            suggestion_service.update_suggestion(s, {"title": "Changed"})
        assert db.session.get(MapMarkerSuggestion, s.id).title == "Canal walk"

    def test_invalid_edit_raises(self):
        s = _make_suggestion()
        with pytest.raises(ValidationError):
            suggestion_service.update_suggestion(s, {"lng": 181})


# ═════════════════════════════════════════════════════════════════════════════
# Retention purge
# ═════════════════════════════════════════════════════════════════════════════


class TestCleanupOldSuggestions:
    def test_purges_reviewed_past_retention(self):
        old_approved = _make_suggestion(status="approved", age_days=31)
        old_rejected = _make_suggestion(status="rejected", age_days=31, title="R")
        recent = _make_suggestion(status="approved", age_days=29, title="Recent")

        assert suggestion_service.cleanup_old_suggestions(older_than_days=30) == 2

        assert db.session.get(MapMarkerSuggestion, old_approved.id) is None
        assert db.session.get(MapMarkerSuggestion, old_rejected.id) is None
        assert db.session.get(MapMarkerSuggestion, recent.id) is not None

    def test_pending_never_purged(self):
        pending = _make_suggestion(age_days=400)
        assert suggestion_service.cleanup_old_suggestions(older_than_days=30) == 0
        assert db.session.get(MapMarkerSuggestion, pending.id) is not None

    def test_uses_configured_retention(self, app):
        _make_suggestion(status="rejected", age_days=10)
        app.config["SUGGESTION_RETENTION_DAYS"] = 5
        try:
            assert suggestion_service.cleanup_old_suggestions() == 1
        finally:
            app.config["SUGGESTION_RETENTION_DAYS"] = 30

    def test_nothing_to_purge(self):
        assert suggestion_service.cleanup_old_suggestions(older_than_days=30) == 0
