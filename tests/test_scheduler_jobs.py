"""
Scheduled jobs and the SchedulerService run-and-record wrapper.

Covers:
  - map_cleanup: purge + expiry in one run
  - marker_thread_retry: skipped when disabled, creates threads when enabled
  - run_job records success / failure on the ScheduledJob row
  - flask run-job CLI entry point
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from markermap.models import db
from markermap.models.marker import MapMarker, MapMarkerSuggestion
from markermap.models.scheduling import ScheduledJob
from markermap.services import marker_service, suggestion_service
from markermap.services.scheduled_jobs import run_map_cleanup, run_marker_thread_retry
from markermap.services.scheduler_service import SchedulerService, get_registered_jobs


def _old_reviewed_suggestion(days: int, status: str = "approved"):
    s = suggestion_service.create_suggestion({"lat": 1, "lng": 1, "title": f"{status} {days}d"})
    s.status = status
    s.create_date = datetime.now(timezone.utc) - timedelta(days=days)
    db.session.commit()
    return s


class TestRegistry:
    def test_jobs_registered(self):
        jobs = get_registered_jobs()
        assert jobs["map_cleanup"] is run_map_cleanup
        assert jobs["marker_thread_retry"] is run_marker_thread_retry


class TestMapCleanupJob:
    def test_purges_and_expires(self, app):
        _old_reviewed_suggestion(31)
        _old_reviewed_suggestion(31, status="rejected")
        _old_reviewed_suggestion(29)
        suggestion_service.create_suggestion({"lat": 2, "lng": 2, "title": "Still pending"})
        marker_service.create_marker({"lat": 3, "lng": 3, "title": "Ended",
                                      "end_date": datetime.now(timezone.utc) - timedelta(minutes=5)})

        result = run_map_cleanup(app)

        assert result == {"suggestions_purged": 2, "events_expired": 1}
        assert MapMarkerSuggestion.query.count() == 2
        assert MapMarker.query.one().active is False

    def test_nothing_to_do(self, app):
        assert run_map_cleanup(app) == {"suggestions_purged": 0, "events_expired": 0}


class TestThreadRetryJob:
    def test_skipped_when_disabled(self, app):
        result = run_marker_thread_retry(app)
        assert result["threads_created"] == 0
        assert "skipped" in result

    def test_creates_missing_threads(self, app, thread_config):
        marker = marker_service.create_marker({"lat": 1, "lng": 1, "title": "Needs thread",
                                               "create_thread": True})
        assert run_marker_thread_retry(app) == {"threads_created": 1}
        db.session.expire_all()
        assert db.session.get(MapMarker, marker.id).thread_id is not None


class TestRunJob:
    def test_success_recorded(self):
        result = SchedulerService.run_job("map_cleanup")
        assert result["status"] == "success"
        record = ScheduledJob.query.filter_by(job_name="map_cleanup").one()
        assert record.run_count == 1
        assert record.error_count == 0
        assert record.last_run_result == {"suggestions_purged": 0, "events_expired": 0}
        assert record.schedule_config["hour"] == "3"

    def test_failure_recorded(self):
        with patch("markermap.services.scheduled_jobs.cleanup_old_suggestions",
                   side_effect=RuntimeError("disk full")):
            result = SchedulerService.run_job("map_cleanup")
        assert result["status"] == "failed"
        assert result["error"] == "disk full"
        record = ScheduledJob.query.filter_by(job_name="map_cleanup").one()
        assert record.error_count == 1
        assert record.last_error == "disk full"

    def test_unknown_job(self):
        result = SchedulerService.run_job("does_not_exist")
        assert result["status"] == "error"
        assert ScheduledJob.query.count() == 0

    def test_toggle_unknown(self):
        assert SchedulerService.toggle_job("does_not_exist", False) is None

    def test_list_jobs_before_first_run(self):
        jobs = {job["job_name"]: job for job in SchedulerService.list_jobs()}
        assert jobs["marker_thread_retry"]["db_record"] is None
        assert jobs["marker_thread_retry"]["schedule"]["minute"] == "*/15"


class TestCli:
    def test_run_job_command_unknown(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["run-job", "nope"])
        assert result.exit_code == 0
        assert "nope: error Unknown job: nope" in result.output
