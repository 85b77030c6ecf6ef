"""
Marker Map Moderation Platform
Scheduler Service.

Job registry plus a run-and-record entry point. The platform does not run
its own timer thread: an external scheduler (cron, systemd timer, the
hosting platform's job runner) calls ``flask run-job <name>`` or the admin
API, and both end up in ``SchedulerService.run_job``.

Architecture:
    - Jobs are plain functions registered via ``@register_job``
    - Each run is recorded on a ScheduledJob row (status, duration, result)
    - Jobs run inside the Flask app context
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

from markermap.models import db
from markermap.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}

_DEFAULT_SCHEDULES = {
    "map_cleanup": {"hour": "3", "minute": "0", "description": "Daily at 03:00"},
    "marker_thread_retry": {"minute": "*/15", "description": "Every 15 minutes"},
}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("map_cleanup")
        def run_map_cleanup(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """Runs registered jobs and keeps their ScheduledJob records current."""

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def _job_record(cls, name: str) -> ScheduledJob:
        record = ScheduledJob.query.filter_by(job_name=name).first()
        if record is None:
            fn = _job_registry[name]
            record = ScheduledJob(
                job_name=name,
                description=(fn.__doc__ or f"Scheduled job: {name}").strip().splitlines()[0],
                schedule_config=_DEFAULT_SCHEDULES.get(name, {}),
                status="active",
                is_enabled=True,
                run_count=0,
                error_count=0,
            )
            db.session.add(record)
        return record

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name inside the current app context.

        Returns:
            Dict with job_name, status, duration_ms, result and error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}
        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        record = cls._job_record(job_name)
        if not record.is_enabled:
            return {"job_name": job_name, "status": "skipped", "error": "Job is disabled"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"
        try:
            result = fn(cls._app)
        except Exception as exc:
            db.session.rollback()
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)

        duration_ms = int((time.monotonic() - start) * 1000)

        try:
            record = cls._job_record(job_name)
            record.record_run(
                status=status,
                duration_ms=duration_ms,
                result=result if isinstance(result, dict) else {"output": str(result)},
                error=error,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Failed to update job record for %s", job_name)

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "schedule": _DEFAULT_SCHEDULES.get(name, {}),
                "db_record": record.to_dict() if record else None,
            })
        return jobs

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a registered job."""
        if job_name not in _job_registry:
            return None
        record = cls._job_record(job_name)
        record.is_enabled = enabled
        record.status = "active" if enabled else "paused"
        db.session.commit()
        return record.to_dict()
