"""
Marker Map Moderation Platform
Scheduled Jobs.

Jobs:
    - map_cleanup: Purges old reviewed suggestions, then deactivates
      markers whose event window has ended
    - marker_thread_retry: Creates threads for markers whose best-effort
      thread creation failed earlier
"""

from __future__ import annotations

import logging
from typing import Any

from markermap.services.marker_service import cleanup_past_events
from markermap.services.scheduler_service import register_job
from markermap.services.suggestion_service import cleanup_old_suggestions
from markermap.services.thread_sync import retry_pending_thread_creation

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job 1: Map Cleanup
# ═══════════════════════════════════════════════════════════════════════════

@register_job("map_cleanup")
def run_map_cleanup(app) -> dict[str, Any]:
    """Purge reviewed suggestions past retention and expire past events."""
    days = app.config.get("SUGGESTION_RETENTION_DAYS", 30)
    purged = cleanup_old_suggestions(older_than_days=days)
    expired = cleanup_past_events()
    logger.info("Map cleanup: %d suggestion(s) purged, %d event marker(s) expired",
                purged, expired, extra={"event_type": "job.map_cleanup"})
    return {"suggestions_purged": purged, "events_expired": expired}


# ═══════════════════════════════════════════════════════════════════════════
#  Job 2: Thread creation retry
# ═══════════════════════════════════════════════════════════════════════════

@register_job("marker_thread_retry")
def run_marker_thread_retry(app) -> dict[str, Any]:
    """Create threads for markers still waiting on one."""
    if not app.config.get("ENABLE_THREAD_CREATION"):
        return {"threads_created": 0, "skipped": "thread creation disabled"}
    return {"threads_created": retry_pending_thread_creation()}
