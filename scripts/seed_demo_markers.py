#!/usr/bin/env python3
"""
Marker Map Platform: demo seed.

Creates a forum account and a thread forum, a handful of markers (one a
running event, one already over) and a few pending suggestions, so the
map, events list and moderation queue all have something to show.

Usage:
    python scripts/seed_demo_markers.py            # seed into APP_ENV database
    python scripts/seed_demo_markers.py --threads  # also mirror markers into threads
"""

import argparse
import sys
from datetime import datetime, timedelta, timezone

sys.path.insert(0, ".")

from markermap import create_app
from markermap.models import db
from markermap.models.forum import Forum, ForumUser
from markermap.services import marker_service, suggestion_service
from markermap.services.thread_sync import handle_marker_thread_updates, sync_marker_thread

_now = datetime.now(timezone.utc)


MARKERS = [
    {"lat": 51.5073, "lng": -0.1657, "title": "Hyde Park", "type": "park",
     "icon": "tree", "marker_color": "green", "content": "Boating lake and open lawns."},
    {"lat": 51.5194, "lng": -0.1270, "title": "British Museum", "type": "museum",
     "icon": "landmark", "icon_variant": "regular"},
    {"lat": 51.5055, "lng": -0.0754, "title": "Riverside Food Fair", "type": "event",
     "icon": "utensils", "marker_color": "orange", "create_thread": True,
     "start_date": _now - timedelta(hours=2), "end_date": _now + timedelta(days=2)},
    {"lat": 51.5033, "lng": -0.1195, "title": "Summer Concert", "type": "event",
     "icon": "music", "start_date": _now - timedelta(days=10),
     "end_date": _now - timedelta(days=9)},
]

SUGGESTIONS = [
    {"lat": 51.5138, "lng": -0.0984, "title": "St Paul's viewpoint", "type": "viewpoint",
     "icon": "binoculars"},
    {"lat": 51.4826, "lng": -0.0077, "title": "Greenwich Observatory", "type": "museum",
     "create_thread": True},
]


def seed_forum():
    user = db.session.get(ForumUser, 1) or ForumUser(id=1, username="mapbot", is_moderator=True)
    forum = Forum.query.filter_by(title="Map Markers").first() or Forum(title="Map Markers")
    db.session.add_all([user, forum])
    db.session.commit()
    return forum


def seed_markers(with_threads: bool):
    for data in MARKERS:
        marker = marker_service.create_marker(data)
        if with_threads:
            sync_marker_thread(marker, handle_marker_thread_updates)
        print(f"    marker  {marker.id:>4}  {marker.title}")
    for data in SUGGESTIONS:
        s = suggestion_service.create_suggestion(data)
        print(f"    suggest {s.id:>4}  {s.title}")


def main():
    parser = argparse.ArgumentParser(description="Seed demo map markers")
    parser.add_argument("--threads", action="store_true", help="mirror markers into threads")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        forum = seed_forum()
        if args.threads:
            app.config["ENABLE_THREAD_CREATION"] = True
            app.config["THREAD_CREATION_FORUM_ID"] = forum.id
        seed_markers(args.threads)
    print("Done.")


if __name__ == "__main__":
    main()
