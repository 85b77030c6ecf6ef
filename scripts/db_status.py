#!/usr/bin/env python3
"""Show DB record counts for the marker map tables."""
import sys
sys.path.insert(0, ".")

from markermap import create_app
from markermap.models import db

TABLES = [
    "xf_map_markers", "xf_map_marker_suggestions", "scheduled_jobs",
    "forum_users", "forums", "forum_threads", "forum_posts",
]

app = create_app()
with app.app_context():
    total = 0
    for t in TABLES:
        c = db.session.execute(db.text(f"SELECT COUNT(*) FROM {t}")).scalar()
        total += c
        print(f"    {t:.<30} {c}")
    print(f"    {'TOTAL':.<30} {total}")
