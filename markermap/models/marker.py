"""
Marker Map Moderation Platform
Map marker domain models.

Models:
    - MapMarker: Published point of interest, optionally mirrored to a thread
    - MapMarkerSuggestion: Visitor-proposed marker awaiting moderator review

Derived:
    - MarkerStatus: Lifecycle status shown as the thread title prefix
"""

import enum
from datetime import datetime, timezone

from markermap.models import db


# ── Constants ────────────────────────────────────────────────────────────────

ICON_VARIANTS = {"solid", "regular", "light", "brands", "duotone"}
SUGGESTION_STATUSES = {"pending", "approved", "rejected"}

DEFAULT_ICON_VARIANT = "solid"
DEFAULT_ICON_COLOR = "black"
DEFAULT_MARKER_COLOR = "blue"

# Font Awesome class prefix per icon variant
ICON_VARIANT_PREFIXES = {
    "solid": "fas",
    "regular": "far",
    "light": "fal",
    "brands": "fab",
    "duotone": "fad",
}

# Columns shared by markers and suggestions (copied on approval, exported).
SHARED_FIELDS = (
    "lat", "lng", "title", "content", "icon", "icon_variant", "icon_color",
    "marker_color", "type", "user_id", "create_thread", "thread_lock",
    "start_date", "end_date",
)


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class MarkerStatus(enum.Enum):
    """Lifecycle status of a marker as shown on its discussion thread.

    Never persisted; always derived from the marker's flags:

        deleted                          → Deleted
        active is False                  → Inactive
        active, create_thread is False   → Disabled
        otherwise                        → Active
    """

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISABLED = "Disabled"
    DELETED = "Deleted"

    @classmethod
    def derive(cls, active: bool, create_thread: bool, deleted: bool = False) -> "MarkerStatus":
        if deleted:
            return cls.DELETED
        if not active:
            return cls.INACTIVE
        if not create_thread:
            return cls.DISABLED
        return cls.ACTIVE

    @classmethod
    def labels(cls) -> list[str]:
        return [status.value for status in cls]

    @classmethod
    def regex_alternation(cls) -> str:
        """Return ``Active|Inactive|Disabled|Deleted`` for title matching."""
        return "|".join(cls.labels())


class MapMarker(db.Model):
    """
    A published point of interest on the community map.

    ``thread_id`` is only populated once the forum thread exists; markers
    whose ``create_thread`` is set but ``thread_id`` is empty are picked up
    by the thread retry job.
    """

    __tablename__ = "xf_map_markers"

    id = db.Column(db.Integer, primary_key=True)
    lat = db.Column(db.Float, nullable=False)
    lng = db.Column(db.Float, nullable=False)
    title = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=True)

    # Visual style
    icon = db.Column(db.String(50), nullable=True)
    icon_variant = db.Column(db.String(20), default=DEFAULT_ICON_VARIANT,
                             comment="solid, regular, light, brands, duotone")
    icon_color = db.Column(db.String(30), default=DEFAULT_ICON_COLOR)
    marker_color = db.Column(db.String(30), default=DEFAULT_MARKER_COLOR)
    type = db.Column(db.String(50), nullable=True, index=True,
                     comment="Free-form category tag used for filtering")

    user_id = db.Column(db.Integer, nullable=True, index=True)
    active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # Thread mirroring
    create_thread = db.Column(db.Boolean, default=False, nullable=False)
    thread_id = db.Column(db.Integer, nullable=True)
    thread_lock = db.Column(db.Boolean, default=False, nullable=False)

    # Optional event window
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    create_date = db.Column(db.DateTime(timezone=True), default=_utcnow)
    update_date = db.Column(db.DateTime(timezone=True), default=_utcnow)

    user = db.relationship(
        "ForumUser",
        primaryjoin="foreign(MapMarker.user_id) == ForumUser.id",
        viewonly=True,
        lazy="select",
    )
    thread = db.relationship(
        "Thread",
        primaryjoin="foreign(MapMarker.thread_id) == Thread.id",
        viewonly=True,
        lazy="select",
    )

    @property
    def status(self) -> MarkerStatus:
        return MarkerStatus.derive(bool(self.active), bool(self.create_thread))

    def touch(self):
        self.update_date = _utcnow()

    def to_dict(self, includes=None):
        includes = includes or ()
        data = {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "title": self.title,
            "content": self.content,
            "icon": self.icon,
            "icon_variant": self.icon_variant,
            "icon_color": self.icon_color,
            "marker_color": self.marker_color,
            "type": self.type,
            "user_id": self.user_id,
            "active": self.active,
            "create_thread": self.create_thread,
            "thread_id": self.thread_id,
            "thread_lock": self.thread_lock,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "create_date": _iso(self.create_date),
            "update_date": _iso(self.update_date),
            "status": self.status.value,
        }
        if "user" in includes:
            data["user"] = self.user.to_dict() if self.user else None
        if "thread" in includes:
            data["thread"] = self.thread.to_dict() if self.thread else None
        return data

    def __repr__(self):
        return f"<MapMarker {self.id}: {self.title}>"


class MapMarkerSuggestion(db.Model):
    """
    Visitor-proposed marker.

    Workflow: pending → approved | rejected (both terminal).
    Approval materializes a new MapMarker; the suggestion keeps no link to it.
    """

    __tablename__ = "xf_map_marker_suggestions"

    id = db.Column(db.Integer, primary_key=True)
    lat = db.Column(db.Float, nullable=False)
    lng = db.Column(db.Float, nullable=False)
    title = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=True)

    icon = db.Column(db.String(50), nullable=True)
    icon_variant = db.Column(db.String(20), default=DEFAULT_ICON_VARIANT)
    icon_color = db.Column(db.String(30), default=DEFAULT_ICON_COLOR)
    marker_color = db.Column(db.String(30), default=DEFAULT_MARKER_COLOR)
    type = db.Column(db.String(50), nullable=True)

    user_id = db.Column(db.Integer, nullable=True, index=True)

    # Intent carried over to the marker on approval
    create_thread = db.Column(db.Boolean, default=False, nullable=False)
    thread_lock = db.Column(db.Boolean, default=False, nullable=False)

    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Lifecycle
    status = db.Column(db.String(20), default="pending", nullable=False, index=True,
                       comment="pending, approved, rejected")
    reviewed_by = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    create_date = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    user = db.relationship(
        "ForumUser",
        primaryjoin="foreign(MapMarkerSuggestion.user_id) == ForumUser.id",
        viewonly=True,
        lazy="select",
    )

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def to_dict(self, includes=None):
        includes = includes or ()
        data = {
            "id": self.id,
            "lat": self.lat,
            "lng": self.lng,
            "title": self.title,
            "content": self.content,
            "icon": self.icon,
            "icon_variant": self.icon_variant,
            "icon_color": self.icon_color,
            "marker_color": self.marker_color,
            "type": self.type,
            "user_id": self.user_id,
            "create_thread": self.create_thread,
            "thread_lock": self.thread_lock,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": _iso(self.reviewed_at),
            "create_date": _iso(self.create_date),
        }
        if "user" in includes:
            data["user"] = self.user.to_dict() if self.user else None
        return data

    def __repr__(self):
        return f"<MapMarkerSuggestion {self.id}: {self.title} [{self.status}]>"
