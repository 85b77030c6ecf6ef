"""
Marker Map Moderation Platform
Forum models backing the default discussion-thread gateway.

Models:
    - ForumUser: Board account (marker owners, thread authors)
    - Forum: Node that receives marker threads
    - Thread: Discussion thread; ``discussion_open`` False means locked
    - Post: Thread message; the earliest post is the thread body
"""

from datetime import datetime, timezone

from markermap.models import db

THREAD_TITLE_MAX_LENGTH = 150


def _utcnow():
    return datetime.now(timezone.utc)


class ForumUser(db.Model):
    __tablename__ = "forum_users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), nullable=False, unique=True)
    is_moderator = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "is_moderator": self.is_moderator,
        }

    def __repr__(self):
        return f"<ForumUser {self.id}: {self.username}>"


class Forum(db.Model):
    __tablename__ = "forums"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, default="")

    threads = db.relationship("Thread", backref="forum", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "title": self.title, "description": self.description}

    def __repr__(self):
        return f"<Forum {self.id}: {self.title}>"


class Thread(db.Model):
    __tablename__ = "forum_threads"

    id = db.Column(db.Integer, primary_key=True)
    forum_id = db.Column(db.Integer, db.ForeignKey("forums.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("forum_users.id"), nullable=True)
    title = db.Column(db.String(THREAD_TITLE_MAX_LENGTH), nullable=False)
    discussion_open = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    posts = db.relationship(
        "Post", backref="thread", lazy="select",
        order_by="Post.id", cascade="all, delete-orphan",
    )

    @property
    def first_post(self):
        return self.posts[0] if self.posts else None

    def to_dict(self):
        return {
            "id": self.id,
            "forum_id": self.forum_id,
            "user_id": self.user_id,
            "title": self.title,
            "discussion_open": self.discussion_open,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Thread {self.id}: {self.title}>"


class Post(db.Model):
    __tablename__ = "forum_posts"

    id = db.Column(db.Integer, primary_key=True)
    thread_id = db.Column(db.Integer, db.ForeignKey("forum_threads.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("forum_users.id"), nullable=True)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "thread_id": self.thread_id,
            "user_id": self.user_id,
            "message": self.message,
        }
