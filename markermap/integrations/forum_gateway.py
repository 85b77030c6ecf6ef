"""
Discussion-forum gateway.

Every read or write the marker engine performs against forum threads goes
through this class; services never touch Thread/Post rows directly. The
default implementation is backed by the local forum tables; a deployment
that talks to a remote board swaps the module-level ``forum_gateway``.

Writes join the caller's session and are flushed, not committed: the
calling service owns the transaction.

Usage:
    from markermap.integrations.forum_gateway import forum_gateway

    errors = forum_gateway.validate_thread(title, message)
    if not errors:
        thread = forum_gateway.create_thread(forum, title, message)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from markermap.auth import current_user_id
from markermap.models import db
from markermap.models.forum import THREAD_TITLE_MAX_LENGTH, Forum, ForumUser, Post, Thread

logger = logging.getLogger(__name__)


class ForumGateway:
    """Narrow contract the thread synchronization unit relies on."""

    # ── Lookups ──────────────────────────────────────────────────────────────

    def find_forum(self, forum_id: int | None) -> Forum | None:
        if not forum_id:
            return None
        return db.session.get(Forum, forum_id)

    def find_user(self, user_id: int | None) -> ForumUser | None:
        if not user_id:
            return None
        return db.session.get(ForumUser, user_id)

    def find_thread(self, thread_id: int | None) -> Thread | None:
        if not thread_id:
            return None
        return db.session.get(Thread, thread_id)

    # ── Writes ───────────────────────────────────────────────────────────────

    def validate_thread(self, title: str, message: str) -> list[str]:
        """Return the reasons a thread could not be created (empty when valid)."""
        errors = []
        if not title or not title.strip():
            errors.append("Thread title is required.")
        elif len(title) > THREAD_TITLE_MAX_LENGTH:
            errors.append(
                f"Thread title must be {THREAD_TITLE_MAX_LENGTH} characters or fewer."
            )
        if not message or not message.strip():
            errors.append("Thread message is required.")
        return errors

    def create_thread(self, forum: Forum, title: str, message: str) -> Thread:
        """Create a thread plus its first post, authored by the acting identity."""
        author_id = current_user_id()
        thread = Thread(forum_id=forum.id, user_id=author_id, title=title, discussion_open=True)
        thread.posts.append(Post(user_id=author_id, message=message))
        db.session.add(thread)
        db.session.flush()
        logger.debug("Thread %s created in forum %s by user %s", thread.id, forum.id, author_id)
        return thread

    def set_locked(self, thread: Thread, locked: bool) -> None:
        thread.discussion_open = not locked
        db.session.flush()

    def replace_first_post(self, thread: Thread, message: str) -> bool:
        post = thread.first_post
        if post is None:
            return False
        post.message = message
        post.edited_at = datetime.now(timezone.utc)
        db.session.flush()
        return True

    def set_title(self, thread: Thread, title: str) -> None:
        thread.title = title[:THREAD_TITLE_MAX_LENGTH]
        db.session.flush()


forum_gateway = ForumGateway()
