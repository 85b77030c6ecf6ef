"""
Shared pytest fixtures for the Marker Map Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - thread_config: Thread creation switched on with a forum + fallback user
"""

import pytest

from markermap import create_app
from markermap.models import db as _db
from markermap.models.forum import Forum, ForumUser


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def forum_user():
    """Board account id 1 (the fallback thread author)."""
    user = ForumUser(id=1, username="admin", is_moderator=True)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def forum():
    f = Forum(title="Map Markers")
    _db.session.add(f)
    _db.session.commit()
    return f


@pytest.fixture()
def thread_config(app, forum, forum_user):
    """Enable thread creation into ``forum``; restores config afterwards."""
    keys = ("ENABLE_THREAD_CREATION", "THREAD_CREATION_FORUM_ID",
            "USE_SPECIFIC_ACCOUNT_FOR_THREADS", "SPECIFIC_ACCOUNT_FOR_THREAD")
    saved = {key: app.config.get(key) for key in keys}
    app.config["ENABLE_THREAD_CREATION"] = True
    app.config["THREAD_CREATION_FORUM_ID"] = forum.id
    app.config["USE_SPECIFIC_ACCOUNT_FOR_THREADS"] = False
    app.config["SPECIFIC_ACCOUNT_FOR_THREAD"] = None
    yield forum
    app.config.update(saved)
