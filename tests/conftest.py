import os
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so 'app', 'config', and 'tunebox' import correctly
_TESTS_DIR = os.path.dirname(__file__)
_ROOT_DIR = os.path.abspath(os.path.join(_TESTS_DIR, os.pardir))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from tests.support import factories as test_factories
from tests.support import stubs as test_stubs


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep tests away from a developer's .env and real Spotify credentials."""
    for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SONGS_SOURCE", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def spotify_stub():
    return test_stubs.SpotifyStub()


@pytest.fixture
def oauth_stub():
    return test_stubs.OAuthStub()


@pytest.fixture
def sleeps():
    """Delays requested by the adapter's backoff loop."""
    return []


@pytest.fixture
def clock():
    return test_stubs.FrozenClock(1_700_000_000)


@pytest.fixture
def track_source(spotify_stub, oauth_stub, sleeps, clock):
    from tunebox.domain.catalog import TrackSourceAdapter

    return TrackSourceAdapter(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://127.0.0.1:5000/api/auth/spotify/callback",
        result_limit=20,
        max_retries=3,
        base_delay=1.0,
        expiry_buffer=300,
        spotify_factory=spotify_stub.factory,
        oauth_factory=lambda: oauth_stub,
        sleep=sleeps.append,
        clock=clock,
    )


@pytest.fixture
def app_config(tmp_path_factory):
    """Per-test sqlite file; tests may tweak the dict before requesting ``app``."""
    db_dir = tmp_path_factory.mktemp("db")
    db_path = Path(db_dir) / "test.sqlite"
    return {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path.as_posix()}",
        "SEED_CATALOG": False,
        "SONGS_SOURCE": "spotify",
        "SPOTIFY_CLIENT_ID": "test-client-id",
        "SPOTIFY_CLIENT_SECRET": "test-client-secret",
    }


@pytest.fixture
def app(app_config, track_source):
    import app as app_module

    application = app_module.create_app(app_config, track_source=track_source)
    yield application


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield app


@pytest.fixture
def db_session(app_context):
    from tunebox.database.db_manager import db

    test_factories.set_session(db.session)
    try:
        yield db.session
    finally:
        db.session.rollback()
        db.session.remove()
        test_factories.reset_session()


@pytest.fixture
def factories(db_session):
    yield test_factories


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make(app):
    """Create and commit a factory object in a short-lived app context.

    Route tests must not hold an app context open across requests, otherwise
    ``g`` (and the logged-in user cached on it) leaks between clients. The
    object is returned as its ``to_dict()`` snapshot.
    """
    from tunebox.database.db_manager import db

    def _make(factory_name, **kwargs):
        with app.app_context():
            test_factories.set_session(db.session)
            try:
                obj = getattr(test_factories, factory_name)(**kwargs)
                db.session.commit()
                return obj.to_dict()
            finally:
                test_factories.reset_session()
                db.session.remove()

    return _make


@pytest.fixture
def login(client):
    """Log ``client`` in as the given user snapshot (factory default password)."""

    def _login(user, password=test_factories.DEFAULT_PASSWORD, as_client=None):
        target = as_client or client
        response = target.post("/api/auth/login", json={"email": user["email"], "password": password})
        assert response.status_code == 200, response.get_json()
        return response.get_json()["user"]

    return _login
