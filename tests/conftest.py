"""
Shared pytest fixtures for the BugFixer backend test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Anonymous Flask test client
    - register: Factory that signs a user up and returns a logged-in client
    - outbox: Emails recorded by the log-only mail mode
    - github: Stub HTTP session wired into the GitHub gateway
    - storage: Screenshot storage rooted in a temp directory
"""

import pytest

from bugfixer import create_app
from bugfixer.integrations.github_gateway import GitHubGateway
from bugfixer.integrations.image_storage import STORAGE_KEY, ImageStorage
from bugfixer.models import db as _db
from bugfixer.services.cache_service import IDENTITY_CACHE_KEY, WIDGET_ORIGIN_CACHE_KEY
from bugfixer.services.email_service import OUTBOX_KEY
from bugfixer.services.github_service import GATEWAY_KEY

DEFAULT_PASSWORD = "s3cret-pass"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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
        # Ids are random but cached identities would outlive the dropped rows
        app.extensions[IDENTITY_CACHE_KEY].clear()
        app.extensions[WIDGET_ORIGIN_CACHE_KEY].invalidate()
        app.extensions[OUTBOX_KEY].clear()
        original_gateway = app.extensions[GATEWAY_KEY]
        yield
        app.extensions[GATEWAY_KEY] = original_gateway
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Anonymous Flask test client."""
    return app.test_client()


@pytest.fixture()
def outbox(app):
    """List of {"to", "subject", "template", "html"} dicts sent during the test."""
    return app.extensions[OUTBOX_KEY]


# ── Users & projects ─────────────────────────────────────────────────────


@pytest.fixture()
def register(app):
    """Factory: sign a user up and return (client, user_dict).

    Each user gets a separate test client because the session cookie is
    stored per client.
    """

    def _register(email, name=None, password=DEFAULT_PASSWORD):
        c = app.test_client()
        res = c.post("/api/auth/signup", json={
            "email": email,
            "password": password,
            "name": name or email.split("@")[0].title(),
        })
        assert res.status_code == 201, res.get_json()
        return c, res.get_json()["user"]

    return _register


@pytest.fixture()
def owner(register):
    return register("olivia@acme.io", "Olivia Owner")


@pytest.fixture()
def project(owner):
    """A private project owned by ``owner``."""
    c, _ = owner
    res = c.post("/api/projects", json={"name": "Checkout Service", "description": "Payments"})
    assert res.status_code == 201
    return res.get_json()["project"]


def _add_member(owner_client, project_id, email, role="MEMBER"):
    res = owner_client.post(f"/api/members/{project_id}", json={"email": email, "role": role})
    assert res.status_code == 201, res.get_json()
    return res.get_json()


@pytest.fixture()
def member_of(register):
    """Factory: register a user and add them to a project with a role."""

    def _member_of(owner_client, project_id, email, role="MEMBER"):
        c, user = register(email)
        _add_member(owner_client, project_id, email, role)
        return c, user

    return _member_of


# ── GitHub stub ──────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeGitHubSession:
    """Stands in for requests.Session; routes by (method, url)."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, url, status_code=200, payload=None):
        self.routes[(method, url)] = FakeResponse(status_code, payload)

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": headers, **kwargs})
        response = self.routes.get((method, url))
        if response is None:
            return FakeResponse(404, {"message": "Not Found"})
        return response


@pytest.fixture()
def github(app):
    """Replace the app's GitHub gateway with one backed by FakeGitHubSession."""
    fake = FakeGitHubSession()
    app.extensions[GATEWAY_KEY] = GitHubGateway.from_config(app.config, session=fake)
    return fake


# ── Image storage ────────────────────────────────────────────────────────

UPLOAD_CLOCK = 1700000000.0


@pytest.fixture()
def storage(app, tmp_path):
    """Local image storage under tmp_path with a frozen name clock."""
    store = ImageStorage(tmp_path, app.config["API_PUBLIC_URL"], clock=lambda: UPLOAD_CLOCK)
    app.extensions[STORAGE_KEY] = store
    yield store
    app.extensions[STORAGE_KEY] = None
