"""
Shared fixtures.

The environment is configured before anything from ``cms`` is imported so the
settings object, engine and auth config pick up the test values.
"""

import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-signing-secret-0123456789abcdef"
os.environ["SMTP_SERVER"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from cms.core.config import get_auth_config  # noqa: E402
from cms.core.database import Base, SessionLocal, engine  # noqa: E402
from cms.main import app  # noqa: E402
from cms.services.auth_gateway import AuthGateway  # noqa: E402
from cms.services.email import get_notifier  # noqa: E402


class RecordingNotifier:
    """Captures outgoing emails instead of sending them."""

    def __init__(self):
        self.sent = []

    def send_verification_email(self, to_email, token, username):
        self.sent.append(("verification", to_email, token, username))

    def send_password_reset_email(self, to_email, token, username):
        self.sent.append(("reset", to_email, token, username))

    def send_welcome_email(self, to_email, username):
        self.sent.append(("welcome", to_email, username))

    def last(self, kind):
        matches = [m for m in self.sent if m[0] == kind]
        return matches[-1] if matches else None


@pytest.fixture(autouse=True)
def _reset_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return get_auth_config()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway(db, config, notifier):
    return AuthGateway(db, config, notifier)


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register(gateway):
    """Factory: register an account through the gateway and return (token, user)."""

    def _register(username="alice", email="alice@example.com", password="s3cret-pw", role="user"):
        return gateway.register(username, email, password, role)

    return _register
