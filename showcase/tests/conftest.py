"""Shared fixtures: in-memory database, temporary uploads and API clients."""

import io
import zipfile
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from showcase.api.app import create_app
from showcase.core.auth import AuthService
from showcase.core.config import ShowcaseSettings
from showcase.core.db import DatabaseManager
from showcase.core.db.models import User
from showcase.core.notifications import EmailService, SlackService
from showcase.core.utils import normalize_email

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass123"
USER_PASSWORD = "UserPass123"

SAMPLE_HTML = b"<!doctype html><html><body><h1>Checkout flow</h1></body></html>"


def make_zip(files: dict) -> bytes:
    """Build an in-memory ZIP archive from {name: bytes}."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def create_user(db_manager, email: str, role: str, password: str = USER_PASSWORD,
                name: str = "Test User", is_active: bool = True) -> str:
    with db_manager.get_session() as session:
        user = User(
            email=normalize_email(email),
            name=name,
            role=role,
            password_hash=AuthService.hash_password(password),
            is_active=is_active,
        )
        session.add(user)
        session.flush()
        return str(user.user_id)


def login(client: TestClient, email: str, password: str = USER_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def upload_prototype(client: TestClient, title: str = "Checkout flow", status: str = "published",
                     is_top_secret: bool = False, filename: str = "checkout.html",
                     content: bytes = SAMPLE_HTML) -> dict:
    response = client.post(
        "/api/prototypes",
        data={"title": title, "description": "Demo", "status": status,
              "is_top_secret": str(is_top_secret).lower()},
        files={"file": (filename, content, "application/octet-stream")},
    )
    assert response.status_code == 201, response.text
    return response.json()["prototype"]


def create_link(client: TestClient, prototype_id=None, **extra) -> dict:
    body = {"prototype_id": prototype_id}
    body.update(extra)
    response = client.post("/api/links", json=body)
    assert response.status_code == 201, response.text
    return response.json()["link"]


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path):
    return ShowcaseSettings(
        environment="development",
        database_url="sqlite://",
        secret_key="test-secret",
        client_url="http://client.test",
        upload_dir=str(tmp_path / "uploads"),
        rate_limit_enabled=False,
    )


@pytest.fixture
def db_manager(settings):
    manager = DatabaseManager(settings.database_url)
    manager.init_db()
    yield manager
    manager.dispose()


@pytest.fixture
def email_service():
    service = MagicMock(spec=EmailService)
    service.send_invite.return_value = True
    service.send_link_shared.return_value = True
    service.send_access_approved.return_value = True
    service.send_access_denied.return_value = True
    return service


@pytest.fixture
def slack_service():
    service = MagicMock(spec=SlackService)
    service.notify.return_value = False
    return service


@pytest.fixture
def app(db_manager, settings, email_service, slack_service):
    return create_app(
        db_manager,
        settings=settings,
        email_service=email_service,
        slack_service=slack_service,
    )


@pytest.fixture
def admin_id(db_manager):
    with db_manager.get_session() as session:
        admin = AuthService(session).ensure_admin(ADMIN_EMAIL, "Admin User", ADMIN_PASSWORD)
        return str(admin.user_id)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(app, admin_id):
    c = TestClient(app)
    response = login(c, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code == 200, response.text
    return c


@pytest.fixture
def make_client(app):
    """Factory for an independent client (own cookie jar)."""
    def _make():
        return TestClient(app)
    return _make
