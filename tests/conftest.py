import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Configure the app before anything under app/ is imported
os.environ.setdefault("SECRET_KEY", "ci-test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENABLE_SCHEDULER"] = "0"
os.environ["EMAIL_LAMBDA_URL"] = ""
os.environ["ALLOW_ANONYMOUS_INVITE_ACCEPT"] = "1"
# the module-level app in app.main gets its own throwaway database
os.environ["DATABASE_URL"] = f"sqlite:///{Path(tempfile.mkdtemp()) / 'import.db'}"

from app.core.roles import PLATFORM_NONE, PLATFORM_SUPER_ADMIN  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.crud.user import build_user  # noqa: E402
from app.main import create_app  # noqa: E402

DEFAULT_PASSWORD = "secret123"


def make_auth_headers(user) -> dict:
    token = create_access_token(user.uid, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(tmp_path):
    application = create_app(f"sqlite:///{tmp_path / 'test.db'}")
    yield application
    application.state.engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Factory: persisted identity, verified by default."""

    def _make(
        email: str,
        password: str = DEFAULT_PASSWORD,
        role: str = PLATFORM_NONE,
        verified: bool = True,
        **extra,
    ):
        user = build_user(
            db,
            email=email,
            password=password,
            role=role,
            email_verified=verified,
            **extra,
        )
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def super_admin(make_user):
    return make_user("root@example.com", role=PLATFORM_SUPER_ADMIN, first_name="Root")


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com", first_name="Olive", last_name="Owner")


@pytest.fixture
def company(client, owner):
    """A company created through the API by `owner`."""
    res = client.post(
        "/api/companies",
        json={"name": "Acme", "description": "Widgets"},
        headers=make_auth_headers(owner),
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]


def add_member(client, admin, company_id: str, user, role: str = "member") -> dict:
    """Invite `user` as `admin` and accept it as `user`. Returns the accept payload."""
    res = client.post(
        "/api/companies/invite",
        json={"email": user.email, "company_id": company_id, "role": role},
        headers=make_auth_headers(admin),
    )
    assert res.status_code == 201, res.text
    invite_id = res.json()["data"]["invite_id"]

    res = client.post(f"/api/companies/invite/{invite_id}/accept", headers=make_auth_headers(user))
    assert res.status_code == 200, res.text
    return res.json()["data"]
