from datetime import timedelta

import httpx

from app.core.security import create_access_token
from app.models.creds import Creds
from app.models.user import User
from app.models.verification_code import PURPOSE_PASSWORD_RESET, PURPOSE_SIGNUP, VerificationCode
from app.services import email as mailer
from tests.conftest import DEFAULT_PASSWORD, make_auth_headers


def _code_for(db, email, purpose=PURPOSE_SIGNUP):
    db.expire_all()
    row = (
        db.query(VerificationCode)
        .filter(VerificationCode.email == email, VerificationCode.purpose == purpose)
        .first()
    )
    assert row is not None
    return row.code


def _signup(client, email="jane@example.com", username="jane"):
    return client.post(
        "/api/auth/signup",
        json={
            "email": email,
            "username": username,
            "password": DEFAULT_PASSWORD,
            "first_name": "Jane",
            "last_name": "Doe",
            "time_zone": "Europe/Zagreb",
        },
    )


def test_signup_creates_unverified_identity_and_code(client, db):
    res = _signup(client, email="Jane@Example.com")
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["success"] is True
    assert body["data"]["access_token"]
    assert body["data"]["user"]["email"] == "jane@example.com"
    assert body["data"]["user"]["email_verified"] is False

    assert _code_for(db, "jane@example.com").isdigit()


def test_signup_duplicate_email_and_username(client):
    assert _signup(client).status_code == 201

    res = _signup(client, email="JANE@example.com", username="other")
    assert res.status_code == 409
    assert res.json()["code"] == "EMAIL_IN_USE"

    res = _signup(client, email="jane2@example.com", username="Jane")
    assert res.status_code == 409
    assert res.json()["code"] == "USERNAME_IN_USE"


def test_signup_without_username_is_allowed_repeatedly(client):
    assert _signup(client, email="a@example.com", username=None).status_code == 201
    assert _signup(client, email="b@example.com", username=None).status_code == 201


def test_validate_email_flips_flag_once(client, db):
    _signup(client)
    code = _code_for(db, "jane@example.com")

    res = client.post("/api/auth/validate-email", json={"email": "jane@example.com", "code": code})
    assert res.status_code == 200, res.text
    assert res.json()["data"]["user"]["email_verified"] is True

    res = client.post("/api/auth/validate-email", json={"email": "jane@example.com", "code": code})
    assert res.status_code == 404
    assert res.json()["code"] == "INVALID_CODE"


def test_send_code_for_unknown_email_creates_account_on_validation(client, db, monkeypatch):
    sent = []
    monkeypatch.setattr(mailer, "send_welcome", lambda email, name, password: sent.append((email, password)))

    res = client.post("/api/auth/send-code", json={"email": "fresh@example.com"})
    assert res.status_code == 200
    assert db.query(User).filter(User.email == "fresh@example.com").first() is None

    code = _code_for(db, "fresh@example.com")
    res = client.post("/api/auth/validate-email", json={"email": "fresh@example.com", "code": code})
    assert res.status_code == 200, res.text

    assert len(sent) == 1
    email, password = sent[0]
    assert email == "fresh@example.com"

    # generated password works and is no longer stored in clear
    login = client.post("/api/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200
    db.expire_all()
    assert db.query(VerificationCode).filter(VerificationCode.password.isnot(None)).count() == 0


def test_send_code_rejects_verified_account(client, make_user):
    make_user("done@example.com")
    res = client.post("/api/auth/send-code", json={"email": "done@example.com"})
    assert res.status_code == 409
    assert res.json()["code"] == "EMAIL_ALREADY_VERIFIED"


def test_login_and_last_login(client, db, owner, company):
    res = client.post("/api/auth/login", json={"email": "OWNER@example.com", "password": DEFAULT_PASSWORD})
    assert res.status_code == 200
    assert res.json()["data"]["token_type"] == "bearer"

    db.expire_all()
    creds = db.query(Creds).filter(Creds.uid == owner.uid).one()
    assert creds.last_login is not None


def test_login_bad_password(client, owner):
    res = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope-nope"})
    assert res.status_code == 401
    body = res.json()
    assert body == {
        "success": False,
        "error": body["error"],
        "code": "INVALID_CREDENTIALS",
        "trace_id": body["trace_id"],
    }
    assert res.headers["X-Request-ID"] == body["trace_id"]


def test_me_requires_valid_token(client, owner):
    assert client.get("/api/auth/me").json()["code"] == "AUTH_REQUIRED"

    res = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["code"] == "TOKEN_INVALID"

    expired = create_access_token(owner.uid, owner.email, expires_delta=timedelta(seconds=-5))
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["code"] == "TOKEN_EXPIRED"

    res = client.get("/api/auth/me", headers=make_auth_headers(owner))
    assert res.status_code == 200
    assert res.json()["data"]["user"]["uid"] == owner.uid


def test_me_lists_memberships(client, owner, company):
    res = client.get("/api/auth/me", headers=make_auth_headers(owner))
    memberships = res.json()["data"]["memberships"]
    assert memberships == [
        {
            "company_id": company["company_id"],
            "role": "admin",
            "status": "accepted",
            "active": True,
            "last_login": None,
        }
    ]


def test_trace_id_is_propagated(client):
    res = client.get("/api/auth/me", headers={"X-Request-ID": "trace-123"})
    assert res.headers["X-Request-ID"] == "trace-123"
    assert res.json()["trace_id"] == "trace-123"


def test_validation_errors_are_400(client):
    res = client.post("/api/auth/signup", json={"email": "not-an-email", "password": "x"})
    assert res.status_code == 400
    assert res.json()["code"] == "VALIDATION_FAILED"


def test_forgot_password_does_not_reveal_existence(client, db, owner):
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    known = client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()

    db.expire_all()
    assert db.query(VerificationCode).filter(VerificationCode.email == "ghost@example.com").count() == 0


def test_reset_password_with_code(client, db, owner):
    client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
    code = _code_for(db, "owner@example.com", PURPOSE_PASSWORD_RESET)

    res = client.post(
        "/api/auth/reset-password",
        json={"email": "owner@example.com", "code": code, "new_password": "brand-new-pass"},
    )
    assert res.status_code == 200, res.text

    assert client.post(
        "/api/auth/login", json={"email": "owner@example.com", "password": DEFAULT_PASSWORD}
    ).status_code == 401
    assert client.post(
        "/api/auth/login", json={"email": "owner@example.com", "password": "brand-new-pass"}
    ).status_code == 200

    # the code is single use
    res = client.post(
        "/api/auth/reset-password",
        json={"email": "owner@example.com", "code": code, "new_password": "another-pass"},
    )
    assert res.status_code == 404


def test_change_password(client, owner):
    headers = make_auth_headers(owner)
    res = client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "whatever1"},
        headers=headers,
    )
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_CURRENT_PASSWORD"

    res = client.post(
        "/api/auth/change-password",
        json={"current_password": DEFAULT_PASSWORD, "new_password": "whatever1"},
        headers=headers,
    )
    assert res.status_code == 200


def test_email_failure_keeps_committed_state(client, db, monkeypatch):
    def _boom(*args, **kwargs):
        raise httpx.ConnectError("relay down")

    monkeypatch.setattr(mailer, "EMAIL_LAMBDA_URL", "http://relay.example.com/send")
    monkeypatch.setattr(mailer.httpx, "post", _boom)

    res = _signup(client, email="late@example.com", username="late")
    assert res.status_code == 500
    assert res.json()["code"] == "EMAIL_DELIVERY_FAILED"

    db.expire_all()
    assert db.query(User).filter(User.email == "late@example.com").count() == 1
    assert db.query(VerificationCode).filter(VerificationCode.email == "late@example.com").count() == 1


def test_relay_rejection_surfaces_as_upstream_error(monkeypatch):
    request = httpx.Request("POST", "http://relay.example.com/send")
    monkeypatch.setattr(
        mailer.httpx,
        "post",
        lambda *a, **k: httpx.Response(200, json={"success": False, "message": "quota"}, request=request),
    )
    try:
        mailer.send_email("x@example.com", "Hi", "<p>x</p>", url="http://relay.example.com/send")
    except mailer.UpstreamError as e:
        assert e.code == "EMAIL_DELIVERY_FAILED"
        assert e.message == "quota"
    else:
        raise AssertionError("expected UpstreamError")
