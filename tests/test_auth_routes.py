from fastapi.testclient import TestClient

from billpilot.core.app_factory import create_application
from billpilot.core.config import Settings
from billpilot.domain.models import TokenPurpose
from billpilot.services.token_issuer import TokenIssuer
from conftest import JWT_SECRET, PASSWORD, link_path, link_query


def _container(client):
    return client.app.state.container


def _use_cookie(client, value):
    client.cookies.clear()
    client.cookies.set("jwt", value)


def test_register_creates_unverified_user(client, register, mailer):
    res = register()

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["success"] is True
    assert body["emailSent"] is True
    assert "15 minutes" in body["message"]

    container = _container(client)
    user = container.user_repository.get_by_email("a@x.com")
    assert user.is_email_verified is False
    assert container.verification_token_repository.find_for_user(user.id, TokenPurpose.VERIFY_EMAIL)
    assert len(mailer.outbox) == 1
    assert mailer.last_link().startswith("http://localhost:3000/api/v1/auth/verify/")


def test_register_reports_failed_email_delivery(client, register, mailer):
    mailer.deliver = False
    res = register()

    assert res.status_code == 200
    assert res.json()["emailSent"] is False


def test_register_validation_errors(client, register):
    res = client.post("/api/v1/auth/register", json={"email": "a@x.com", "username": "abcdef"})
    assert res.status_code == 400
    assert res.json()["error"] == "MissingField"

    assert register(username="ab").status_code == 400
    assert register(email="not-an-email").status_code == 400

    register()
    duplicate = register(username="another")
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DuplicateIdentity"


def test_login_before_verification(client, register, login):
    register()

    res = login()

    assert res.status_code == 400
    assert res.json()["error"] == "NotVerified"
    assert "jwt" not in res.cookies


def test_verification_link(client, register, mailer):
    register()
    path = link_path(mailer.last_link())

    assert client.get(path).status_code == 200
    again = client.get(path)
    assert again.status_code == 200
    assert "already been verified" in again.json()["message"]
    assert mailer.outbox[-1]["subject"] == "Welcome - Account Verified"


def test_verification_link_with_bad_token(client, register):
    register()
    user = _container(client).user_repository.get_by_email("a@x.com")

    res = client.get(f"/api/v1/auth/verify/bogus/{user.id}")

    assert res.status_code == 400
    assert res.json()["error"] == "InvalidToken"


def test_login_sets_refresh_cookie(client, signup, login):
    user = signup()

    res = login()

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["firstName"] == "Jane"
    assert body["username"] == "abcdef"
    assert body["provider"] == "email"
    refresh = res.cookies.get("jwt")
    assert refresh
    set_cookie = res.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "secure" in set_cookie
    assert "samesite=none" in set_cookie
    assert _container(client).user_repository.get_by_id(user.id).refresh_tokens == [refresh]

    profile = client.get(
        "/api/v1/user/profile", headers={"Authorization": f"Bearer {body['accessToken']}"}
    )
    assert profile.status_code == 200


def test_login_with_wrong_password(client, signup, login):
    signup()

    res = login(password="Wrong!pass1")

    assert res.status_code == 401
    assert res.json()["detail"] == "Incorrect email or password"


def test_refresh_rotates_cookie(client, signup, login):
    user = signup()
    first = login().cookies.get("jwt")

    res = client.get("/api/v1/auth/new_access_token")

    assert res.status_code == 200, res.text
    rotated = res.cookies.get("jwt")
    assert rotated and rotated != first
    assert res.json()["accessToken"]
    assert _container(client).user_repository.get_by_id(user.id).refresh_tokens == [rotated]


def test_refresh_with_expired_stored_token(client, signup):
    user = signup()
    expired = TokenIssuer(JWT_SECRET, refresh_exp_minutes=-1).issue_refresh(user.id)
    users = _container(client).user_repository
    users.rotate_refresh_token(user.id, expired)
    _use_cookie(client, expired)

    res = client.get("/api/v1/auth/new_access_token")

    assert res.status_code == 403
    assert expired not in users.get_by_id(user.id).refresh_tokens
    assert "jwt=" in res.headers["set-cookie"]


def test_refresh_token_replay_revokes_sessions(client, signup, login):
    user = signup()
    stolen = login().cookies.get("jwt")
    assert client.get("/api/v1/auth/new_access_token").status_code == 200

    _use_cookie(client, stolen)
    res = client.get("/api/v1/auth/new_access_token")

    assert res.status_code == 403
    assert _container(client).user_repository.get_by_id(user.id).refresh_tokens == []


def test_refresh_without_cookie(client):
    res = client.get("/api/v1/auth/new_access_token")
    assert res.status_code == 401


def test_logout_without_cookie(client, signup):
    user = signup()
    users = _container(client).user_repository
    users.rotate_refresh_token(user.id, "kept")
    client.cookies.clear()

    res = client.get("/api/v1/auth/logout")

    assert res.status_code == 204
    assert users.get_by_id(user.id).refresh_tokens == ["kept"]


def test_logout_revokes_session(client, signup, login):
    user = signup()
    login()

    res = client.get("/api/v1/auth/logout")

    assert res.status_code == 200
    assert "logged out" in res.json()["message"]
    assert "jwt=" in res.headers["set-cookie"]
    assert _container(client).user_repository.get_by_id(user.id).refresh_tokens == []


def test_logout_with_unknown_cookie(client):
    _use_cookie(client, "unknown")

    res = client.get("/api/v1/auth/logout")

    assert res.status_code == 204
    assert "jwt=" in res.headers["set-cookie"]


def test_resend_email_token(client, register, mailer):
    register()

    res = client.post("/api/v1/auth/resend_email_token", json={"email": "a@x.com"})

    assert res.status_code == 200
    assert len(mailer.outbox) == 2
    assert client.post("/api/v1/auth/resend_email_token", json={"email": "b@x.com"}).status_code == 404


def test_password_reset_flow(client, signup, login, mailer):
    signup()
    login()

    res = client.post("/api/v1/auth/reset_password_request", json={"email": "a@x.com"})
    assert res.status_code == 200
    query = link_query(mailer.last_link())

    res = client.post(
        "/api/v1/auth/reset_password",
        json={
            "password": "N3w!passw0rd",
            "passwordConfirm": "N3w!passw0rd",
            "userId": int(query["userId"]),
            "emailToken": query["emailToken"],
        },
    )

    assert res.status_code == 200, res.text
    assert mailer.outbox[-1]["subject"] == "Password Reset Success"
    assert login().status_code == 401
    assert login(password="N3w!passw0rd").status_code == 200


def test_password_reset_with_invalid_token(client, signup):
    user = signup()
    client.post("/api/v1/auth/reset_password_request", json={"email": "a@x.com"})

    res = client.post(
        "/api/v1/auth/reset_password",
        json={
            "password": "N3w!passw0rd",
            "passwordConfirm": "N3w!passw0rd",
            "userId": user.id,
            "emailToken": "wrong",
        },
    )

    assert res.status_code == 400
    assert res.json()["error"] == "InvalidOrExpiredToken"
    stored = _container(client).user_repository.get_by_id(user.id)
    assert stored.password_hash == user.password_hash


def test_register_rejects_password_beyond_bcrypt_limit(client, register):
    res = register(password="Aa1!" + "x" * 80)

    assert res.status_code == 400
    assert res.json()["error"] == "ValidationError"
    assert _container(client).user_repository.get_by_email("a@x.com") is None


def test_password_reset_rejects_password_beyond_bcrypt_limit(client, signup, mailer):
    user = signup()
    client.post("/api/v1/auth/reset_password_request", json={"email": "a@x.com"})
    query = link_query(mailer.last_link())
    long_password = "Aa1!" + "x" * 80

    res = client.post(
        "/api/v1/auth/reset_password",
        json={
            "password": long_password,
            "passwordConfirm": long_password,
            "userId": int(query["userId"]),
            "emailToken": query["emailToken"],
        },
    )

    assert res.status_code == 400
    assert res.json()["error"] == "ValidationError"
    assert _container(client).user_repository.get_by_id(user.id).password_hash == user.password_hash


def test_login_rate_limit(settings, mailer, monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_ATTEMPTS", "3")
    app = create_application(Settings(), mailer)

    with TestClient(app, base_url="https://testserver") as client:
        for _ in range(3):
            res = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": PASSWORD})
            assert res.status_code == 401
        res = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": PASSWORD})

    assert res.status_code == 429
    assert int(res.headers["retry-after"]) > 0


def test_health(client, settings):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.json() == {"ok": True, "database": settings.database_name}
