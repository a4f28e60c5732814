# tests/test_api.py
import time

import jwt
import pytest
from sqlalchemy.exc import OperationalError

from api import create_app
from api.cli import ensure_role
from api.config import ProductionConfig
from models import storage
from models.access_log import AccessLog
from models.user import User
from services.errors import ConfigurationError
from utils.security import verify_password

PASSWORD = "StrongPass1"

API = "/api/v1"


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, username, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"username": username, "password": password})


def register_payload(**overrides):
    payload = {
        "username": "newuser",
        "email": "  New.User@Example.COM ",
        "password": "Secret123",
        "confirm_password": "Secret123",
        "first_name": "Nueva",
        "last_name": "Usuaria",
        "document_number": "1020304050",
        "phone": "3001234567",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def auth_service(app):
    return app.extensions["auth_service"]


# -- register / login ----------------------------------------------------

def test_register_creates_user_with_default_role(client):
    ensure_role("user")

    resp = client.post(f"{API}/auth/register", json=register_payload())

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["token"] and data["refresh_token"]
    assert data["user"]["username"] == "newuser"
    assert data["user"]["email"] == "new.user@example.com"
    assert data["user"]["first_name"] == "Nueva"
    assert data["user"]["roles"] == ["user"]
    assert data["role_redirection"]["is_admin"] is False

    user = storage.get_session().query(User).filter_by(username="newuser").one()
    assert user.person.document_type == "CC"
    assert verify_password("Secret123", user.password_hash)


def test_register_duplicate_username_conflicts(client, make_user):
    make_user(username="newuser")

    resp = client.post(f"{API}/auth/register", json=register_payload())

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "CONFLICT"


def test_register_validation_errors(client):
    resp = client.post(
        f"{API}/auth/register",
        json=register_payload(email="not-an-email", confirm_password="Other123", document_number=None),
    )

    assert resp.status_code == 422
    details = resp.get_json()["details"]
    assert "email" in details
    assert "document_number" in details


def test_login_returns_token_pair_and_redirect(client, make_user):
    make_user(username="boss", roles=["admin"])

    resp = login(client, "boss")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["token"] and body["refresh_token"] and body["expiration"]
    assert body["user"]["roles"] == ["admin"]
    assert body["role_redirection"] == {
        "user_id": body["user"]["id"],
        "username": "boss",
        "is_admin": True,
        "redirect_url": "/admin/persons",
    }


def test_login_failure_is_uniform_and_logged(client, make_user):
    user = make_user(username="ana")
    user_id = user.id

    wrong = login(client, "ana", "nope-nope")
    unknown = login(client, "ghost", "nope-nope")

    for resp in (wrong, unknown):
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid username or password"
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    rows = storage.get_session().query(AccessLog).filter_by(action="Login failed").all()
    assert sorted((r.user_id or 0, r.status) for r in rows) == [(0, False), (user_id, False)]


def test_inactive_user_cannot_login(client, make_user):
    make_user(username="sleepy", is_active=False)
    assert login(client, "sleepy").status_code == 401


def test_login_returns_503_when_tokens_cannot_be_stored(client, make_user, auth_service, monkeypatch):
    make_user(username="ana")

    def db_down(*args, **kwargs):
        raise OperationalError("INSERT INTO refresh_tokens", {}, Exception("database is locked"))

    monkeypatch.setattr(auth_service.refresh_tokens, "create", db_down)

    resp = login(client, "ana")

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "1"


# -- refresh / check / validate ------------------------------------------

def test_refresh_token_rotation_over_http(client, make_user):
    make_user(username="ana")
    first = login(client, "ana").get_json()
    body = {"token": first["token"], "refresh_token": first["refresh_token"]}

    resp = client.post(f"{API}/auth/refresh-token", json=body)
    assert resp.status_code == 200
    second = resp.get_json()
    assert second["refresh_token"] != first["refresh_token"]

    replay = client.post(f"{API}/auth/refresh-token", json=body)
    assert replay.status_code == 401
    assert replay.get_json()["message"] == "Invalid token or refresh token"


def test_refresh_token_requires_both_fields(client):
    resp = client.post(f"{API}/auth/refresh-token", json={"token": "x"})
    assert resp.status_code == 422


def test_check_token_reports_expired_identity(client, make_user, auth_service):
    user = make_user(username="ana")
    expired = auth_service.codec.issue(user.id, user.username, user.email, [], ttl_minutes=-1)

    resp = client.post(f"{API}/auth/check-token", json={"token": expired.token})

    assert resp.status_code == 200
    assert resp.get_json() == {
        "is_valid": False,
        "user_id": user.id,
        "username": "ana",
        "remaining_seconds": 0,
    }


def test_check_token_accepts_bare_string_body(client, make_user):
    make_user(username="ana")
    token = login(client, "ana").get_json()["token"]

    resp = client.post(f"{API}/auth/check-token", json=token)

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["is_valid"] is True
    assert body["username"] == "ana"
    assert body["remaining_seconds"] > 0


def test_check_token_garbage_is_invalid_not_error(client):
    resp = client.post(f"{API}/auth/check-token", json={"token": "garbage"})

    assert resp.status_code == 200
    assert resp.get_json()["is_valid"] is False
    assert resp.get_json()["user_id"] is None


def test_validate_endpoint_requires_valid_bearer(client, make_user, auth_service):
    user = make_user(username="ana")
    expired = auth_service.codec.issue(user.id, user.username, user.email, [], ttl_minutes=-1)
    token = login(client, "ana").get_json()["token"]

    ok = client.get(f"{API}/auth/validate", headers=bearer(token))
    missing = client.get(f"{API}/auth/validate")
    stale = client.get(f"{API}/auth/validate", headers=bearer(expired.token))

    assert ok.status_code == 200
    assert ok.get_json()["is_valid"] is True
    assert missing.status_code == 401
    assert stale.status_code == 401
    assert stale.get_json()["message"] == "Token expired"


# -- logout / change password --------------------------------------------

def test_logout_revokes_refresh_tokens(client, make_user):
    make_user(username="ana")
    pair = login(client, "ana").get_json()

    resp = client.post(f"{API}/auth/logout", headers=bearer(pair["token"]))
    assert resp.status_code == 200

    refresh = client.post(
        f"{API}/auth/refresh-token",
        json={"token": pair["token"], "refresh_token": pair["refresh_token"]},
    )
    assert refresh.status_code == 401
    assert storage.get_session().query(AccessLog).filter_by(action="Logout", status=True).count() == 1


def test_change_password(client, make_user):
    make_user(username="ana")
    pair = login(client, "ana").get_json()

    wrong = client.post(
        f"{API}/auth/change-password",
        headers=bearer(pair["token"]),
        json={"current_password": "bad-guess", "new_password": "Fresh456", "confirm_new_password": "Fresh456"},
    )
    assert wrong.status_code == 400

    resp = client.post(
        f"{API}/auth/change-password",
        headers=bearer(pair["token"]),
        json={"current_password": PASSWORD, "new_password": "Fresh456", "confirm_new_password": "Fresh456"},
    )
    assert resp.status_code == 200

    assert login(client, "ana").status_code == 401
    assert login(client, "ana", "Fresh456").status_code == 200
    refresh = client.post(
        f"{API}/auth/refresh-token",
        json={"token": pair["token"], "refresh_token": pair["refresh_token"]},
    )
    assert refresh.status_code == 401


# -- users / roles -------------------------------------------------------

def test_me_returns_profile_and_roles(client, make_user):
    make_user(username="ana", roles=["user"])
    token = login(client, "ana").get_json()["token"]

    resp = client.get(f"{API}/me", headers=bearer(token))

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["username"] == "ana"
    assert data["roles"] == ["user"]
    assert "password_hash" not in data


def test_admin_can_grant_and_remove_roles(client, make_user):
    make_user(username="boss", roles=["admin"])
    target = make_user(username="ana")
    target_id = target.id
    ensure_role("auditor")
    token = login(client, "boss").get_json()["token"]

    granted = client.post(f"{API}/users/{target_id}/roles", headers=bearer(token), json={"role_name": " auditor "})
    assert granted.status_code == 200
    assert granted.get_json()["data"]["roles"] == ["auditor"]

    removed = client.delete(f"{API}/users/{target_id}/roles/auditor", headers=bearer(token))
    assert removed.status_code == 200
    assert removed.get_json()["data"]["roles"] == []

    again = client.delete(f"{API}/users/{target_id}/roles/auditor", headers=bearer(token))
    assert again.status_code == 404

    regranted = client.post(f"{API}/users/{target_id}/roles", headers=bearer(token), json={"role_name": "auditor"})
    assert regranted.get_json()["data"]["roles"] == ["auditor"]


def test_role_assignment_unknown_role_or_user(client, make_user):
    make_user(username="boss", roles=["admin"])
    target = make_user(username="ana")
    target_id = target.id
    token = login(client, "boss").get_json()["token"]

    unknown_role = client.post(f"{API}/users/{target_id}/roles", headers=bearer(token), json={"role_name": "nope"})
    unknown_user = client.post(f"{API}/users/9999/roles", headers=bearer(token), json={"role_name": "admin"})

    assert unknown_role.status_code == 404
    assert unknown_user.status_code == 404


def test_non_admin_cannot_grant_roles(client, make_user):
    make_user(username="ana", roles=["user"])
    target = make_user(username="bob")
    target_id = target.id
    token = login(client, "ana").get_json()["token"]

    resp = client.post(f"{API}/users/{target_id}/roles", headers=bearer(token), json={"role_name": "user"})

    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Insufficient role"


# -- app wiring ----------------------------------------------------------

def test_health(client):
    resp = client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"
    assert resp.get_json()["database"] == "ok"


def test_missing_jwt_secret_stops_startup(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "JWT_SECRET", "")
    with pytest.raises(ConfigurationError):
        create_app("production")


def test_cli_seeds_roles_and_creates_admin(app, client):
    runner = app.test_cli_runner()

    seeded = runner.invoke(args=["seed-roles"])
    assert seeded.exit_code == 0
    assert "admin" in seeded.output and "user" in seeded.output

    created = runner.invoke(
        args=["create-admin", "--username", "root", "--email", "Root@Example.com", "--password", "Secret123"]
    )
    assert created.exit_code == 0, created.output

    resp = login(client, "root", "Secret123")
    assert resp.status_code == 200
    assert resp.get_json()["role_redirection"]["is_admin"] is True


def test_cli_create_admin_defaults_do_not_collide(app, client):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["create-admin", "--username", "root", "--email", "root@example.com", "--password", "Secret123"])
    second = runner.invoke(args=["create-admin", "--username", "ops", "--email", "ops@example.com", "--password", "Secret123"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert login(client, "ops", "Secret123").status_code == 200


def test_cli_create_admin_reports_duplicate_email(app):
    runner = app.test_cli_runner()
    runner.invoke(args=["create-admin", "--username", "root", "--email", "root@example.com", "--password", "Secret123"])

    clash = runner.invoke(args=["create-admin", "--username", "ops", "--email", "root@example.com", "--password", "Secret123"])

    assert clash.exit_code == 1
    assert "already in use" in clash.output
    assert storage.get_session().query(User).filter_by(username="ops").first() is None


# -- routing -------------------------------------------------------------

def test_auth_routes_are_mounted_under_auth_prefix(app):
    rules = {rule.rule for rule in app.url_map.iter_rules()}

    for name in ("register", "login", "refresh-token", "check-token", "validate", "logout", "change-password"):
        assert f"{API}/auth/{name}" in rules
        assert f"{API}/{name}" not in rules


@pytest.mark.parametrize(
    "method, path, status",
    [
        ("get", "/health", 200),
        ("post", "/auth/register", 422),
        ("post", "/auth/login", 422),
        ("post", "/auth/refresh-token", 422),
        ("post", "/auth/check-token", 422),
        ("get", "/auth/validate", 401),
        ("post", "/auth/logout", 401),
        ("post", "/auth/change-password", 401),
        ("get", "/me", 401),
        ("post", "/users/1/roles", 401),
        ("delete", "/users/1/roles/admin", 401),
    ],
)
def test_every_route_answers_without_credentials(client, method, path, status):
    resp = getattr(client, method)(f"{API}{path}", json={})
    assert resp.status_code == status


def test_refresh_rejections_share_one_response(client, make_user):
    make_user(username="ana")
    make_user(username="bob")
    ana = login(client, "ana").get_json()
    bob = login(client, "bob").get_json()

    attempts = [
        {"token": "garbage", "refresh_token": ana["refresh_token"]},
        {"token": ana["token"], "refresh_token": "unknown"},
        {"token": bob["token"], "refresh_token": ana["refresh_token"]},
    ]
    for body in attempts:
        resp = client.post(f"{API}/auth/refresh-token", json=body)
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid token or refresh token"


def test_refresh_returns_503_when_tokens_cannot_be_stored(client, make_user, auth_service, monkeypatch):
    make_user(username="ana")
    pair = login(client, "ana").get_json()

    def db_down(*args, **kwargs):
        raise OperationalError("INSERT INTO refresh_tokens", {}, Exception("database is locked"))

    monkeypatch.setattr(auth_service.refresh_tokens, "create", db_down)
    body = {"token": pair["token"], "refresh_token": pair["refresh_token"]}

    failed = client.post(f"{API}/auth/refresh-token", json=body)
    assert failed.status_code == 503
    assert failed.headers["Retry-After"] == "1"

    monkeypatch.undo()
    assert client.post(f"{API}/auth/refresh-token", json=body).status_code == 200


@pytest.mark.parametrize("body", ["garbage", {"token": "a.b.c"}, {"token": "x" * 4096}, {"token": "e30.e30.sig"}])
def test_check_token_never_fails_on_bad_input(client, body):
    resp = client.post(f"{API}/auth/check-token", json=body)

    assert resp.status_code == 200
    assert resp.get_json()["is_valid"] is False


def test_bearer_with_loosely_formatted_subject_is_rejected(client, make_user, auth_service):
    user = make_user(username="ana")
    settings = auth_service.settings
    token = jwt.encode(
        {
            "sub": f" {user.id} ",
            "unique_name": "ana",
            "jti": "j",
            "exp": int(time.time()) + 60,
            "iss": settings.issuer,
            "aud": settings.audience,
        },
        settings.secret,
        algorithm="HS256",
    )

    resp = client.get(f"{API}/me", headers=bearer(token))

    assert resp.status_code == 401
