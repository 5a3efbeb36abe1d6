from datetime import datetime, timedelta, timezone

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, JWT_SECRET
from nasuha_connect.api.routes import auth as auth_routes
from nasuha_connect.core.audit import REDACTED
from nasuha_connect.core.security import create_access_token
from nasuha_connect.models import Permission, Role, User, utcnow


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_login_returns_token_and_profile_without_hash(api):
    resp = api.client.post("/api/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["token"].count(".") == 2
    assert data["user"]["email"] == ADMIN_EMAIL
    assert data["user"]["fullName"] == "Super Admin"
    assert data["user"]["role"]["name"] == "super_admin"
    assert data["user"]["korda"] is None
    assert "passwordHash" not in resp.text
    assert "password_hash" not in resp.text

    rows = api.audit_rows("USER_LOGIN")
    assert len(rows) == 1
    assert rows[0].entity_table == "users"
    assert rows[0].user_id == data["user"]["id"]


def test_bad_credentials_share_one_generic_answer(api):
    api.create_user("nopass@nasuha.or.id", password=None)
    answers = []
    for email, password in [
        (ADMIN_EMAIL, "wrong-password"),
        ("ghost@nasuha.or.id", "whatever-pass"),
        ("nopass@nasuha.or.id", "whatever-pass"),
    ]:
        resp = api.client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 401
        answers.append(resp.json())
    assert answers[0] == answers[1] == answers[2]
    assert answers[0]["error"]["code"] == "UNAUTHORIZED"
    assert api.audit_rows("USER_LOGIN") == []


def test_inactive_user_login_is_forbidden(api):
    api.create_user("sleepy@nasuha.or.id", is_active=False)
    resp = api.client.post("/api/auth/login", json={"email": "sleepy@nasuha.or.id", "password": "user-pass-123"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_login_validation_error(api):
    resp = api.client.post("/api/auth/login", json={"email": "not-an-email", "password": ""})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {item["field"] for item in body["error"]["details"]}
    assert {"email", "password"} <= fields


def test_me_requires_token(api):
    resp = api.client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    resp = api.client.get("/api/auth/me", headers=_bearer("garbage"))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_TOKEN"


def test_non_ascii_token_is_invalid_not_server_error(api):
    raw = "Bearer eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.ééé.abcd".encode("utf-8")
    resp = api.client.get("/api/auth/me", headers={"Authorization": raw})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_TOKEN"


def test_expired_token_reports_token_expired(api):
    user_id = api.create_user("late@nasuha.or.id")
    token = create_access_token(
        JWT_SECRET,
        user_id=user_id,
        email="late@nasuha.or.id",
        role_id=api.role_id("member"),
        korda_id=None,
        expires_in=timedelta(minutes=5),
        now=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    resp = api.client.get("/api/auth/me", headers=_bearer(token))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "TOKEN_EXPIRED"


def test_token_signed_with_other_secret_is_invalid(api):
    user_id = api.create_user("forged@nasuha.or.id")
    token = create_access_token(
        "some-other-secret-value-0123456789abcdef",
        user_id=user_id,
        email="forged@nasuha.or.id",
        role_id=api.role_id("super_admin"),
        korda_id=None,
        expires_in=timedelta(hours=1),
    )
    resp = api.client.get("/api/auth/me", headers=_bearer(token))
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "INVALID_TOKEN"


def test_me_returns_profile_and_permissions(api):
    api.create_user("member@nasuha.or.id", korda="BEKASI")
    resp = api.client.get("/api/auth/me", headers=api.headers_for("member@nasuha.or.id"))
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["email"] == "member@nasuha.or.id"
    assert data["role"]["name"] == "member"
    assert data["korda"]["code"] == "BEKASI"
    assert data["permissions"] == ["media:read"]


def test_deleted_or_deactivated_user_token_stops_working(api):
    user_id = api.create_user("leaver@nasuha.or.id")
    headers = api.headers_for("leaver@nasuha.or.id")
    assert api.client.get("/api/auth/me", headers=headers).status_code == 200

    with api.session() as db:
        db.get(User, user_id).is_active = False
        db.commit()
    resp = api.client.get("/api/auth/me", headers=headers)
    assert resp.status_code == 403

    with api.session() as db:
        user = db.get(User, user_id)
        user.is_active = True
        user.deleted_at = utcnow()
        db.commit()
    resp = api.client.get("/api/auth/me", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


def test_register_requires_users_create(api):
    api.create_user("member@nasuha.or.id")
    payload = {
        "email": "new@nasuha.or.id",
        "fullName": "New Person",
        "password": "new-pass-123",
        "roleId": api.role_id("member"),
    }
    resp = api.client.post("/api/auth/register", json=payload, headers=api.headers_for("member@nasuha.or.id"))
    assert resp.status_code == 403
    assert "users:create" in resp.json()["error"]["message"]


def test_register_creates_user_and_redacts_audit(api):
    headers = api.admin_headers()
    payload = {
        "email": "New@Nasuha.or.id",
        "fullName": "New Person",
        "phone": "+6281234567890",
        "password": "new-pass-123",
        "roleId": api.role_id("member"),
        "kordaId": api.korda_id("BANDUNG"),
    }
    resp = api.client.post("/api/auth/register", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["email"] == "new@nasuha.or.id"
    assert data["phone"] == "081234567890"
    assert "passwordHash" not in data

    assert api.login("new@nasuha.or.id", "new-pass-123")

    rows = api.audit_rows("CREATE_USER")
    assert len(rows) == 1
    assert rows[0].entity_id == data["id"]
    assert rows[0].new_state["password_hash"] == REDACTED

    resp = api.client.post("/api/auth/register", json=payload, headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ALREADY_EXISTS"


def test_register_rejects_unknown_role(api):
    payload = {
        "email": "new@nasuha.or.id",
        "fullName": "New Person",
        "roleId": "00000000-0000-0000-0000-000000000000",
    }
    resp = api.client.post("/api/auth/register", json=payload, headers=api.admin_headers())
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"


def test_impersonation_issues_target_token_and_audits_both_ids(api):
    target_id = api.create_user("target@nasuha.or.id", korda="BEKASI")
    headers = api.admin_headers()
    resp = api.client.post(
        "/api/auth/impersonate",
        json={"targetUserId": target_id, "reason": "support ticket 42"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["impersonating"]["id"] == target_id
    assert "logged" in data["warning"]

    me = api.client.get("/api/auth/me", headers=_bearer(data["token"]))
    assert me.json()["data"]["email"] == "target@nasuha.or.id"

    rows = api.audit_rows("USER_IMPERSONATE")
    assert len(rows) == 1
    row = rows[0]
    admin_id = api.client.get("/api/auth/me", headers=headers).json()["data"]["id"]
    assert row.user_id == admin_id
    assert row.entity_id == target_id
    assert row.extra["impersonatorId"] == admin_id
    assert row.extra["targetUserId"] == target_id
    assert row.extra["reason"] == "support ticket 42"


def test_impersonation_requires_permission_and_existing_target(api):
    api.create_user("member@nasuha.or.id")
    resp = api.client.post(
        "/api/auth/impersonate",
        json={"targetUserId": "00000000-0000-0000-0000-000000000000"},
        headers=api.headers_for("member@nasuha.or.id"),
    )
    assert resp.status_code == 403

    resp = api.client.post(
        "/api/auth/impersonate",
        json={"targetUserId": "00000000-0000-0000-0000-000000000000"},
        headers=api.admin_headers(),
    )
    assert resp.status_code == 404


def test_change_password(api):
    api.create_user("changer@nasuha.or.id")
    headers = api.headers_for("changer@nasuha.or.id")
    resp = api.client.post(
        "/api/auth/change-password",
        json={"currentPassword": "wrong-pass", "newPassword": "fresh-pass-456", "confirmPassword": "fresh-pass-456"},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = api.client.post(
        "/api/auth/change-password",
        json={"currentPassword": "user-pass-123", "newPassword": "fresh-pass-456", "confirmPassword": "other"},
        headers=headers,
    )
    assert resp.status_code == 422

    resp = api.client.post(
        "/api/auth/change-password",
        json={"currentPassword": "user-pass-123", "newPassword": "fresh-pass-456", "confirmPassword": "fresh-pass-456"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert api.login("changer@nasuha.or.id", "fresh-pass-456")
    assert len(api.audit_rows("CHANGE_PASSWORD")) == 1


def test_register_by_branch_admin_stays_in_own_korda(api):
    api.create_user("bekasi.admin@nasuha.or.id", role="korda_admin", korda="BEKASI")
    with api.session() as db:
        role = db.query(Role).filter(Role.name == "korda_admin").one()
        role.permissions.append(db.query(Permission).filter(Permission.name == "users:create").one())
        db.commit()

    payload = {
        "email": "recruit@nasuha.or.id",
        "fullName": "Recruit",
        "roleId": api.role_id("member"),
        "kordaId": api.korda_id("BANDUNG"),
    }
    resp = api.client.post("/api/auth/register", json=payload, headers=api.headers_for("bekasi.admin@nasuha.or.id"))
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["kordaId"] == api.korda_id("BEKASI")

    national = dict(payload, email="recruit2@nasuha.or.id", kordaId=None)
    resp = api.client.post("/api/auth/register", json=national, headers=api.headers_for("bekasi.admin@nasuha.or.id"))
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["kordaId"] == api.korda_id("BEKASI")


def test_unknown_email_still_checks_a_password_hash(api, monkeypatch):
    api.create_user("nopass@nasuha.or.id", password=None)
    checked = []
    real_verify = auth_routes.verify_password

    def _recording_verify(password, encoded):
        checked.append(encoded)
        return real_verify(password, encoded)

    monkeypatch.setattr(auth_routes, "verify_password", _recording_verify)
    for email in ("ghost@nasuha.or.id", "nopass@nasuha.or.id"):
        resp = api.client.post("/api/auth/login", json={"email": email, "password": "whatever-pass"})
        assert resp.status_code == 401
    assert checked == [auth_routes.dummy_password_hash()] * 2
    assert checked[0].startswith("pbkdf2_sha256$")
