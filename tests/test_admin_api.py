def test_permissions_catalog(api):
    resp = api.client.get("/api/permissions", headers=api.admin_headers())
    assert resp.status_code == 200
    names = [item["name"] for item in resp.json()["data"]]
    assert "users:impersonate" in names
    assert "audit:read" in names
    assert len(names) == 21

    media_only = api.client.get("/api/permissions", params={"module": "media"}, headers=api.admin_headers())
    assert {item["module"] for item in media_only.json()["data"]} == {"media"}


def test_role_lifecycle_and_live_permission_changes(api):
    admin = api.admin_headers()
    resp = api.client.post(
        "/api/roles",
        json={"name": "editor", "displayName": "Editor", "description": "Content editors"},
        headers=admin,
    )
    assert resp.status_code == 201, resp.text
    role = resp.json()["data"]
    assert role["permissions"] == []
    assert role["isSystem"] is False

    dup = api.client.post("/api/roles", json={"name": "editor", "displayName": "Again"}, headers=admin)
    assert dup.status_code == 409

    api.create_user("editor@nasuha.or.id", role="editor")
    editor = api.headers_for("editor@nasuha.or.id")
    assert api.client.get("/api/categories", headers=editor).status_code == 403

    resp = api.client.put(
        f"/api/roles/{role['id']}/permissions",
        json={"permissions": ["media:read", "media:create"]},
        headers=admin,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["permissions"] == ["media:create", "media:read"]

    # Same token, new permissions on the next request.
    assert api.client.get("/api/categories", headers=editor).status_code == 200

    bad = api.client.put(
        f"/api/roles/{role['id']}/permissions",
        json={"permissions": ["media:read", "media:teleport"]},
        headers=admin,
    )
    assert bad.status_code == 400
    assert bad.json()["error"]["details"] == {"unknown": ["media:teleport"]}

    rows = api.audit_rows("ASSIGN_PERMISSIONS")
    assert len(rows) == 1
    assert rows[0].previous_state == {"permissions": []}
    assert rows[0].new_state == {"permissions": ["media:create", "media:read"]}

    in_use = api.client.delete(f"/api/roles/{role['id']}", headers=admin)
    assert in_use.status_code == 400


def test_system_roles_are_protected(api):
    admin = api.admin_headers()
    roles = api.client.get("/api/roles", headers=admin).json()["data"]
    by_name = {role["name"]: role for role in roles}
    assert set(by_name) == {"super_admin", "korda_admin", "member"}
    assert len(by_name["super_admin"]["permissions"]) == 21
    assert by_name["member"]["permissions"] == ["media:read"]

    member_id = by_name["member"]["id"]
    assert api.client.delete(f"/api/roles/{member_id}", headers=admin).status_code == 400
    resp = api.client.patch(f"/api/roles/{member_id}", json={"name": "guest"}, headers=admin)
    assert resp.status_code == 400
    resp = api.client.patch(f"/api/roles/{member_id}", json={"displayName": "Anggota"}, headers=admin)
    assert resp.status_code == 400

    super_id = by_name["super_admin"]["id"]
    resp = api.client.put(f"/api/roles/{super_id}/permissions", json={"permissions": ["media:read"]}, headers=admin)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"

    after = api.client.get(f"/api/roles/{super_id}", headers=admin).json()["data"]
    assert len(after["permissions"]) == 21
    assert api.client.get("/api/users", headers=admin).status_code == 200
    assert api.audit_rows("ASSIGN_PERMISSIONS") == []
    assert api.audit_rows("UPDATE_ROLE") == []


def test_korda_crud(api):
    admin = api.admin_headers()
    listing = api.client.get("/api/kordas", headers=admin).json()
    assert listing["meta"]["total"] == 3

    resp = api.client.post(
        "/api/kordas",
        json={"code": "depok", "name": "Korda Depok", "city": "Depok", "province": "Jawa Barat"},
        headers=admin,
    )
    assert resp.status_code == 201, resp.text
    korda = resp.json()["data"]
    assert korda["code"] == "DEPOK"

    dup = api.client.post("/api/kordas", json={"code": "DEPOK", "name": "Again"}, headers=admin)
    assert dup.status_code == 409

    resp = api.client.patch(f"/api/kordas/{korda['id']}", json={"isActive": False}, headers=admin)
    assert resp.json()["data"]["isActive"] is False

    resp = api.client.delete(f"/api/kordas/{korda['id']}", headers=admin)
    assert resp.json()["data"]["deleted"] is True
    assert api.client.get(f"/api/kordas/{korda['id']}", headers=admin).status_code == 404

    api.create_user("bekasi.member@nasuha.or.id", korda="BEKASI")
    resp = api.client.delete(f"/api/kordas/{api.korda_id('BEKASI')}", headers=admin)
    assert resp.status_code == 400


def test_korda_admin_sees_only_own_korda_and_users(api):
    api.create_user("bekasi.admin@nasuha.or.id", role="korda_admin", korda="BEKASI")
    api.create_user("bekasi.member@nasuha.or.id", korda="BEKASI")
    api.create_user("bandung.member@nasuha.or.id", korda="BANDUNG")
    headers = api.headers_for("bekasi.admin@nasuha.or.id")

    kordas = api.client.get("/api/kordas", headers=headers).json()["data"]
    assert [k["code"] for k in kordas] == ["BEKASI"]
    assert api.client.get(f"/api/kordas/{api.korda_id('BANDUNG')}", headers=headers).status_code == 404

    users = api.client.get("/api/users", headers=headers).json()
    emails = {u["email"] for u in users["data"]}
    assert emails == {"bekasi.admin@nasuha.or.id", "bekasi.member@nasuha.or.id"}

    resp = api.client.post(
        "/api/kordas", json={"code": "X", "name": "X"}, headers=headers
    )
    assert resp.status_code == 403


def test_user_admin_crud(api):
    admin = api.admin_headers()
    resp = api.client.post(
        "/api/users",
        json={
            "email": "staff@nasuha.or.id",
            "fullName": "Staff",
            "roleId": api.role_id("korda_admin"),
            "kordaId": api.korda_id("BANDUNG"),
        },
        headers=admin,
    )
    assert resp.status_code == 201, resp.text
    user = resp.json()["data"]

    # Created without a password: cannot log in.
    login = api.client.post("/api/auth/login", json={"email": "staff@nasuha.or.id", "password": "anything-1"})
    assert login.status_code == 401

    detail = api.client.get(f"/api/users/{user['id']}", headers=admin).json()["data"]
    assert detail["role"]["name"] == "korda_admin"
    assert detail["korda"]["code"] == "BANDUNG"

    resp = api.client.patch(
        f"/api/users/{user['id']}",
        json={"fullName": "Staff Bandung", "roleId": api.role_id("member")},
        headers=admin,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["role"]["name"] == "member"

    listing = api.client.get("/api/users", params={"search": "bandung"}, headers=admin).json()
    assert [u["id"] for u in listing["data"]] == [user["id"]]

    resp = api.client.delete(f"/api/users/{user['id']}", headers=admin)
    assert resp.json()["data"] == {"id": user["id"], "deleted": True}
    assert api.client.get(f"/api/users/{user['id']}", headers=admin).status_code == 404

    rows = [row for row in api.audit_rows() if row.entity_table == "users" and row.entity_id == user["id"]]
    assert [row.action for row in rows] == ["CREATE_USER", "UPDATE_USER", "DELETE_USER"]
    assert all(
        (row.previous_state or {}).get("password_hash") in (None, "[REDACTED]")
        for row in rows
    )


def test_admin_cannot_delete_self(api):
    admin = api.admin_headers()
    me = api.client.get("/api/auth/me", headers=admin).json()["data"]
    resp = api.client.delete(f"/api/users/{me['id']}", headers=admin)
    assert resp.status_code == 400


def test_audit_log_listing_requires_audit_read(api):
    admin = api.admin_headers()
    api.create_user("member@nasuha.or.id")
    member = api.headers_for("member@nasuha.or.id")
    api.audit_rows()

    assert api.client.get("/api/audit-logs", headers=member).status_code == 403

    resp = api.client.get("/api/audit-logs", params={"action": "user_login"}, headers=admin)
    assert resp.status_code == 200
    body = resp.json()
    assert body["meta"]["total"] == 2
    entry = body["data"][0]
    assert entry["action"] == "USER_LOGIN"
    assert entry["entityTable"] == "users"
    assert "metadata" in entry
    assert entry["ipAddress"] == "testclient"
