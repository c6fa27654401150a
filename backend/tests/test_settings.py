from models import Setting


def test_setting_lookup(client, session, make_user, auth_header):
    h = auth_header(make_user())
    session.add(Setting(key="color_primary", value="#123456"))
    session.commit()

    assert client.get("/api/settings?key=color_primary", headers=h).get_json() == {"value": "#123456", "exists": True}
    assert client.get("/api/settings?key=missing", headers=h).get_json() == {"value": "false", "exists": False}
    r = client.get("/api/settings", headers=h)
    assert r.status_code == 400
    assert r.get_json() == {"error": "Key parameter required"}


def test_setting_lookup_requires_login(client):
    assert client.get("/api/settings?key=x").status_code == 401


def test_admin_role_defaults_to_teacher(client, make_user, auth_header):
    h = auth_header(make_user(role="teacher"))
    assert client.get("/api/settings/admin-role", headers=h).get_json() == {"adminSubRole": "teacher"}


def test_students_cannot_manage_admin_role(client, make_user, auth_header):
    h = auth_header(make_user())
    assert client.get("/api/settings/admin-role", headers=h).status_code == 403


def test_counselor_switch_requires_access_code(client, make_user, auth_header, monkeypatch):
    monkeypatch.setenv("COUNSELOR_ACCESS_CODE", "OPEN-SESAME")
    h = auth_header(make_user(role="teacher"))

    bad = client.post("/api/settings/admin-role", json={"adminSubRole": "college_counselor", "code": "nope"}, headers=h)
    assert bad.status_code == 403

    ok = client.post("/api/settings/admin-role",
                     json={"adminSubRole": "college_counselor", "code": "OPEN-SESAME"}, headers=h)
    assert ok.get_json() == {"adminSubRole": "college_counselor", "success": True}
    assert client.get("/api/settings/admin-role", headers=h).get_json() == {"adminSubRole": "college_counselor"}

    back = client.post("/api/settings/admin-role", json={"adminSubRole": "teacher"}, headers=h)
    assert back.status_code == 200
    assert client.get("/api/settings/admin-role", headers=h).get_json() == {"adminSubRole": "teacher"}


def test_counselor_switch_closed_without_configured_code(client, make_user, auth_header):
    h = auth_header(make_user(role="teacher"))
    r = client.post("/api/settings/admin-role", json={"adminSubRole": "college_counselor", "code": ""}, headers=h)
    assert r.status_code == 403


def test_invalid_sub_role(client, make_user, auth_header):
    h = auth_header(make_user(role="admin"))
    r = client.post("/api/settings/admin-role", json={"adminSubRole": "principal"}, headers=h)
    assert r.status_code == 400
