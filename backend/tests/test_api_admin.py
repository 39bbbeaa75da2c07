import pytest


def _token(client, username, role):
    r = client.post("/api/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": "password123",
        "role": role,
    })
    assert r.status_code == 201
    return r.json()["token"], r.json()["user"]["id"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.parametrize("role, status", [
    ("admin", 200),
    ("operator", 200),
    ("user", 403),
    ("guest", 403),
])
def test_stats_requires_at_least_operator(client, role, status):
    token, _ = _token(client, "caller", role)
    r = client.get("/api/admin/stats", headers=_auth(token))
    assert r.status_code == status


def test_stats_counts(client):
    admin, _ = _token(client, "root", "admin")
    _token(client, "writer", "user")
    _token(client, "visitor", "guest")

    body = client.get("/api/admin/stats", headers=_auth(admin)).json()
    assert body["total_users"] == 3
    assert body["users_by_role"] == {"admin": 1, "operator": 0, "user": 1, "guest": 1}


@pytest.mark.parametrize("role, status", [
    ("admin", 200),
    ("operator", 403),
    ("user", 403),
])
def test_user_list_is_admin_only(client, role, status):
    token, _ = _token(client, "caller", role)
    r = client.get("/api/admin/users", headers=_auth(token))
    assert r.status_code == status


def test_forbidden_message_names_allowed_roles(client):
    token, _ = _token(client, "caller", "operator")
    body = client.get("/api/admin/users", headers=_auth(token)).json()
    assert body["error"] == "forbidden"
    assert "admin" in body["message"]


def test_admin_endpoints_require_authentication(client):
    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/stats").status_code == 401


def test_update_user_role_and_active_flag(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin),
                   json={"role": "operator", "is_active": False})
    assert r.status_code == 200
    assert r.json()["role"] == "operator"
    assert r.json()["is_active"] is False

    r = client.post("/api/auth/login", json={"email": "writer@example.com", "password": "password123"})
    assert r.status_code == 403
    assert r.json()["error"] == "account_deactivated"


def test_update_user_rejects_unknown_role(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={"role": "superuser"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_role"

    r = client.get(f"/api/admin/users/{user_id}", headers=_auth(admin))
    assert r.json()["role"] == "user"


def test_update_missing_user(client):
    admin, _ = _token(client, "root", "admin")
    r = client.put("/api/admin/users/999", headers=_auth(admin), json={"is_active": True})
    assert r.status_code == 404


def test_delete_user(client):
    admin, admin_id = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")
    client.post("/api/auth/request-password-reset", json={"email": "writer@example.com"})

    assert client.delete(f"/api/admin/users/{admin_id}", headers=_auth(admin)).status_code == 400
    assert client.delete(f"/api/admin/users/{user_id}", headers=_auth(admin)).status_code == 200
    assert client.get(f"/api/admin/users/{user_id}", headers=_auth(admin)).status_code == 404


def test_seed_admin_user_from_environment(monkeypatch, db):
    from cms.main import _seed_admin_user
    from cms.models.user import User

    monkeypatch.setenv("ADMIN_EMAIL", "Root@Example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "bootstrap-password")
    _seed_admin_user()
    _seed_admin_user()

    admin = db.query(User).one()
    assert admin.email == "root@example.com"
    assert admin.role == "admin"
    assert admin.is_verified is True


def test_no_seed_without_environment(monkeypatch, db):
    from cms.main import _seed_admin_user
    from cms.models.user import User

    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    _seed_admin_user()
    assert db.query(User).count() == 0


def test_create_user(client):
    admin, _ = _token(client, "root", "admin")

    r = client.post("/api/admin/users", headers=_auth(admin), json={
        "username": "editor",
        "email": "Editor@Example.com",
        "password": "editor-pass",
        "role": "operator",
        "is_verified": True,
    })
    assert r.status_code == 201
    body = r.json()
    assert body["email"] == "editor@example.com"
    assert body["role"] == "operator"
    assert body["is_active"] is True
    assert body["is_verified"] is True

    r = client.post("/api/auth/login", json={"email": "editor@example.com", "password": "editor-pass"})
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "operator"


def test_create_user_defaults_to_guest(client):
    admin, _ = _token(client, "root", "admin")
    r = client.post("/api/admin/users", headers=_auth(admin), json={
        "username": "visitor", "email": "visitor@example.com", "password": "visitor-pass",
    })
    assert r.status_code == 201
    assert r.json()["role"] == "guest"
    assert r.json()["is_verified"] is False


@pytest.mark.parametrize("overrides, status, error", [
    ({"role": "superuser"}, 400, "invalid_role"),
    ({"password": "short"}, 400, "invalid_password"),
    ({"username": "  "}, 400, "invalid_request"),
    ({"email": "root@example.com"}, 409, "account_exists"),
    ({"username": "root"}, 409, "account_exists"),
])
def test_create_user_rejects_bad_input(client, overrides, status, error):
    admin, _ = _token(client, "root", "admin")
    payload = {"username": "editor", "email": "editor@example.com", "password": "editor-pass", **overrides}

    r = client.post("/api/admin/users", headers=_auth(admin), json=payload)
    assert r.status_code == status
    assert r.json()["error"] == error


@pytest.mark.parametrize("role", ["operator", "user", "guest"])
def test_create_user_is_admin_only(client, role):
    token, _ = _token(client, "caller", role)
    r = client.post("/api/admin/users", headers=_auth(token), json={
        "username": "editor", "email": "editor@example.com", "password": "editor-pass",
    })
    assert r.status_code == 403


def test_update_user_profile_fields_and_password(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={
        "username": "author",
        "email": "Author@Example.com",
        "is_verified": True,
        "password": "rotated-password",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["username"] == "author"
    assert body["email"] == "author@example.com"
    assert body["is_verified"] is True

    old = client.post("/api/auth/login", json={"email": "author@example.com", "password": "password123"})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": "author@example.com", "password": "rotated-password"})
    assert new.status_code == 200


def test_update_user_rejects_taken_email(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={"email": "root@example.com"})
    assert r.status_code == 409
    assert r.json()["error"] == "account_exists"

    # Re-submitting the account's own email is not a conflict
    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={"email": "writer@example.com"})
    assert r.status_code == 200


def test_update_user_rejects_short_password(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={"password": "short"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_password"


def test_update_with_no_fields_is_invalid_request(client):
    admin, _ = _token(client, "root", "admin")
    _, user_id = _token(client, "writer", "user")

    r = client.put(f"/api/admin/users/{user_id}", headers=_auth(admin), json={})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid_request", "message": "No fields to update"}


def test_delete_self_is_invalid_request(client):
    admin, admin_id = _token(client, "root", "admin")
    r = client.delete(f"/api/admin/users/{admin_id}", headers=_auth(admin))
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_request"
