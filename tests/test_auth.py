from config import settings
from conftest import PASSWORD


def test_register_returns_token_and_user(api):
    body = api.register("Alice", email="Alice@Example.com")

    assert body["token"]
    assert body["user"]["username"] == "alice"
    assert body["user"]["email"] == "alice@example.com"
    assert body["user"]["role"] == "user"
    assert "password" not in body["user"]


def test_register_rejects_weak_password(api):
    response = api.client.post(
        "/api/auth/register",
        json={"username": "bob", "email": "bob@example.com", "password": "alllower1"},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "password"


def test_register_rejects_bad_username_and_email(api):
    response = api.client.post(
        "/api/auth/register",
        json={"username": "no spaces!", "email": "not-an-email", "password": PASSWORD},
    )
    assert response.status_code == 400
    assert {e["field"] for e in response.json()["errors"]} == {"username", "email"}


def test_register_duplicates(api):
    api.register("alice")

    same_name = api.client.post(
        "/api/auth/register",
        json={"username": "ALICE", "email": "other@example.com", "password": PASSWORD},
    )
    same_email = api.client.post(
        "/api/auth/register",
        json={"username": "other", "email": "alice@example.com", "password": PASSWORD},
    )
    assert same_name.status_code == 400
    assert same_email.status_code == 400


def test_register_disabled(api, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_REGISTRATION", False)
    response = api.client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": PASSWORD},
    )
    assert response.status_code == 403


def test_login_with_username_or_email(api):
    api.register("alice")

    by_name = api.client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})
    by_email = api.client.post("/api/auth/login", json={"username": "alice@example.com", "password": PASSWORD})

    assert by_name.status_code == 200
    assert by_name.json()["token_type"] == "bearer"
    assert by_email.status_code == 200

    user = api.users.find_by_login("alice")
    assert user.last_login_at is not None
    assert user.last_login_ip == "testclient"


def test_login_failures_are_indistinguishable(api):
    user = api.register("alice")["user"]

    wrong_password = api.client.post("/api/auth/login", json={"username": "alice", "password": "Wrong123"})
    unknown_user = api.client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})
    api.users.update(user["id"], {"is_active": False})
    disabled = api.client.post("/api/auth/login", json={"username": "alice", "password": PASSWORD})

    for response in (wrong_password, unknown_user, disabled):
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"


def test_profile_requires_token(api):
    assert api.client.get("/api/auth/profile").status_code == 401
    assert api.client.get("/api/auth/profile", headers=api.auth("garbage")).status_code == 401


def test_profile_and_verify(api):
    headers = api.user_headers("alice")

    profile = api.client.get("/api/auth/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["username"] == "alice"

    verify = api.client.get("/api/auth/verify", headers=headers)
    assert verify.status_code == 200
    assert verify.json()["valid"] is True


def test_verify_rejects_disabled_user(api):
    body = api.register("alice")
    api.users.update(body["user"]["id"], {"is_active": False})

    assert api.client.get("/api/auth/verify", headers=api.auth(body["token"])).status_code == 401


def test_update_profile_email_and_password(api):
    headers = api.user_headers("alice")
    api.register("bob")

    taken = api.client.put("/api/auth/profile", json={"email": "bob@example.com"}, headers=headers)
    assert taken.status_code == 400

    changed = api.client.put("/api/auth/profile", json={"email": "new@example.com"}, headers=headers)
    assert changed.status_code == 200
    assert changed.json()["email"] == "new@example.com"

    no_current = api.client.put("/api/auth/profile", json={"new_password": "Newpass123"}, headers=headers)
    assert no_current.status_code == 400

    wrong_current = api.client.put(
        "/api/auth/profile",
        json={"current_password": "Wrong123", "new_password": "Newpass123"},
        headers=headers,
    )
    assert wrong_current.status_code == 400

    ok = api.client.put(
        "/api/auth/profile",
        json={"current_password": PASSWORD, "new_password": "Newpass123"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert api.login("alice", "Newpass123")


def test_logout(api):
    response = api.client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_deactivated_user_cannot_update_profile(api):
    headers = api.user_headers("alice")
    api.users.update(api.users.find_by_login("alice").id, {"is_active": False})

    response = api.client.put("/api/auth/profile", json={"email": "new@example.com"}, headers=headers)
    assert response.status_code == 401
    assert api.users.find_by_login("alice").email == "alice@example.com"
