from __future__ import annotations

from conftest import install_admin, register_and_login
from fastapi.testclient import TestClient

from apicore.hooks import LifecycleHooks


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_register_creates_user_and_fires_hooks(make_app):
    registered = []
    hooks = LifecycleHooks(user_did_register=[registered.append])

    with TestClient(make_app(hooks=hooks)) as client:
        response = client.post(
            "/users",
            json={"email": " Jane@Example.com ", "password": "correct-horse", "firstname": "Jane"},
        )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "jane@example.com"
    assert body["is_admin"] is False
    assert "password" not in body
    assert [user["email"] for user in registered] == ["jane@example.com"]


def test_registration_succeeds_without_welcome_template(make_app, memory_db, tmp_path):
    empty_templates = tmp_path / "empty-templates"
    empty_templates.mkdir()

    with TestClient(make_app(TEMPLATES_LOCATION=str(empty_templates))) as client:
        response = client.post("/users", json={"email": "jane@example.com", "password": "correct-horse"})
        login = client.post("/auth/login", json={"email": "jane@example.com", "password": "correct-horse"})

    assert response.status_code == 201
    assert len(memory_db.users) == 1
    assert login.status_code == 200


def test_duplicate_registration_is_a_conflict(client):
    payload = {"email": "jane@example.com", "password": "correct-horse"}
    assert client.post("/users", json=payload).status_code == 201

    duplicate = client.post("/users", json=payload)

    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"


def test_registration_veto_hook_rejects(make_app):
    hooks = LifecycleHooks(user_should_register=[lambda registration: not registration["email"].endswith("@spam.test")])

    with TestClient(make_app(hooks=hooks)) as client:
        rejected = client.post("/users", json={"email": "bot@spam.test", "password": "correct-horse"})
        accepted = client.post("/users", json={"email": "human@example.com", "password": "correct-horse"})

    assert rejected.status_code == 403
    assert rejected.json()["code"] == "REGISTRATION_REJECTED"
    assert accepted.status_code == 201


def test_registration_domain_allow_list(make_app):
    with TestClient(make_app(AUTH_REGISTRATION_DOMAINS="example.com")) as client:
        outside = client.post("/users", json={"email": "jane@elsewhere.test", "password": "correct-horse"})
        inside = client.post("/users", json={"email": "jane@example.com", "password": "correct-horse"})

    assert outside.status_code == 403
    assert outside.json()["code"] == "DOMAIN_NOT_ALLOWED"
    assert outside.json()["details"]["allowed_domains"] == ["example.com"]
    assert inside.status_code == 201


def test_registrations_can_be_disabled(make_app):
    with TestClient(make_app(AUTH_ALLOW_REGISTRATIONS=False)) as client:
        response = client.post("/users", json={"email": "jane@example.com", "password": "correct-horse"})

    assert response.status_code == 403
    assert response.json()["code"] == "REGISTRATIONS_DISABLED"


def test_short_password_is_a_validation_error(client):
    response = client.post("/users", json={"email": "jane@example.com", "password": "short"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_current_user_and_lookup_require_token(client):
    assert client.get("/users/me").status_code == 401

    token = register_and_login(client)
    me = client.get("/users/me", headers=_auth(token))
    assert me.status_code == 200
    assert me.json()["firstname"] == "Jane"

    assert client.get(f"/users/{me.json()['id']}", headers=_auth(token)).status_code == 200
    missing = client.get("/users/999", headers=_auth(token))
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_login_with_wrong_password_is_unauthorized(client):
    register_and_login(client)

    response = client.post("/auth/login", json={"email": "jane@example.com", "password": "wrong-password"})

    assert response.status_code == 401


def test_delete_user_requires_admin(client):
    install_admin(client)
    token = register_and_login(client)
    me = client.get("/users/me", headers=_auth(token)).json()

    response = client.delete(f"/users/{me['id']}", headers=_auth(token))

    assert response.status_code == 403
    assert response.json()["details"]["reason"] == "admin_required"


def test_admin_deletes_user(client, memory_db):
    admin_token = install_admin(client)
    register_and_login(client)
    user_id = max(memory_db.users)

    response = client.delete(f"/users/{user_id}", headers=_auth(admin_token))

    assert response.status_code == 200
    assert response.json() == {"status": "deleted", "id": user_id}
    assert user_id not in memory_db.users


def test_delete_warning_blocks_user_deletion(make_app, memory_db):
    async def still_owns_projects(user):
        return RuntimeError(f"user {user['id']} still owns projects")

    with TestClient(make_app(hooks=LifecycleHooks(delete_user_warnings=[still_owns_projects]))) as client:
        admin_token = install_admin(client)
        register_and_login(client)
        user_id = max(memory_db.users)
        response = client.delete(f"/users/{user_id}", headers=_auth(admin_token))

    assert response.status_code == 409
    assert response.json()["code"] == "DELETE_REJECTED"
    assert response.json()["details"]["reason"] == f"user {user_id} still owns projects"
    assert user_id in memory_db.users
