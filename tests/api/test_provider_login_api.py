from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from apicore.auth.login import OAUTH_TRANSPORT_KEY
from apicore.registry import ServiceRegistry

GITHUB_SETTINGS = {
    "GITHUB_ENABLED": True,
    "GITHUB_HOST": "https://github.example",
    "GITHUB_API": "https://api.github.example",
    "GITHUB_CLIENT_ID": "gh-client",
    "GITHUB_CLIENT_SECRET": "gh-secret",
}


class FakeGithub:
    def __init__(self) -> None:
        self.profile = {"id": 4242, "login": "octo", "email": "octo@example.com", "name": "Octo Cat"}
        self.token_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/oauth/access_token":
            if self.token_status != 200:
                return httpx.Response(self.token_status)
            return httpx.Response(200, json={"access_token": "gh-access"})
        if request.url.path == "/user":
            return httpx.Response(200, json=self.profile)
        return httpx.Response(404)


@pytest.fixture
def github():
    return FakeGithub()


@pytest.fixture
def github_client(make_app, github):
    registry = ServiceRegistry()
    registry.register(httpx.MockTransport(github), key=OAUTH_TRANSPORT_KEY)
    with TestClient(make_app(registry=registry, **GITHUB_SETTINGS)) as client:
        yield client


def _login_state(client: TestClient) -> str:
    redirect = client.get("/auth/github/login", follow_redirects=False)
    assert redirect.status_code == 302
    location = urlparse(redirect.headers["location"])
    assert location.netloc == "github.example"
    query = parse_qs(location.query)
    assert query["redirect_uri"] == ["http://localhost:8080/auth/github/callback"]
    return query["state"][0]


def test_settings_lists_enabled_providers(github_client):
    settings = github_client.get("/settings").json()

    assert settings["allow_registrations"] is True
    assert settings["login_providers"] == [{"name": "github", "login_path": "/auth/github/login"}]


def test_callback_registers_user_then_reuses_it(github_client, memory_db):
    first = github_client.get("/auth/github/callback", params={"code": "c1", "state": _login_state(github_client)})

    assert first.status_code == 200, first.text
    user = first.json()["user"]
    assert user["provider"] == "github"
    assert user["username"] == "octo"
    assert user["firstname"] == "Octo"
    assert user["lastname"] == "Cat"
    assert memory_db.users[user["id"]]["external_id"] == "4242"

    second = github_client.get("/auth/github/callback", params={"code": "c2", "state": _login_state(github_client)})

    assert second.status_code == 200
    assert second.json()["user"]["id"] == user["id"]
    assert len(memory_db.users) == 1


def test_callback_does_not_sign_into_password_account_with_same_email(github_client, memory_db):
    created = github_client.post("/users", json={"email": "octo@example.com", "password": "correct-horse"})
    assert created.status_code == 201

    response = github_client.get("/auth/github/callback", params={"code": "c1", "state": _login_state(github_client)})

    assert response.status_code == 409
    assert response.json()["code"] == "ACCOUNT_EXISTS"
    assert "token" not in response.json()
    assert len(memory_db.users) == 1
    assert memory_db.users[created.json()["id"]]["external_id"] is None


def test_callback_rejects_forged_state(github_client):
    response = github_client.get("/auth/github/callback", params={"code": "c1", "state": "forged"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OAuth state"


def test_callback_reports_upstream_failure(github_client, github):
    github.token_status = 500

    response = github_client.get("/auth/github/callback", params={"code": "c1", "state": _login_state(github_client)})

    assert response.status_code == 502
    assert response.json()["code"] == "UPSTREAM_ERROR"


def test_callback_requires_email_for_new_users(github_client, github):
    github.profile = {"id": 7, "login": "private"}

    response = github_client.get("/auth/github/callback", params={"code": "c1", "state": _login_state(github_client)})

    assert response.status_code == 400


def test_disabled_provider_is_not_found(github_client):
    response = github_client.get("/auth/gitlab/login", follow_redirects=False)

    assert response.status_code == 404
    assert response.json()["details"]["provider"] == "gitlab"
