"""
OAuth login managers for GitHub and GitLab.

A manager knows the provider's authorize/token/profile endpoints, signs the
OAuth ``state`` parameter with the shared JWT secret, and talks to the
provider over ``httpx``. Issuing the local session token is left to the
auth controller.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, ClassVar
from urllib.parse import urlencode, urlparse

import httpx
import jwt
from jwt.exceptions import InvalidTokenError

from apicore.errors import LoginProviderError
from apicore.registry import ServiceRegistry

OAUTH_TRANSPORT_KEY = "apicore.oauth_transport"
STATE_TTL_SECONDS = 600

logger = logging.getLogger("apicore.auth.login")


class LoginExchangeError(RuntimeError):
    """The provider rejected the code or returned something unusable."""


@dataclass(frozen=True)
class LoginProviderSettings:
    host: str
    api: str
    client_id: str = ""
    client_secret: str = ""


@dataclass(frozen=True)
class ProviderProfile:
    provider: str
    external_id: str
    username: str | None
    email: str | None
    name: str | None


def _validate_base_url(value: str, *, label: str) -> str:
    candidate = (value or "").strip().rstrip("/")
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise LoginProviderError(f"{label} must be an absolute http(s) URL, got {value!r}")
    return candidate


class OAuthLoginManager:
    provider: ClassVar[str] = "oauth"
    authorize_path: ClassVar[str] = "/login/oauth/authorize"
    token_path: ClassVar[str] = "/login/oauth/access_token"
    profile_path: ClassVar[str] = "/user"
    scopes: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        settings: LoginProviderSettings,
        registry: ServiceRegistry,
        *,
        jwt_secret: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not (jwt_secret or "").strip():
            raise LoginProviderError(f"{self.provider} login requires a JWT secret")
        self.host = _validate_base_url(settings.host, label=f"{self.provider} host")
        self.api = _validate_base_url(settings.api, label=f"{self.provider} api")
        self.client_id = settings.client_id
        self._client_secret = settings.client_secret
        self._jwt_secret = jwt_secret
        self._timeout = timeout_seconds
        self._transport: httpx.AsyncBaseTransport | None = registry.find(OAUTH_TRANSPORT_KEY)

    @property
    def login_path(self) -> str:
        return f"/auth/{self.provider}/login"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def issue_state(self, redirect_uri: str, *, now: float | None = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {
            "provider": self.provider,
            "redirect_uri": redirect_uri,
            "nonce": secrets.token_urlsafe(16),
            "iat": issued_at,
            "exp": issued_at + STATE_TTL_SECONDS,
        }
        return jwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def verify_state(self, state: str) -> dict[str, Any] | None:
        try:
            payload = jwt.decode(state, key=self._jwt_secret, algorithms=["HS256"], options={"require": ["exp"]})
        except (InvalidTokenError, TypeError, ValueError):
            return None
        if not isinstance(payload, dict) or payload.get("provider") != self.provider:
            return None
        return payload

    def authorize_url(self, redirect_uri: str) -> str:
        query = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": self.issue_state(redirect_uri),
        }
        if self.scopes:
            query["scope"] = " ".join(self.scopes)
        return f"{self.host}{self.authorize_path}?{urlencode(query)}"

    def token_request_data(self, code: str, redirect_uri: str) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.host}{self.token_path}",
                    data=self.token_request_data(code, redirect_uri),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("oauth_token_exchange_failed", extra={"provider": self.provider})
            raise LoginExchangeError(f"{self.provider} token exchange failed") from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise LoginExchangeError(f"{self.provider} did not return an access token")
        return str(access_token)

    async def fetch_profile(self, access_token: str) -> ProviderProfile:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api}{self.profile_path}",
                    headers={"Accept": "application/json", "Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("oauth_profile_fetch_failed", extra={"provider": self.provider})
            raise LoginExchangeError(f"{self.provider} profile request failed") from exc

        if not isinstance(payload, dict) or payload.get("id") is None:
            raise LoginExchangeError(f"{self.provider} returned an invalid profile")
        return self.parse_profile(payload)

    def parse_profile(self, payload: dict[str, Any]) -> ProviderProfile:
        raise NotImplementedError


class GithubLoginManager(OAuthLoginManager):
    provider = "github"
    authorize_path = "/login/oauth/authorize"
    token_path = "/login/oauth/access_token"
    scopes = ("read:user", "user:email")

    def parse_profile(self, payload: dict[str, Any]) -> ProviderProfile:
        return ProviderProfile(
            provider=self.provider,
            external_id=str(payload["id"]),
            username=payload.get("login"),
            email=payload.get("email"),
            name=payload.get("name"),
        )


class GitlabLoginManager(OAuthLoginManager):
    provider = "gitlab"
    authorize_path = "/oauth/authorize"
    token_path = "/oauth/token"
    scopes = ("read_user",)

    def token_request_data(self, code: str, redirect_uri: str) -> dict[str, str]:
        data = super().token_request_data(code, redirect_uri)
        data["grant_type"] = "authorization_code"
        return data

    def parse_profile(self, payload: dict[str, Any]) -> ProviderProfile:
        return ProviderProfile(
            provider=self.provider,
            external_id=str(payload["id"]),
            username=payload.get("username"),
            email=payload.get("email") or payload.get("public_email"),
            name=payload.get("name"),
        )


LOGIN_MANAGERS: dict[str, type[OAuthLoginManager]] = {
    GithubLoginManager.provider: GithubLoginManager,
    GitlabLoginManager.provider: GitlabLoginManager,
}
