from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from apicore.auth.login import LOGIN_MANAGERS, LoginExchangeError, OAuthLoginManager
from apicore.auth.passwords import verify_password
from apicore.auth.tokens import TokenService
from apicore.config import Config
from apicore.controllers.common import ERROR_RESPONSES, issue_session, register_user
from apicore.dependencies import (
    get_app_config,
    get_hooks,
    get_registry,
    get_token_service,
    get_users_repository,
    require_claims,
)
from apicore.errors import http_error
from apicore.hooks import LifecycleHooks
from apicore.ports.dto import UserRegistrationDTO
from apicore.registry import ServiceRegistry
from apicore.repositories.users_repository import UsersRepository
from apicore.schemas import LoginRequest, TokenResponse, TokenVerifyResponse

logger = logging.getLogger("apicore.controllers.auth")


def _login_manager(registry: ServiceRegistry, provider: str) -> OAuthLoginManager:
    manager_cls = LOGIN_MANAGERS.get(provider)
    manager = registry.find(manager_cls) if manager_cls is not None else None
    if manager is None:
        raise http_error(404, "NOT_FOUND", "Login provider is not enabled", details={"provider": provider})
    return manager


def _callback_url(config: Config, provider: str) -> str:
    return f"{config.SERVER_URL.rstrip('/')}/auth/{provider}/callback"


class AuthController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.post("/auth/login", tags=["auth"], response_model=TokenResponse, responses=ERROR_RESPONSES)
        def login(
            payload: LoginRequest,
            users: UsersRepository = Depends(get_users_repository),
            tokens: TokenService = Depends(get_token_service),
        ) -> TokenResponse:
            found = users.find_credentials(payload.email.strip())
            if found is None or not verify_password(payload.password, found[1]):
                raise http_error(401, "UNAUTHORIZED", "Invalid email or password")
            return issue_session(tokens, found[0])

        @router.post("/auth/token/verify", tags=["auth"], response_model=TokenVerifyResponse, responses=ERROR_RESPONSES)
        async def verify_token(claims: dict[str, Any] = Depends(require_claims)) -> TokenVerifyResponse:
            return TokenVerifyResponse(claims=claims)

        @router.get("/auth/{provider}/login", tags=["auth"], responses=ERROR_RESPONSES)
        async def provider_login(
            provider: str,
            config: Config = Depends(get_app_config),
            registry: ServiceRegistry = Depends(get_registry),
        ) -> RedirectResponse:
            manager = _login_manager(registry, provider)
            return RedirectResponse(manager.authorize_url(_callback_url(config, provider)), status_code=302)

        @router.get("/auth/{provider}/callback", tags=["auth"], response_model=TokenResponse, responses=ERROR_RESPONSES)
        async def provider_callback(
            provider: str,
            code: str = Query(..., min_length=1),
            state: str = Query(..., min_length=1),
            config: Config = Depends(get_app_config),
            registry: ServiceRegistry = Depends(get_registry),
            hooks: LifecycleHooks = Depends(get_hooks),
            users: UsersRepository = Depends(get_users_repository),
            tokens: TokenService = Depends(get_token_service),
        ) -> TokenResponse:
            manager = _login_manager(registry, provider)
            if manager.verify_state(state) is None:
                raise http_error(400, "BAD_REQUEST", "Invalid OAuth state", details={"provider": provider})

            try:
                access_token = await manager.exchange_code(code, _callback_url(config, provider))
                profile = await manager.fetch_profile(access_token)
            except LoginExchangeError as exc:
                raise http_error(502, "UPSTREAM_ERROR", str(exc), details={"provider": provider})

            # only accounts created through this provider identity are reused
            user = users.find_by_external_id(profile.provider, profile.external_id)
            if user is None:
                if not profile.email:
                    raise http_error(
                        400,
                        "BAD_REQUEST",
                        "Login provider did not share an email address",
                        details={"provider": provider},
                    )
                if users.find_by_email(profile.email) is not None:
                    logger.warning("provider_login_email_taken", extra={"provider": provider})
                    raise http_error(
                        409,
                        "ACCOUNT_EXISTS",
                        "Email is already registered with another sign-in method",
                        details={"provider": provider},
                    )
                firstname, _, lastname = (profile.name or "").partition(" ")
                registration: UserRegistrationDTO = {
                    "email": profile.email,
                    "firstname": firstname or None,
                    "lastname": lastname or None,
                    "username": profile.username,
                    "password": None,
                    "provider": profile.provider,
                }
                user = register_user(
                    registration,
                    config=config,
                    hooks=hooks,
                    users=users,
                    password_hash=None,
                    external_id=profile.external_id,
                )
            logger.info("provider_login_succeeded", extra={"provider": provider})
            return issue_session(tokens, user)
