from __future__ import annotations

from typing import Any, cast

from fastapi import Depends, Header, Request

from apicore.auth.tokens import TokenService, bearer_token
from apicore.config import Config, Environment
from apicore.database import ConnectionProvider, DatabaseService
from apicore.errors import http_error
from apicore.hooks import LifecycleHooks
from apicore.registry import ServiceRegistry
from apicore.repositories.teams_repository import TeamsRepository
from apicore.repositories.users_repository import UsersRepository


def get_registry(request: Request) -> ServiceRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("app.state.registry is not configured")
    return cast(ServiceRegistry, registry)


def get_app_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


def get_environment(request: Request) -> Environment:
    return cast(Environment, request.app.state.environment)


def get_hooks(request: Request) -> LifecycleHooks:
    hooks = getattr(request.app.state, "hooks", None)
    if hooks is None:
        raise RuntimeError("app.state.hooks is not configured")
    return cast(LifecycleHooks, hooks)


def get_connection_provider(registry: ServiceRegistry = Depends(get_registry)) -> ConnectionProvider:
    return registry.get(DatabaseService).connection_provider


def get_users_repository(
    connection_provider: ConnectionProvider = Depends(get_connection_provider),
) -> UsersRepository:
    return UsersRepository(connection_provider=connection_provider)


def get_teams_repository(
    connection_provider: ConnectionProvider = Depends(get_connection_provider),
) -> TeamsRepository:
    return TeamsRepository(connection_provider=connection_provider)


def get_token_service(registry: ServiceRegistry = Depends(get_registry)) -> TokenService:
    return registry.get(TokenService)


def require_claims(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    tokens: TokenService = Depends(get_token_service),
) -> dict[str, Any]:
    claims = tokens.verify(bearer_token(authorization))
    request.state.auth_claims = claims
    return claims


def require_admin(claims: dict[str, Any] = Depends(require_claims)) -> dict[str, Any]:
    if not claims.get("admin"):
        raise http_error(403, "FORBIDDEN", "Forbidden", details={"reason": "admin_required"})
    return claims
