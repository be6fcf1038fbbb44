from __future__ import annotations

import logging

from apicore.auth.login import GithubLoginManager, GitlabLoginManager, LoginProviderSettings, OAuthLoginManager
from apicore.auth.tokens import TokenService
from apicore.config import Config, Environment
from apicore.errors import AuthSetupError
from apicore.registry import ServiceRegistry

__all__ = [
    "GithubLoginManager",
    "GitlabLoginManager",
    "LoginProviderSettings",
    "OAuthLoginManager",
    "TokenService",
    "configure",
]

logger = logging.getLogger("apicore.auth")


def configure(environment: Environment, registry: ServiceRegistry, config: Config) -> TokenService:
    secret = (config.JWT_SECRET or "").strip()
    if not secret:
        raise AuthSetupError("JWT_SECRET must be set.")
    if config.JWT_TTL_SECONDS <= 0:
        raise AuthSetupError("JWT_TTL_SECONDS must be greater than 0.")
    if secret == "secret" and not environment.is_release:
        logger.warning("JWT_SECRET is the default placeholder; set a real secret before running in production")

    service = TokenService(secret, ttl_seconds=config.JWT_TTL_SECONDS)
    registry.register(service)
    return service
