from __future__ import annotations

from apicore.config import Config, Environment
from apicore.errors import FatalStartupAbort, StartupError

DEFAULT_JWT_SECRET = "secret"


def ensure_secret_is_not_default(environment: Environment, config: Config) -> None:
    if environment.is_release and config.JWT_SECRET == DEFAULT_JWT_SECRET:
        raise FatalStartupAbort(
            'Refusing to run in a release environment with JWT_SECRET set to "secret"; '
            "configure a real signing secret."
        )


def validate_startup_config(config: Config) -> None:
    if config.PORT <= 0 or config.PORT > 65535:
        raise StartupError("PORT must be between 1 and 65535.")
    if config.DB_POOL_SIZE <= 0:
        raise StartupError("DB_POOL_SIZE must be greater than 0.")
    if config.DB_MAX_OVERFLOW < 0:
        raise StartupError("DB_MAX_OVERFLOW must be greater than or equal to 0.")
    if config.DB_POOL_TIMEOUT_SECONDS <= 0:
        raise StartupError("DB_POOL_TIMEOUT_SECONDS must be greater than 0.")
    if config.DB_POOL_RECYCLE_SECONDS <= 0:
        raise StartupError("DB_POOL_RECYCLE_SECONDS must be greater than 0.")
    if config.DB_CONNECT_TIMEOUT_SECONDS <= 0:
        raise StartupError("DB_CONNECT_TIMEOUT_SECONDS must be greater than 0.")
    if config.DB_STATEMENT_TIMEOUT_MS <= 0:
        raise StartupError("DB_STATEMENT_TIMEOUT_MS must be greater than 0.")
    if config.JWT_TTL_SECONDS <= 0:
        raise StartupError("JWT_TTL_SECONDS must be greater than 0.")
    if config.GITHUB_ENABLED and not config.GITHUB_CLIENT_ID.strip():
        raise StartupError("GITHUB_ENABLED=1 requires GITHUB_CLIENT_ID to be set.")
    if config.GITLAB_ENABLED and not config.GITLAB_CLIENT_ID.strip():
        raise StartupError("GITLAB_ENABLED=1 requires GITLAB_CLIENT_ID to be set.")
