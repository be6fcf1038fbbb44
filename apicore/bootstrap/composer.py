"""
Startup composition root.

``configure`` runs once per process, before any request is served, and
fills the service registry in a fixed order. Each step may read services
registered by an earlier one. The first failing step aborts the whole
sequence; nothing is retried here.
"""

from __future__ import annotations

import logging

from apicore import auth
from apicore.auth.login import GithubLoginManager, GitlabLoginManager, LoginProviderSettings, OAuthLoginManager
from apicore.bootstrap.middleware import setup_middlewares
from apicore.bootstrap.validation import ensure_secret_is_not_default
from apicore.config import Config, Environment, get_config
from apicore.cors import setup_cors
from apicore.database import DatabaseService, setup_database
from apicore.mail import Mailer, setup_emails
from apicore.registry import ServiceRegistry
from apicore.request_id import RequestIdService
from apicore.server import setup_server
from apicore.storage import setup_storage
from apicore.templates import TemplateEngine, Templator

logger = logging.getLogger("apicore.bootstrap")


def github_settings(config: Config) -> LoginProviderSettings:
    return LoginProviderSettings(
        host=config.GITHUB_HOST,
        api=config.GITHUB_API,
        client_id=config.GITHUB_CLIENT_ID,
        client_secret=config.GITHUB_CLIENT_SECRET,
    )


def gitlab_settings(config: Config) -> LoginProviderSettings:
    return LoginProviderSettings(
        host=config.GITLAB_HOST,
        api=config.GITLAB_API,
        client_id=config.GITLAB_CLIENT_ID,
        client_secret=config.GITLAB_CLIENT_SECRET,
    )


def _configure_login(
    registry: ServiceRegistry,
    *,
    manager_cls: type[OAuthLoginManager],
    label: str,
    enabled: bool,
    settings: LoginProviderSettings,
    jwt_secret: str,
) -> OAuthLoginManager | None:
    if not enabled:
        logger.info("%s login disabled", label, extra={"provider": manager_cls.provider})
        return None

    logger.info("Enabling %s login for %s", label, settings.host, extra={"provider": manager_cls.provider})
    manager = manager_cls(settings, registry, jwt_secret=jwt_secret)
    registry.register(manager)
    return manager


def configure_templates(registry: ServiceRegistry, config: Config) -> Templator:
    engine = registry.register(TemplateEngine())
    templator = Templator(config.TEMPLATES_LOCATION, engine=engine)
    registry.register(templator)

    mailer = registry.find(Mailer)
    if mailer is not None:
        mailer.templator = templator
    return templator


def _dispose_staged_database(staged: ServiceRegistry, registry: ServiceRegistry) -> None:
    database = staged.find(DatabaseService)
    if database is None or database is registry.find(DatabaseService):
        return
    try:
        database.dispose()
    except Exception:
        logger.exception("staged_database_dispose_failed", extra={"step": "database"})


def _run_steps(environment: Environment, staged: ServiceRegistry, config: Config) -> None:
    server = setup_server(staged, config)
    logger.info("server_configured", extra={"service": f"max_body_size={server.max_body_size}"})

    setup_database(staged, config)
    setup_emails(staged, config)

    ensure_secret_is_not_default(environment, config)

    setup_cors(staged, config)

    _configure_login(
        staged,
        manager_cls=GithubLoginManager,
        label="GitHub",
        enabled=config.GITHUB_ENABLED,
        settings=github_settings(config),
        jwt_secret=config.JWT_SECRET,
    )
    _configure_login(
        staged,
        manager_cls=GitlabLoginManager,
        label="GitLab",
        enabled=config.GITLAB_ENABLED,
        settings=gitlab_settings(config),
        jwt_secret=config.JWT_SECRET,
    )

    auth.configure(environment, staged, config)

    setup_storage(staged, config)

    configure_templates(staged, config)

    staged.register(RequestIdService())

    setup_middlewares(staged, environment, config)


def configure(environment: Environment, registry: ServiceRegistry, config: Config | None = None) -> ServiceRegistry:
    """Register every core service into ``registry``.

    Raises ``FatalStartupAbort`` for a release environment still using the
    placeholder JWT secret, and lets any ``StartupError`` from a setup step
    propagate unchanged. On failure the engine opened by the database step
    is disposed and ``registry`` is left as it was.
    """
    if config is None:
        config = get_config()

    # Steps write into a staged copy; the caller only sees a fully configured registry.
    staged = registry.copy()
    try:
        _run_steps(environment, staged, config)
    except Exception:
        _dispose_staged_database(staged, registry)
        raise

    registry.commit(staged)
    logger.info("startup_configured", extra={"step": "complete", "service": str(len(registry))})
    return registry
