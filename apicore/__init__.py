import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from apicore.bootstrap import (
    MiddlewareChain,
    configure,
    install_controllers,
    register_exception_handlers,
    validate_startup_config,
)
from apicore.config import Config, Environment, get_config
from apicore.database import DatabaseService
from apicore.hooks import LifecycleHooks
from apicore.logging_config import configure_logging
from apicore.registry import ServiceRegistry
from apicore.version import APP_VERSION

OPENAPI_TAGS: list[dict[str, str]] = [
    {"name": "generic", "description": "Banner and liveness helpers"},
    {"name": "install", "description": "One-time installation"},
    {"name": "auth", "description": "Password and OAuth login"},
    {"name": "users", "description": "User registration and management"},
    {"name": "teams", "description": "Team management"},
    {"name": "server", "description": "Server information, health and metrics"},
    {"name": "settings", "description": "Public client settings"},
]

logger = logging.getLogger("apicore.api")


def create_app(
    app_config: Config | None = None,
    *,
    environment: Environment | None = None,
    hooks: LifecycleHooks | None = None,
    registry: ServiceRegistry | None = None,
) -> FastAPI:
    if app_config is None:
        app_config = get_config()
    if environment is None:
        environment = Environment.from_config(app_config)
    if hooks is None:
        hooks = LifecycleHooks()
    if registry is None:
        registry = ServiceRegistry()

    configure_logging(level=app_config.LOG_LEVEL, json_logs=app_config.LOG_JSON, environment=environment.name)
    validate_startup_config(app_config)
    configure(environment, registry, app_config)

    @asynccontextmanager
    async def _lifespan(_api: FastAPI):
        try:
            yield
        finally:
            database = registry.find(DatabaseService)
            if database is not None:
                with suppress(Exception):
                    database.dispose()

    api = FastAPI(
        title=f"{app_config.SERVER_NAME} API",
        version=APP_VERSION,
        description="Core user, team and login services on FastAPI + PostgreSQL",
        openapi_tags=OPENAPI_TAGS,
        debug=bool(app_config.DEBUG) and not environment.is_release,
        lifespan=_lifespan,
    )
    api.state.config = app_config
    api.state.environment = environment
    api.state.registry = registry
    api.state.hooks = hooks

    registry.get(MiddlewareChain).apply(api)
    install_controllers(api)
    register_exception_handlers(api, logger=logger)

    return api
