from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, TypeAlias, cast

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from apicore.config import Config
from apicore.errors import DatabaseSetupError
from apicore.registry import ServiceRegistry

ConnectionScope: TypeAlias = AbstractContextManager[Any]
ConnectionProvider: TypeAlias = Callable[[], ConnectionScope]

logger = logging.getLogger("apicore.database")


@dataclass
class DatabaseService:
    engine: Engine
    connection_provider: ConnectionProvider

    def health_check(self) -> tuple[bool, str | None]:
        try:
            with self.connection_provider() as conn:
                conn.execute(text("SELECT 1"))
            return True, None
        except Exception as exc:
            logger.exception("health_db_check_failed", extra={"service": type(exc).__name__})
            return False, "database connection failed"

    def dispose(self) -> None:
        if hasattr(self.engine, "dispose"):
            self.engine.dispose()


def init_db(
    database_url: str,
    *,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout_seconds: int = 30,
    pool_recycle_seconds: int = 3600,
    connect_timeout_seconds: int = 3,
    statement_timeout_ms: int = 5000,
) -> Engine:
    connect_args = {
        "connect_timeout": max(1, int(connect_timeout_seconds)),
        "options": (
            f"-c statement_timeout={max(1, int(statement_timeout_ms))} "
            "-c application_name=apicore "
            "-c timezone=UTC"
        ),
    }
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=max(1, int(pool_size)),
        max_overflow=max(0, int(max_overflow)),
        pool_timeout=max(1, int(pool_timeout_seconds)),
        pool_recycle=max(1, int(pool_recycle_seconds)),
        connect_args=connect_args,
        future=True,
    )


def setup_database(registry: ServiceRegistry, config: Config) -> DatabaseService:
    """Create the pooled engine and register it; no connection is opened here."""
    try:
        engine = init_db(
            config.database_url,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout_seconds=config.DB_POOL_TIMEOUT_SECONDS,
            pool_recycle_seconds=config.DB_POOL_RECYCLE_SECONDS,
            connect_timeout_seconds=config.DB_CONNECT_TIMEOUT_SECONDS,
            statement_timeout_ms=config.DB_STATEMENT_TIMEOUT_MS,
        )
    except (ArgumentError, SQLAlchemyError, ImportError) as exc:
        raise DatabaseSetupError(f"database engine could not be created: {exc}") from exc

    def connection_provider() -> ConnectionScope:
        return cast(ConnectionScope, cast(object, engine.begin()))

    service = DatabaseService(engine=engine, connection_provider=connection_provider)
    registry.register(service)
    logger.info(
        "database_configured",
        extra={"service": f"{config.POSTGRES_HOST}:{config.POSTGRES_PORT}/{config.POSTGRES_DB}"},
    )
    return service
