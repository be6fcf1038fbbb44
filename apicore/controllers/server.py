from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from apicore.config import Config, Environment
from apicore.database import DatabaseService
from apicore.dependencies import get_app_config, get_environment, get_registry
from apicore.errors import http_error
from apicore.observability import metrics_response
from apicore.registry import ServiceRegistry
from apicore.schemas import ErrorResponse, HealthResponse, ReadinessCheck, ReadinessResponse, ServerInfoResponse
from apicore.server import ServerSettings
from apicore.version import APP_VERSION


class ServerController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.get("/server/info", tags=["server"], response_model=ServerInfoResponse)
        async def server_info(
            config: Config = Depends(get_app_config),
            environment: Environment = Depends(get_environment),
            registry: ServiceRegistry = Depends(get_registry),
        ) -> ServerInfoResponse:
            server = registry.get(ServerSettings)
            return ServerInfoResponse(
                name=config.SERVER_NAME,
                url=config.SERVER_URL,
                version=APP_VERSION,
                environment=environment.name,
                max_upload_filesize_mb=server.max_upload_filesize_mb,
            )

        @router.get("/health/live", tags=["server"], response_model=HealthResponse, responses={500: {"model": ErrorResponse}})
        async def health_live() -> HealthResponse:
            return HealthResponse(status="ok")

        @router.get(
            "/health/ready",
            tags=["server"],
            response_model=ReadinessResponse,
            responses={500: {"model": ErrorResponse}, 503: {"model": ReadinessResponse}},
        )
        def health_ready(registry: ServiceRegistry = Depends(get_registry)) -> ReadinessResponse | JSONResponse:
            db_ok, db_detail = registry.get(DatabaseService).health_check()
            payload = ReadinessResponse(
                status="ok" if db_ok else "degraded",
                checks={"database": ReadinessCheck(ok=db_ok, detail=db_detail)},
            )
            if db_ok:
                return payload
            return JSONResponse(status_code=503, content=payload.model_dump())

        @router.get("/metrics", tags=["server"], include_in_schema=False)
        async def metrics(config: Config = Depends(get_app_config)) -> Response:
            if not config.MIDDLEWARE_REQUEST_METRICS:
                raise http_error(404, "NOT_FOUND", "Not Found")
            return metrics_response()
