from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from apicore.config import Config
from apicore.dependencies import get_app_config
from apicore.errors import http_error


class GenericController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.get("/", tags=["generic"])
        async def banner(config: Config = Depends(get_app_config)) -> PlainTextResponse:
            return PlainTextResponse(f"{config.SERVER_NAME} API is available")

        @router.get("/ping", tags=["generic"])
        async def ping() -> dict[str, str]:
            return {"code": "pong"}

        @router.get("/teapot", tags=["generic"])
        async def teapot() -> None:
            raise http_error(418, "IM_A_TEAPOT", "I'm a teapot")
