from __future__ import annotations

from typing import Protocol

from fastapi import APIRouter, FastAPI

from apicore.controllers.auth import AuthController
from apicore.controllers.generic import GenericController
from apicore.controllers.install import InstallController
from apicore.controllers.server import ServerController
from apicore.controllers.settings import SettingsController
from apicore.controllers.teams import TeamsController
from apicore.controllers.users import UsersController


class Controller(Protocol):
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        ...


CONTROLLERS: tuple[type[Controller], ...] = (
    GenericController,
    InstallController,
    AuthController,
    UsersController,
    TeamsController,
    ServerController,
    SettingsController,
)


def install_controllers(api: FastAPI, controllers: tuple[type[Controller], ...] = CONTROLLERS) -> None:
    for controller in controllers:
        router = APIRouter()
        controller.install_routes(router)
        api.include_router(router)
