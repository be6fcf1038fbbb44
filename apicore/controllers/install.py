from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from apicore.auth.passwords import hash_password
from apicore.controllers.common import ERROR_RESPONSES
from apicore.database import ConnectionProvider
from apicore.dependencies import get_connection_provider, get_hooks, get_teams_repository, get_users_repository
from apicore.errors import http_error
from apicore.hooks import LifecycleHooks
from apicore.repositories.teams_repository import TeamsRepository
from apicore.repositories.users_repository import UsersRepository
from apicore.schemas import InstallResponse, TeamResponse, UserRegistrationRequest, UserResponse

ADMIN_TEAM_NAME = "Admin team"
ADMIN_TEAM_IDENTIFIER = "admin-team"

logger = logging.getLogger("apicore.install")


class InstallController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.post("/install", tags=["install"], response_model=InstallResponse, status_code=201, responses=ERROR_RESPONSES)
        async def install(
            payload: UserRegistrationRequest,
            hooks: LifecycleHooks = Depends(get_hooks),
            users: UsersRepository = Depends(get_users_repository),
            teams: TeamsRepository = Depends(get_teams_repository),
            connection_provider: ConnectionProvider = Depends(get_connection_provider),
        ) -> InstallResponse:
            if users.count_users() > 0:
                raise http_error(409, "ALREADY_INSTALLED", "Installation has already been completed")

            # the admin user doubles as the installed marker
            await hooks.run_install_tasks(connection_provider)

            admin = users.create_user(
                {
                    "email": payload.email,
                    "firstname": payload.firstname or "Super",
                    "lastname": payload.lastname or "Admin",
                    "username": payload.username or "admin",
                    "password": payload.password,
                    "provider": None,
                },
                password_hash=hash_password(payload.password),
                is_admin=True,
            )
            team = teams.create_team(
                {"name": ADMIN_TEAM_NAME, "identifier": ADMIN_TEAM_IDENTIFIER},
                owner_id=admin["id"],
                is_admin=True,
            )
            logger.info("install_completed", extra={"service": str(len(hooks.install_tasks))})
            return InstallResponse(
                status="installed",
                admin=UserResponse.model_validate(admin),
                team=TeamResponse.model_validate(team),
                install_tasks=len(hooks.install_tasks),
            )
