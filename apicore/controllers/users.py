from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Path
from jinja2 import TemplateError

from apicore.auth.passwords import hash_password
from apicore.config import Config
from apicore.controllers.common import ERROR_RESPONSES, ensure_resource_found, register_user
from apicore.dependencies import (
    get_app_config,
    get_hooks,
    get_registry,
    get_users_repository,
    require_admin,
    require_claims,
)
from apicore.errors import TemplateLoadError, http_error
from apicore.hooks import LifecycleHooks
from apicore.mail import Mailer
from apicore.ports.dto import UserRecordDTO, UserRegistrationDTO
from apicore.registry import ServiceRegistry
from apicore.repositories.users_repository import UsersRepository
from apicore.schemas import DeleteResponse, UserRegistrationRequest, UserResponse

logger = logging.getLogger("apicore.controllers.users")


def _send_welcome_mail(registry: ServiceRegistry, config: Config, user: UserRecordDTO) -> None:
    mailer = registry.find(Mailer)
    if mailer is None or mailer.templator is None:
        return
    try:
        mailer.send_template(
            to=user["email"],
            subject=f"Welcome to {config.SERVER_NAME}",
            template="registration",
            context={"user": user, "server_name": config.SERVER_NAME, "server_url": config.SERVER_URL},
        )
    except (TemplateLoadError, TemplateError):
        # registration is already committed here
        logger.exception("welcome_mail_render_failed", extra={"service": "registration"})


class UsersController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.post("/users", tags=["users"], response_model=UserResponse, status_code=201, responses=ERROR_RESPONSES)
        def register(
            payload: UserRegistrationRequest,
            config: Config = Depends(get_app_config),
            hooks: LifecycleHooks = Depends(get_hooks),
            users: UsersRepository = Depends(get_users_repository),
            registry: ServiceRegistry = Depends(get_registry),
        ) -> UserResponse:
            registration: UserRegistrationDTO = {
                "email": payload.email,
                "firstname": payload.firstname,
                "lastname": payload.lastname,
                "username": payload.username,
                "password": payload.password,
                "provider": None,
            }
            user = register_user(
                registration,
                config=config,
                hooks=hooks,
                users=users,
                password_hash=hash_password(payload.password),
            )
            _send_welcome_mail(registry, config, user)
            return UserResponse.model_validate(user)

        @router.get("/users/me", tags=["users"], response_model=UserResponse, responses=ERROR_RESPONSES)
        def current_user(
            claims: dict[str, Any] = Depends(require_claims),
            users: UsersRepository = Depends(get_users_repository),
        ) -> UserResponse:
            try:
                user_id = int(claims["sub"])
            except (KeyError, TypeError, ValueError):
                raise http_error(401, "UNAUTHORIZED", "Unauthorized")
            return UserResponse.model_validate(ensure_resource_found(users.get_user(user_id)))

        @router.get(
            "/users/{user_id}",
            tags=["users"],
            response_model=UserResponse,
            responses=ERROR_RESPONSES,
            dependencies=[Depends(require_claims)],
        )
        def get_user(
            user_id: int = Path(..., ge=1),
            users: UsersRepository = Depends(get_users_repository),
        ) -> UserResponse:
            return UserResponse.model_validate(ensure_resource_found(users.get_user(user_id)))

        @router.delete(
            "/users/{user_id}",
            tags=["users"],
            response_model=DeleteResponse,
            responses=ERROR_RESPONSES,
            dependencies=[Depends(require_admin)],
        )
        async def delete_user(
            user_id: int = Path(..., ge=1),
            hooks: LifecycleHooks = Depends(get_hooks),
            users: UsersRepository = Depends(get_users_repository),
        ) -> DeleteResponse:
            user = ensure_resource_found(users.get_user(user_id))
            warning = await hooks.user_deletion_warning(user)
            if warning is not None:
                raise http_error(409, "DELETE_REJECTED", "User can not be deleted", details={"reason": str(warning)})
            if not users.delete_user(user_id):
                raise http_error(404, "NOT_FOUND", "Not Found")
            return DeleteResponse(status="deleted", id=user_id)
