from __future__ import annotations

import logging
import re
from typing import Any, TypeVar

from apicore.auth.tokens import TokenService
from apicore.config import Config
from apicore.errors import http_error
from apicore.hooks import LifecycleHooks
from apicore.ports.dto import UserRecordDTO, UserRegistrationDTO
from apicore.repositories.users_repository import UsersRepository
from apicore.schemas import ErrorResponse, TokenResponse, UserResponse

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

ResourceT = TypeVar("ResourceT")

logger = logging.getLogger("apicore.controllers")


def ensure_resource_found(resource: ResourceT | None) -> ResourceT:
    if resource is None:
        raise http_error(404, "NOT_FOUND", "Not Found")
    return resource


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def register_user(
    registration: UserRegistrationDTO,
    *,
    config: Config,
    hooks: LifecycleHooks,
    users: UsersRepository,
    password_hash: str | None,
    external_id: str | None = None,
) -> UserRecordDTO:
    if not config.AUTH_ALLOW_REGISTRATIONS:
        raise http_error(403, "REGISTRATIONS_DISABLED", "Registrations are disabled")

    email = registration["email"].lower()
    allowed_domains = config.registration_domains_list
    if allowed_domains and email.rpartition("@")[2] not in allowed_domains:
        raise http_error(
            403,
            "DOMAIN_NOT_ALLOWED",
            "Registrations are restricted to specific domains",
            details={"allowed_domains": allowed_domains},
        )
    if users.find_by_email(email) is not None:
        raise http_error(409, "CONFLICT", "User already exists")
    if not hooks.allows_registration(registration):
        raise http_error(403, "REGISTRATION_REJECTED", "Registration was rejected")

    user = users.create_user(registration, password_hash=password_hash, external_id=external_id)
    hooks.notify_user_registered(user)
    logger.info("user_registered", extra={"provider": registration.get("provider")})
    return user


def issue_session(tokens: TokenService, user: UserRecordDTO) -> TokenResponse:
    token = tokens.issue(user["id"], claims={"email": user.get("email"), "admin": bool(user.get("is_admin"))})
    return TokenResponse(token=token, expires_in=tokens.ttl_seconds, user=UserResponse.model_validate(user))
