from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from apicore.database import ConnectionProvider
from apicore.ports.dto import TeamRecordDTO, UserRecordDTO, UserRegistrationDTO

UserDidRegister: TypeAlias = Callable[[UserRecordDTO], None]
UserShouldRegister: TypeAlias = Callable[[UserRegistrationDTO], bool]
InstallTask: TypeAlias = Callable[[ConnectionProvider], Awaitable[None]]
DeleteTeamWarning: TypeAlias = Callable[[TeamRecordDTO], Awaitable[Exception | None]]
DeleteUserWarning: TypeAlias = Callable[[UserRecordDTO], Awaitable[Exception | None]]

logger = logging.getLogger("apicore.hooks")


@dataclass
class LifecycleHooks:
    """Extension points other modules register into before the app is created.

    One instance is built by the process entry point and handed to
    ``create_app``; controllers read it back from ``app.state.hooks``.
    Delete warnings are lists: every registered warner is consulted in
    registration order and the first returned error vetoes the deletion.
    """

    user_did_register: list[UserDidRegister] = field(default_factory=list)
    user_should_register: list[UserShouldRegister] = field(default_factory=list)
    install_tasks: list[InstallTask] = field(default_factory=list)
    delete_team_warnings: list[DeleteTeamWarning] = field(default_factory=list)
    delete_user_warnings: list[DeleteUserWarning] = field(default_factory=list)

    def allows_registration(self, registration: UserRegistrationDTO) -> bool:
        for hook in self.user_should_register:
            if not hook(registration):
                logger.info("user_registration_vetoed", extra={"service": getattr(hook, "__name__", None)})
                return False
        return True

    def notify_user_registered(self, user: UserRecordDTO) -> None:
        for hook in self.user_did_register:
            hook(user)

    async def run_install_tasks(self, connection_provider: ConnectionProvider) -> None:
        for task in self.install_tasks:
            await task(connection_provider)

    async def team_deletion_warning(self, team: TeamRecordDTO) -> Exception | None:
        for warning in self.delete_team_warnings:
            error = await warning(team)
            if error is not None:
                return error
        return None

    async def user_deletion_warning(self, user: UserRecordDTO) -> Exception | None:
        for warning in self.delete_user_warnings:
            error = await warning(user)
            if error is not None:
                return error
        return None
