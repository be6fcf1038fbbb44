from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Path

from apicore.controllers.common import ERROR_RESPONSES, ensure_resource_found, slugify
from apicore.dependencies import get_hooks, get_teams_repository, require_admin, require_claims
from apicore.errors import http_error
from apicore.hooks import LifecycleHooks
from apicore.repositories.teams_repository import TeamsRepository
from apicore.schemas import DeleteResponse, TeamCreateRequest, TeamResponse


class TeamsController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.post("/teams", tags=["teams"], response_model=TeamResponse, status_code=201, responses=ERROR_RESPONSES)
        def create_team(
            payload: TeamCreateRequest,
            claims: dict[str, Any] = Depends(require_claims),
            teams: TeamsRepository = Depends(get_teams_repository),
        ) -> TeamResponse:
            identifier = slugify(payload.identifier or payload.name)
            if not identifier:
                raise http_error(400, "BAD_REQUEST", "Team identifier can not be empty")
            if teams.find_by_identifier(identifier) is not None:
                raise http_error(409, "CONFLICT", "Team identifier already exists", details={"identifier": identifier})
            team = teams.create_team(
                {"name": payload.name.strip(), "identifier": identifier},
                owner_id=int(claims["sub"]),
            )
            return TeamResponse.model_validate(team)

        @router.get(
            "/teams/{team_id}",
            tags=["teams"],
            response_model=TeamResponse,
            responses=ERROR_RESPONSES,
            dependencies=[Depends(require_claims)],
        )
        def get_team(
            team_id: int = Path(..., ge=1),
            teams: TeamsRepository = Depends(get_teams_repository),
        ) -> TeamResponse:
            return TeamResponse.model_validate(ensure_resource_found(teams.get_team(team_id)))

        @router.delete(
            "/teams/{team_id}",
            tags=["teams"],
            response_model=DeleteResponse,
            responses=ERROR_RESPONSES,
            dependencies=[Depends(require_admin)],
        )
        async def delete_team(
            team_id: int = Path(..., ge=1),
            hooks: LifecycleHooks = Depends(get_hooks),
            teams: TeamsRepository = Depends(get_teams_repository),
        ) -> DeleteResponse:
            team = ensure_resource_found(teams.get_team(team_id))
            if team.get("is_admin"):
                raise http_error(403, "FORBIDDEN", "The admin team can not be deleted")
            warning = await hooks.team_deletion_warning(team)
            if warning is not None:
                raise http_error(409, "DELETE_REJECTED", "Team can not be deleted", details={"reason": str(warning)})
            if not teams.delete_team(team_id):
                raise http_error(404, "NOT_FOUND", "Not Found")
            return DeleteResponse(status="deleted", id=team_id)
