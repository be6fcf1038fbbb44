from __future__ import annotations

from typing import Any, cast as typing_cast

from sqlalchemy import text

from apicore.database import ConnectionProvider
from apicore.ports.dto import TeamCreateDTO, TeamRecordDTO

TEAM_COLUMNS = "id, name, identifier, is_admin, created_at"


def _to_team(row: Any) -> TeamRecordDTO | None:
    return typing_cast(TeamRecordDTO, dict(row)) if row else None


class TeamsRepository:
    def __init__(self, *, connection_provider: ConnectionProvider) -> None:
        self._connection_provider = connection_provider

    def get_team(self, team_id: int) -> TeamRecordDTO | None:
        with self._connection_provider() as conn:
            row = conn.execute(text(f"SELECT {TEAM_COLUMNS} FROM teams WHERE id=:id"), {"id": team_id}).mappings().first()
        return _to_team(row)

    def find_by_identifier(self, identifier: str) -> TeamRecordDTO | None:
        with self._connection_provider() as conn:
            row = (
                conn.execute(text(f"SELECT {TEAM_COLUMNS} FROM teams WHERE identifier=:identifier"), {"identifier": identifier})
                .mappings()
                .first()
            )
        return _to_team(row)

    def create_team(self, team: TeamCreateDTO, *, owner_id: int | None = None, is_admin: bool = False) -> TeamRecordDTO:
        with self._connection_provider() as conn:
            row = (
                conn.execute(
                    text(
                        "INSERT INTO teams (name, identifier, is_admin) VALUES (:name, :identifier, :is_admin) "
                        f"RETURNING {TEAM_COLUMNS}"
                    ),
                    {"name": team["name"], "identifier": team["identifier"], "is_admin": bool(is_admin)},
                )
                .mappings()
                .first()
            )
            if not row:
                raise RuntimeError("team insert returned no row")
            if owner_id is not None:
                conn.execute(
                    text("INSERT INTO team_users (team_id, user_id) VALUES (:team_id, :user_id)"),
                    {"team_id": row["id"], "user_id": owner_id},
                )
        return typing_cast(TeamRecordDTO, dict(row))

    def delete_team(self, team_id: int) -> bool:
        with self._connection_provider() as conn:
            conn.execute(text("DELETE FROM team_users WHERE team_id=:id"), {"id": team_id})
            result = conn.execute(text("DELETE FROM teams WHERE id=:id"), {"id": team_id})
        return result.rowcount > 0
