from __future__ import annotations

from typing import Any, cast as typing_cast

from sqlalchemy import text

from apicore.database import ConnectionProvider
from apicore.ports.dto import UserRecordDTO, UserRegistrationDTO

USER_COLUMNS = "id, email, firstname, lastname, username, provider, is_admin, created_at"


def _to_user(row: Any) -> UserRecordDTO | None:
    return typing_cast(UserRecordDTO, dict(row)) if row else None


class UsersRepository:
    def __init__(self, *, connection_provider: ConnectionProvider) -> None:
        self._connection_provider = connection_provider

    def count_users(self) -> int:
        with self._connection_provider() as conn:
            value = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return int(value or 0)

    def get_user(self, user_id: int) -> UserRecordDTO | None:
        with self._connection_provider() as conn:
            row = conn.execute(text(f"SELECT {USER_COLUMNS} FROM users WHERE id=:id"), {"id": user_id}).mappings().first()
        return _to_user(row)

    def find_by_email(self, email: str) -> UserRecordDTO | None:
        with self._connection_provider() as conn:
            row = (
                conn.execute(text(f"SELECT {USER_COLUMNS} FROM users WHERE email=:email"), {"email": email.lower()})
                .mappings()
                .first()
            )
        return _to_user(row)

    def find_credentials(self, email: str) -> tuple[UserRecordDTO, str | None] | None:
        with self._connection_provider() as conn:
            row = (
                conn.execute(
                    text(f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email=:email"),
                    {"email": email.lower()},
                )
                .mappings()
                .first()
            )
        if not row:
            return None
        record = dict(row)
        password_hash = record.pop("password_hash", None)
        return typing_cast(UserRecordDTO, record), password_hash

    def find_by_external_id(self, provider: str, external_id: str) -> UserRecordDTO | None:
        with self._connection_provider() as conn:
            row = (
                conn.execute(
                    text(f"SELECT {USER_COLUMNS} FROM users WHERE provider=:provider AND external_id=:external_id"),
                    {"provider": provider, "external_id": external_id},
                )
                .mappings()
                .first()
            )
        return _to_user(row)

    def create_user(
        self,
        registration: UserRegistrationDTO,
        *,
        password_hash: str | None,
        external_id: str | None = None,
        is_admin: bool = False,
    ) -> UserRecordDTO:
        sql = text(
            "INSERT INTO users (email, firstname, lastname, username, password_hash, provider, external_id, is_admin) "
            "VALUES (:email, :firstname, :lastname, :username, :password_hash, :provider, :external_id, :is_admin) "
            f"RETURNING {USER_COLUMNS}"
        )
        params = {
            "email": registration["email"].lower(),
            "firstname": registration.get("firstname"),
            "lastname": registration.get("lastname"),
            "username": registration.get("username"),
            "password_hash": password_hash,
            "provider": registration.get("provider"),
            "external_id": external_id,
            "is_admin": bool(is_admin),
        }
        with self._connection_provider() as conn:
            row = conn.execute(sql, params).mappings().first()
        if not row:
            raise RuntimeError("user insert returned no row")
        return typing_cast(UserRecordDTO, dict(row))

    def delete_user(self, user_id: int) -> bool:
        with self._connection_provider() as conn:
            conn.execute(text("DELETE FROM team_users WHERE user_id=:id"), {"id": user_id})
            result = conn.execute(text("DELETE FROM users WHERE id=:id"), {"id": user_id})
        return result.rowcount > 0
