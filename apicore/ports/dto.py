from __future__ import annotations

from datetime import datetime
from typing import TypedDict


class UserRegistrationDTO(TypedDict):
    email: str
    firstname: str | None
    lastname: str | None
    username: str | None
    password: str | None
    provider: str | None


class UserRecordDTO(TypedDict, total=False):
    id: int
    email: str
    firstname: str | None
    lastname: str | None
    username: str | None
    provider: str | None
    is_admin: bool
    created_at: datetime


class TeamCreateDTO(TypedDict):
    name: str
    identifier: str


class TeamRecordDTO(TypedDict, total=False):
    id: int
    name: str
    identifier: str
    is_admin: bool
    created_at: datetime
