from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StrictRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ErrorResponse(BaseModel):
    code: str = Field(examples=["NOT_FOUND"])
    message: str = Field(examples=["Not Found"])
    error: str = Field(examples=["Not Found"])
    request_id: Optional[str] = Field(default=None, examples=["c752262e-cf42-4075-917b-95ffcb5ceeeb"])
    details: Any = None


class HealthResponse(BaseModel):
    status: str = Field(examples=["ok"])


class ReadinessCheck(BaseModel):
    ok: bool
    detail: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str = Field(examples=["ok", "degraded"])
    checks: dict[str, ReadinessCheck]


class ServerInfoResponse(BaseModel):
    name: str
    url: str
    version: str
    environment: str
    max_upload_filesize_mb: int


class LoginProviderInfo(BaseModel):
    name: str
    login_path: str


class SettingsResponse(BaseModel):
    allow_registrations: bool
    registration_domains: list[str]
    login_providers: list[LoginProviderInfo]


class UserRegistrationRequest(StrictRequestModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    firstname: Optional[str] = Field(default=None, max_length=120)
    lastname: Optional[str] = Field(default=None, max_length=120)
    username: Optional[str] = Field(default=None, max_length=120)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        local, _, domain = normalized.partition("@")
        if not local or "." not in domain:
            raise ValueError("email must be a valid address")
        return normalized


class UserResponse(BaseModel):
    id: int
    email: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    username: Optional[str] = None
    provider: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None


class TeamCreateRequest(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=120)
    identifier: Optional[str] = Field(default=None, max_length=120)


class TeamResponse(BaseModel):
    id: int
    name: str
    identifier: str
    is_admin: bool = False
    created_at: Optional[datetime] = None


class LoginRequest(StrictRequestModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class TokenVerifyResponse(BaseModel):
    claims: dict[str, Any]


class InstallResponse(BaseModel):
    status: str
    admin: UserResponse
    team: TeamResponse
    install_tasks: int


class DeleteResponse(BaseModel):
    status: str
    id: int
