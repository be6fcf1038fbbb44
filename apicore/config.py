from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import List

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

RELEASE_ENVIRONMENTS = frozenset({"prod", "production", "release"})


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    SERVER_NAME: str = "ApiCore"
    SERVER_URL: str = "http://localhost:8080"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    DEBUG: bool = False
    APP_ENV: str = "development"
    MAX_UPLOAD_FILESIZE_MB: int | None = None

    POSTGRES_HOST: str = "127.0.0.1"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "apicore"
    POSTGRES_PASSWORD: str = "apicore"
    POSTGRES_DB: str = "apicore"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 3600
    DB_CONNECT_TIMEOUT_SECONDS: int = 3
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    MAIL_ENABLED: bool = False
    MAIL_SMTP_HOST: str = "localhost"
    MAIL_SMTP_PORT: int = 1025
    MAIL_SMTP_USERNAME: str | None = None
    MAIL_SMTP_PASSWORD: str | None = None
    MAIL_USE_TLS: bool = False
    MAIL_SENDER: str = "ApiCore <core@apicore.local>"

    TEMPLATES_LOCATION: str = "templates"
    STORAGE_ROOT: str = "storage"

    JWT_SECRET: str = "secret"
    JWT_TTL_SECONDS: int = 3600
    AUTH_ALLOW_REGISTRATIONS: bool = True
    AUTH_REGISTRATION_DOMAINS: str = ""

    GITHUB_ENABLED: bool = False
    GITHUB_HOST: str = "https://github.com"
    GITHUB_API: str = "https://api.github.com"
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""

    GITLAB_ENABLED: bool = False
    GITLAB_HOST: str = "https://gitlab.com"
    GITLAB_API: str = "https://gitlab.com/api/v4"
    GITLAB_CLIENT_ID: str = ""
    GITLAB_CLIENT_SECRET: str = ""

    CORS_ALLOW_ORIGINS: str = "*"
    CORS_ALLOW_METHODS: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    CORS_ALLOW_HEADERS: str = "*"
    CORS_ALLOW_CREDENTIALS: bool = False
    ALLOWED_HOSTS: str = "*"
    MIDDLEWARE_REQUEST_METRICS: bool = True
    MIDDLEWARE_DEBUG_REQUESTS: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        return URL.create(
            "postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=int(self.POSTGRES_PORT),
            database=self.POSTGRES_DB,
        ).render_as_string(hide_password=False)

    @staticmethod
    def _parse_csv(value: str) -> List[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def cors_allow_origins_list(self) -> List[str]:
        values = self._parse_csv(self.CORS_ALLOW_ORIGINS)
        return values or ["*"]

    @property
    def cors_allow_methods_list(self) -> List[str]:
        values = self._parse_csv(self.CORS_ALLOW_METHODS)
        return values or ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

    @property
    def cors_allow_headers_list(self) -> List[str]:
        values = self._parse_csv(self.CORS_ALLOW_HEADERS)
        return values or ["*"]

    @property
    def allowed_hosts_list(self) -> List[str]:
        values = self._parse_csv(self.ALLOWED_HOSTS)
        return values or ["*"]

    @property
    def registration_domains_list(self) -> List[str]:
        return [domain.lower().lstrip("@") for domain in self._parse_csv(self.AUTH_REGISTRATION_DOMAINS)]

    @property
    def app_env(self) -> str:
        value = (self.APP_ENV or "").strip().lower()
        return value or "development"


@dataclass(frozen=True)
class Environment:
    name: str
    is_release: bool

    @classmethod
    def from_config(cls, config: Config) -> "Environment":
        name = config.app_env
        return cls(name=name, is_release=name in RELEASE_ENVIRONMENTS)


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Resolve the process-wide configuration, loading it on first access."""
    return Config()
