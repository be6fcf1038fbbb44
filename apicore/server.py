from __future__ import annotations

from dataclasses import dataclass

from apicore.config import Config
from apicore.registry import ServiceRegistry

MIN_UPLOAD_FILESIZE_MB = 50
BYTES_PER_MEGABYTE = 1024 * 1024


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    max_body_size: int

    @property
    def max_upload_filesize_mb(self) -> int:
        return self.max_body_size // BYTES_PER_MEGABYTE


def normalize_upload_limit(max_upload_filesize_mb: int | None) -> int:
    if max_upload_filesize_mb is None or max_upload_filesize_mb < MIN_UPLOAD_FILESIZE_MB:
        return MIN_UPLOAD_FILESIZE_MB
    return int(max_upload_filesize_mb)


def setup_server(registry: ServiceRegistry, config: Config) -> ServerSettings:
    upload_limit_mb = normalize_upload_limit(config.MAX_UPLOAD_FILESIZE_MB)
    settings = ServerSettings(
        host=config.HOST,
        port=int(config.PORT),
        max_body_size=upload_limit_mb * BYTES_PER_MEGABYTE,
    )
    registry.register(settings)
    return settings
