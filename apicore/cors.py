from __future__ import annotations

from dataclasses import dataclass

from apicore.config import Config
from apicore.registry import ServiceRegistry


@dataclass(frozen=True)
class CorsPolicy:
    allow_origins: tuple[str, ...]
    allow_methods: tuple[str, ...]
    allow_headers: tuple[str, ...]
    allow_credentials: bool = False
    expose_headers: tuple[str, ...] = ("X-Request-Id",)

    def middleware_options(self) -> dict[str, object]:
        return {
            "allow_origins": list(self.allow_origins),
            "allow_methods": list(self.allow_methods),
            "allow_headers": list(self.allow_headers),
            "allow_credentials": self.allow_credentials,
            "expose_headers": list(self.expose_headers),
        }


def setup_cors(registry: ServiceRegistry, config: Config) -> CorsPolicy:
    # browsers reject a wildcard origin on credentialed requests
    allow_credentials = bool(config.CORS_ALLOW_CREDENTIALS) and "*" not in config.cors_allow_origins_list
    policy = CorsPolicy(
        allow_origins=tuple(config.cors_allow_origins_list),
        allow_methods=tuple(method.upper() for method in config.cors_allow_methods_list),
        allow_headers=tuple(config.cors_allow_headers_list),
        allow_credentials=allow_credentials,
    )
    registry.register(policy)
    return policy
