from __future__ import annotations

from fastapi import APIRouter, Depends

from apicore.auth.login import LOGIN_MANAGERS
from apicore.config import Config
from apicore.dependencies import get_app_config, get_registry
from apicore.registry import ServiceRegistry
from apicore.schemas import LoginProviderInfo, SettingsResponse


class SettingsController:
    @classmethod
    def install_routes(cls, router: APIRouter) -> None:
        @router.get("/settings", tags=["settings"], response_model=SettingsResponse)
        async def public_settings(
            config: Config = Depends(get_app_config),
            registry: ServiceRegistry = Depends(get_registry),
        ) -> SettingsResponse:
            providers = []
            for name, manager_cls in LOGIN_MANAGERS.items():
                manager = registry.find(manager_cls)
                if manager is not None:
                    providers.append(LoginProviderInfo(name=name, login_path=manager.login_path))
            return SettingsResponse(
                allow_registrations=config.AUTH_ALLOW_REGISTRATIONS,
                registration_domains=config.registration_domains_list,
                login_providers=providers,
            )
