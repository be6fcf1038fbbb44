from __future__ import annotations

from collections.abc import Iterator
from typing import Any, TypeVar, cast

T = TypeVar("T")


class ServiceNotRegistered(LookupError):
    pass


class ServiceRegistry:
    """Typed service container populated at startup and queried by request handlers.

    Services are keyed by their class unless an explicit ``key`` is given.
    Registering the same key again replaces the previous instance.
    """

    def __init__(self) -> None:
        self._services: dict[Any, Any] = {}
        self._history: list[Any] = []

    def register(self, service: Any, *, key: Any = None) -> Any:
        registry_key = key if key is not None else type(service)
        self._services.pop(registry_key, None)
        self._services[registry_key] = service
        self._history.append(registry_key)
        return service

    def get(self, key: type[T]) -> T:
        try:
            return cast(T, self._services[key])
        except KeyError:
            raise ServiceNotRegistered(getattr(key, "__name__", str(key))) from None

    def find(self, key: Any) -> Any:
        return self._services.get(key)

    def __contains__(self, key: Any) -> bool:
        return key in self._services

    def __iter__(self) -> Iterator[Any]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    def keys(self) -> list[Any]:
        return list(self._services)

    @property
    def registration_order(self) -> list[Any]:
        return list(self._history)

    def copy(self) -> "ServiceRegistry":
        clone = ServiceRegistry()
        clone._services = dict(self._services)
        clone._history = list(self._history)
        return clone

    def commit(self, staged: "ServiceRegistry") -> None:
        """Adopt everything registered into ``staged`` in one step."""
        self._services = dict(staged._services)
        self._history = list(staged._history)
