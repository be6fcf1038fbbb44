from __future__ import annotations

import logging
from pathlib import Path

from apicore.config import Config
from apicore.errors import StorageSetupError
from apicore.registry import ServiceRegistry

logger = logging.getLogger("apicore.storage")


class StoragePathError(ValueError):
    pass


class LocalFileStorage:
    def __init__(self, root: Path) -> None:
        self.root = root

    def _resolve(self, relative_path: str) -> Path:
        candidate = (self.root / relative_path.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise StoragePathError(f"path escapes storage root: {relative_path}")
        return candidate

    def save(self, relative_path: str, data: bytes) -> Path:
        path = self._resolve(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def read(self, relative_path: str) -> bytes:
        return self._resolve(relative_path).read_bytes()

    def exists(self, relative_path: str) -> bool:
        return self._resolve(relative_path).is_file()

    def delete(self, relative_path: str) -> bool:
        path = self._resolve(relative_path)
        if not path.is_file():
            return False
        path.unlink()
        return True


def setup_storage(registry: ServiceRegistry, config: Config) -> LocalFileStorage:
    raw_root = (config.STORAGE_ROOT or "").strip()
    if not raw_root:
        raise StorageSetupError("STORAGE_ROOT must be set.")
    root = Path(raw_root).expanduser()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageSetupError(f"storage root could not be created: {root}") from exc
    if not root.is_dir():
        raise StorageSetupError(f"storage root is not a directory: {root}")

    storage = LocalFileStorage(root.resolve())
    registry.register(storage)
    logger.info("storage_configured", extra={"service": str(storage.root)})
    return storage
