"""
Jinja2 templating for server-rendered mail bodies and pages.

``TemplateEngine`` owns the shared Jinja2 environment settings;
``Templator`` binds it to a template package directory on disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, select_autoescape

from apicore.errors import TemplateLoadError


class TemplateEngine:
    """Factory for Jinja2 environments sharing the same filters and escaping rules."""

    def __init__(self) -> None:
        self.filters: dict[str, Any] = {
            "fullname": _fullname_filter,
        }

    def environment(self, loader: FileSystemLoader) -> Environment:
        env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "htm", "xml"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.filters.update(self.filters)
        return env


def _fullname_filter(user: Any) -> str:
    if not isinstance(user, dict):
        return str(user or "")
    parts = [user.get("firstname"), user.get("lastname")]
    name = " ".join(part for part in parts if part)
    return name or str(user.get("username") or user.get("email") or "")


def resolve_package_location(package_location: str) -> Path:
    """Turn a local path or ``file://`` URL into an existing template directory."""
    location = (package_location or "").strip()
    if not location:
        raise TemplateLoadError("template package location is empty")

    parsed = urlparse(location)
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    elif not parsed.scheme or len(parsed.scheme) == 1:
        # single-letter schemes are windows drive letters
        path = Path(location)
    else:
        raise TemplateLoadError(f"unsupported template package location: {location}")

    path = path.expanduser().resolve()
    if not path.is_dir():
        raise TemplateLoadError(f"template package not found: {path}")
    return path


class Templator:
    def __init__(self, package_location: str, *, engine: TemplateEngine | None = None) -> None:
        self.root = resolve_package_location(package_location)
        self._engine = engine or TemplateEngine()
        self._env = self._engine.environment(FileSystemLoader(str(self.root)))

    def has_template(self, name: str) -> bool:
        try:
            self._env.get_template(name)
        except TemplateNotFound:
            return False
        return True

    def render(self, name: str, context: dict[str, Any] | None = None) -> str:
        try:
            template = self._env.get_template(name)
        except TemplateNotFound as exc:
            raise TemplateLoadError(f"template not found: {name}") from exc
        return template.render(**(context or {}))
