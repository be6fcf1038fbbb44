from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
from pathlib import Path
import tempfile
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from apicore.config import Config, Environment
from apicore.hooks import LifecycleHooks
from apicore.registry import ServiceRegistry

REPO_ROOT = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = REPO_ROOT / "templates"
TEST_STORAGE_ROOT = Path(tempfile.gettempdir()) / "apicore-test-storage"

DEVELOPMENT = Environment(name="development", is_release=False)
PRODUCTION = Environment(name="production", is_release=True)


def build_test_config(**overrides: Any) -> Config:
    defaults: dict[str, Any] = {
        "APP_ENV": "test",
        "LOG_LEVEL": "WARNING",
        "LOG_JSON": False,
        "POSTGRES_HOST": "127.0.0.1",
        "POSTGRES_PORT": 5432,
        "POSTGRES_USER": "apicore",
        "POSTGRES_PASSWORD": "apicore",
        "POSTGRES_DB": "apicore",
        "JWT_SECRET": "test-signing-secret-with-enough-bytes",
        "TEMPLATES_LOCATION": str(TEMPLATES_DIR),
        "STORAGE_ROOT": str(TEST_STORAGE_ROOT),
        "MAIL_ENABLED": False,
        "GITHUB_ENABLED": False,
        "GITLAB_ENABLED": False,
    }
    defaults.update(overrides)
    return Config.model_validate(defaults)


class StubResult:
    def __init__(
        self,
        *,
        rowcount: int = 0,
        rows: Optional[List[Dict[str, Any]]] = None,
        scalar_value: Optional[Any] = None,
    ) -> None:
        self.rowcount = rowcount
        self._rows = rows or []
        self._scalar_value = scalar_value

    def mappings(self) -> "StubResult":
        return self

    def all(self) -> List[Dict[str, Any]]:
        return self._rows

    def first(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None

    def scalar(self) -> Optional[Any]:
        return self._scalar_value


class StubConnection:
    def __init__(self, handler: Callable[[Any, Optional[Dict[str, Any]]], StubResult]) -> None:
        self._handler = handler
        self.calls: List[Dict[str, Any]] = []

    def execute(self, statement: Any, params: Optional[Dict[str, Any]] = None) -> StubResult:
        self.calls.append({"statement": str(statement), "params": params})
        return self._handler(statement, params)


class StubBeginContext:
    def __init__(self, connection: StubConnection) -> None:
        self._connection = connection

    def __enter__(self) -> StubConnection:
        return self._connection

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        return False


class StubEngine:
    def __init__(self, handler: Optional[Callable[[Any, Optional[Dict[str, Any]]], StubResult]] = None) -> None:
        if handler is None:
            def _default_handler(_statement, _params):
                return StubResult()

            handler = _default_handler
        self.connection = StubConnection(handler)
        self.disposed = False

    def begin(self) -> StubBeginContext:
        return StubBeginContext(self.connection)

    def dispose(self) -> None:
        self.disposed = True


class InMemoryDatabase:
    """Answers the handful of SQL statements the repositories issue."""

    def __init__(self) -> None:
        self.users: Dict[int, Dict[str, Any]] = {}
        self.teams: Dict[int, Dict[str, Any]] = {}
        self.team_users: set[tuple[int, int]] = set()
        self._next_user_id = 1
        self._next_team_id = 1

    @staticmethod
    def _public_user(row: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in row.items() if key not in {"password_hash", "external_id"}}

    def _user_rows(self, predicate: Callable[[Dict[str, Any]], bool], *, with_hash: bool = False) -> List[Dict[str, Any]]:
        rows = []
        for row in self.users.values():
            if predicate(row):
                public = self._public_user(row)
                if with_hash:
                    public["password_hash"] = row["password_hash"]
                rows.append(public)
        return rows

    def handle(self, statement: Any, params: Optional[Dict[str, Any]]) -> StubResult:
        sql = " ".join(str(statement).split())
        params = params or {}

        if sql.startswith("SELECT COUNT(*) FROM users"):
            return StubResult(scalar_value=len(self.users))
        if sql.startswith("SELECT 1"):
            return StubResult(scalar_value=1)
        if sql.startswith("SELECT") and "FROM users WHERE id=:id" in sql:
            return StubResult(rows=self._user_rows(lambda row: row["id"] == params["id"]))
        if sql.startswith("SELECT") and "password_hash FROM users WHERE email=:email" in sql:
            return StubResult(rows=self._user_rows(lambda row: row["email"] == params["email"], with_hash=True))
        if sql.startswith("SELECT") and "FROM users WHERE email=:email" in sql:
            return StubResult(rows=self._user_rows(lambda row: row["email"] == params["email"]))
        if sql.startswith("SELECT") and "FROM users WHERE provider=:provider" in sql:
            return StubResult(
                rows=self._user_rows(
                    lambda row: row["provider"] == params["provider"] and row["external_id"] == params["external_id"]
                )
            )
        if sql.startswith("INSERT INTO users"):
            row = dict(params, id=self._next_user_id, created_at=datetime.now(timezone.utc))
            self.users[row["id"]] = row
            self._next_user_id += 1
            return StubResult(rowcount=1, rows=[self._public_user(row)])
        if sql.startswith("DELETE FROM users"):
            removed = self.users.pop(params["id"], None)
            return StubResult(rowcount=1 if removed else 0)
        if sql.startswith("SELECT") and "FROM teams WHERE id=:id" in sql:
            return StubResult(rows=[dict(row) for row in self.teams.values() if row["id"] == params["id"]])
        if sql.startswith("SELECT") and "FROM teams WHERE identifier=:identifier" in sql:
            return StubResult(
                rows=[dict(row) for row in self.teams.values() if row["identifier"] == params["identifier"]]
            )
        if sql.startswith("INSERT INTO teams"):
            row = dict(params, id=self._next_team_id, created_at=datetime.now(timezone.utc))
            self.teams[row["id"]] = row
            self._next_team_id += 1
            return StubResult(rowcount=1, rows=[dict(row)])
        if sql.startswith("DELETE FROM teams"):
            removed = self.teams.pop(params["id"], None)
            return StubResult(rowcount=1 if removed else 0)
        if sql.startswith("INSERT INTO team_users"):
            self.team_users.add((params["team_id"], params["user_id"]))
            return StubResult(rowcount=1)
        if sql.startswith("DELETE FROM team_users WHERE team_id"):
            before = len(self.team_users)
            self.team_users = {pair for pair in self.team_users if pair[0] != params["id"]}
            return StubResult(rowcount=before - len(self.team_users))
        if sql.startswith("DELETE FROM team_users WHERE user_id"):
            before = len(self.team_users)
            self.team_users = {pair for pair in self.team_users if pair[1] != params["id"]}
            return StubResult(rowcount=before - len(self.team_users))
        raise AssertionError(f"unexpected SQL in test: {sql}")


@pytest.fixture
def stub_engine(monkeypatch):
    engine = StubEngine()
    monkeypatch.setattr("apicore.database.create_engine", lambda *_args, **_kwargs: engine)
    return engine


@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def make_app(memory_db, tmp_path):
    def _factory(
        *,
        hooks: Optional[LifecycleHooks] = None,
        registry: Optional[ServiceRegistry] = None,
        environment: Environment = DEVELOPMENT,
        **config_overrides: Any,
    ):
        from apicore import create_app

        config_overrides.setdefault("STORAGE_ROOT", str(tmp_path / "storage"))
        engine = StubEngine(memory_db.handle)
        with patch("apicore.database.create_engine", return_value=engine):
            return create_app(
                build_test_config(**config_overrides),
                environment=environment,
                hooks=hooks or LifecycleHooks(),
                registry=registry,
            )

    return _factory


@pytest.fixture
def client(make_app):
    with TestClient(make_app()) as tc:
        yield tc


def register_and_login(client: TestClient, *, email: str = "jane@example.com", password: str = "correct-horse") -> str:
    created = client.post("/users", json={"email": email, "password": password, "firstname": "Jane"})
    assert created.status_code == 201, created.text
    login = client.post("/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return login.json()["token"]


def install_admin(client: TestClient, *, email: str = "admin@example.com", password: str = "sup3rS3cr3t") -> str:
    installed = client.post("/install", json={"email": email, "password": password})
    assert installed.status_code == 201, installed.text
    login = client.post("/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return login.json()["token"]
