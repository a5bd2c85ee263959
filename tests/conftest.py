"""Shared fixtures: isolated blob directory, SQLite registry and HTTP client per test."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from codedrop.config import Settings
from codedrop.db.session import build_engine, build_session_factory, create_tables
from codedrop.main import create_app
from codedrop.services.registry import SqlFileRegistry
from codedrop.utils.codes import CodeGenerator
from codedrop.utils.storage import LocalStorage


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SequenceCodes(CodeGenerator):
    """Hands out the given codes first, then random ones."""

    def __init__(self, codes):
        super().__init__()
        self._codes = list(codes)

    def generate(self) -> str:
        if self._codes:
            return self._codes.pop(0)
        return super().generate()


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}",
        "STORAGE_LOCAL_PATH": tmp_path / "storage",
        "REGISTRY_BACKEND": "sql",
        "REAPER_ENABLED": False,
        "BASE_URL": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "blobs")


@pytest.fixture()
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'registry.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def registry(engine, storage, clock) -> SqlFileRegistry:
    return SqlFileRegistry(build_session_factory(engine), storage, clock=clock)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
