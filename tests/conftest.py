# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import landregistry` works without installing.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from landregistry.application.engine import RegistryEngine  # noqa: E402
from landregistry.config.models import AppConfig, DatabaseConfig, WorkflowConfig  # noqa: E402


class FakeClock:
    """Deterministic clock; advances only when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'landregistry_test.db'}"


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def make_engine(db_url, clock):
    engines = []

    def _make(**overrides) -> RegistryEngine:
        config = AppConfig(
            database=DatabaseConfig(url=db_url, lock_timeout_seconds=overrides.pop("lock_timeout_seconds", 2.0)),
            workflow=WorkflowConfig(**overrides),
        )
        engine = RegistryEngine.from_config(config, clock=clock)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def parcel(engine):
    return engine.create_parcel("LP-2025-001", "Bastos, Yaounde", "2.5", "residential", actor_id="registrar-1")
