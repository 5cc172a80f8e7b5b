"""Pytest configuration helpers.

Puts `backend/` on `sys.path` so tests can import the `app` package, and points
the application at SQLite before any `app` module builds its engine. Each test
then gets its own file-based database.
"""
import os
import sys
import tempfile

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MEDIA_VOLUME", tempfile.mkdtemp(prefix="shortdrama-media-"))

from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.database import Base, build_session_factory  # noqa: E402
from app.services.model_catalog import build_catalog  # noqa: E402
from app.services.provider_registry import ProviderRegistry  # noqa: E402
from app.services.task_service import OrchestratorConfig, TaskService  # noqa: E402
from app.tasks import run_async  # noqa: E402

from fakes import FakeProvider, seed_project  # noqa: E402


async def _create_tables(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    run_async(_create_tables(engine))
    yield build_session_factory(engine)
    run_async(engine.dispose())


@pytest.fixture()
def seeded(session_factory):
    """Ids of one project owned by user-1 and one entity of each kind."""
    return run_async(seed_project(session_factory))


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def notifications():
    return []


@pytest.fixture()
def dispatched():
    return []


@pytest.fixture()
def registry(provider):
    return ProviderRegistry(build_catalog(), {"zeroapi": provider}, api_keys={"zeroapi": "test-key"})


@pytest.fixture()
def service(session_factory, registry, notifications, dispatched):
    async def notifier(project_id, message):
        notifications.append((project_id, message))

    return TaskService(
        session_factory,
        registry,
        OrchestratorConfig(),
        notifier=notifier,
        dispatcher=lambda task, user_id: dispatched.append((task.id, user_id)),
    )
