"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from designcoach.config import settings
from designcoach.db.base import Base
# Import all models to register with Base.metadata
import designcoach.db.models  # noqa: F401
from designcoach.db.models.project import ArchitectureVersionRow, ProjectRow, UserRow
from designcoach.telemetry.sink import TelemetrySink
from designcoach.workers.queue import InMemoryEvaluationQueue

OWNER_ID = "usr_owner"
OTHER_USER_ID = "usr_other"
PROJECT_ID = "prj_checkout"
VERSION_ID = "ver_checkout_v1"
WORKER_TOKEN = "test-worker-token"


@pytest.fixture
async def db_engine(tmp_path):
    """SQLite engine on a temp file so background telemetry sessions get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(session_factory):
    """An owner with one project and one architecture version, plus a second user."""
    async with session_factory() as session:
        session.add_all([
            UserRow(user_id=OWNER_ID, email="owner@example.com"),
            UserRow(user_id=OTHER_USER_ID, email="other@example.com"),
        ])
        await session.flush()
        session.add(ProjectRow(project_id=PROJECT_ID, user_id=OWNER_ID, title="Checkout service"))
        await session.flush()
        session.add(
            ArchitectureVersionRow(
                version_id=VERSION_ID,
                project_id=PROJECT_ID,
                version_number=1,
                components=[{"id": "api", "type": "service"}, {"id": "db", "type": "postgres"}],
                edges=[{"from": "api", "to": "db"}],
                traffic_profile={"baseline_rps": 200, "peak_multiplier": 3},
            )
        )
        await session.commit()
    return {"owner_id": OWNER_ID, "other_id": OTHER_USER_ID, "project_id": PROJECT_ID, "version_id": VERSION_ID}


@pytest.fixture
def queue():
    return InMemoryEvaluationQueue()


@pytest.fixture
async def telemetry(session_factory):
    sink = TelemetrySink(session_factory)
    yield sink
    await sink.aclose(timeout=5)


@pytest.fixture
def worker_token(monkeypatch):
    monkeypatch.setattr(settings, "worker_callback_token", WORKER_TOKEN)
    return WORKER_TOKEN


@pytest.fixture
def app(db_engine, session_factory, queue, telemetry, worker_token):
    """Create a test application instance with a temp-file DB and in-process queue."""
    from designcoach.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.queue = queue
    _app.state.telemetry = telemetry
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _make_token(user_id: str, **overrides) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=15)).timestamp()),
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def owner_headers():
    return {"Authorization": f"Bearer {_make_token(OWNER_ID)}"}


@pytest.fixture
def other_headers():
    return {"Authorization": f"Bearer {_make_token(OTHER_USER_ID)}"}


@pytest.fixture
def worker_headers(worker_token):
    return {"X-Worker-Token": worker_token}


@pytest.fixture
def make_token():
    """Factory for signed access tokens with optional claim overrides."""
    return _make_token
