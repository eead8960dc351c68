import os

os.environ.setdefault("DB_MODE", "sqlite-memory")
os.environ.setdefault("AUTH_MODE", "jwt")
os.environ.setdefault("APP_TIMEZONE", "UTC")

import pytest
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fittrack.auth.security import create_access_token
from fittrack.database import Base, build_engine, get_db
from fittrack.main import app
from fittrack.models import Exercise, MetricType, User
from fittrack.storage import MemoryStorage, SqlStorage


@pytest.fixture(scope="function")
async def db_engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sql_storage(db_session) -> SqlStorage:
    return SqlStorage(db_session)


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


def auth_headers(user_id: str, username: str | None = None, name: str | None = None) -> dict:
    token = create_access_token(user_id, username=username or user_id, name=name or user_id.title())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token_headers():
    return auth_headers


@pytest.fixture
def alice_headers() -> dict:
    return auth_headers("alice", "alice", "Alice")


@pytest.fixture
def bob_headers() -> dict:
    return auth_headers("bob", "bob", "Bob")


@pytest.fixture
async def users(db_session):
    rows = [
        User(id="alice", username="alice", name="Alice"),
        User(id="bob", username="bob", name="Bob"),
        User(id="carol", username="carol", name="Carol"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return {user.id: user for user in rows}


@pytest.fixture
async def exercises(db_session):
    rows = [
        Exercise(name="Bench Press", metric_type=MetricType.WEIGHT, unit="lbs"),
        Exercise(name="Push Ups", metric_type=MetricType.COUNT, unit="reps"),
        Exercise(name="Run", metric_type=MetricType.DISTANCE, unit="meters"),
        Exercise(name="Plank", metric_type=MetricType.DURATION, unit="seconds"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return {exercise.name: exercise for exercise in rows}



@pytest.fixture
async def file_sessionmaker(tmp_path):
    """File database with a fresh AsyncSession per request, the way get_db serves it."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fittrack.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield session_factory
    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def file_client(file_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
