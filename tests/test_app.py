import pytest
from httpx import AsyncClient

from fittrack import initial_data, main
from fittrack.config import settings
from fittrack.models import MetricType
from fittrack.storage import SqlStorage

API = settings.API_V1_STR


@pytest.mark.asyncio
async def test_seed_data_is_idempotent(sql_storage):
    first = await initial_data.seed_data(sql_storage)
    assert first == {"users": 2, "exercises": 16}

    second = await initial_data.seed_data(sql_storage)
    assert second == {"users": 0, "exercises": 0}

    assert [u.id for u in await sql_storage.list_users()] == [settings.DEV_USER_ID, "dev-user-2"]
    exercises = await sql_storage.list_exercises()
    assert len(exercises) == 16
    assert {e.metric_type for e in exercises} == set(MetricType)


@pytest.mark.asyncio
async def test_seed_data_keeps_existing_rows(memory_storage):
    await memory_storage.upsert_user("dev-user-2", username="tester", name="Renamed")
    await memory_storage.create_exercise(name="Plank", metric_type=MetricType.DURATION, unit="minutes")

    created = await initial_data.seed_data(memory_storage)

    assert created == {"users": 1, "exercises": 15}
    assert (await memory_storage.get_user("dev-user-2")).username == "tester"
    assert (await memory_storage.get_exercise_by_name("Plank")).unit == "minutes"


@pytest.mark.asyncio
async def test_dev_mode_works_against_seeded_data(client: AsyncClient, db_session, monkeypatch):
    await initial_data.seed_data(SqlStorage(db_session))
    monkeypatch.setattr(settings, "AUTH_MODE", "dev")

    me = await client.get(f"{API}/users/me")
    assert me.json()["data"]["username"] == settings.DEV_USERNAME
    catalog = await client.get(f"{API}/exercises")
    assert len(catalog.json()["data"]) == 16


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_serves_the_app_with_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    main.run()

    assert calls == [
        (main.app, {"host": settings.HOST, "port": settings.PORT, "log_level": settings.LOG_LEVEL.lower()})
    ]
