import pytest
import uuid
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient

from fittrack.config import settings
from fittrack.core.exceptions import NotFoundError
from fittrack.models import MetricType
from fittrack.services.analytics import AnalyticsService

API = settings.API_V1_STR


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


async def _session(storage, user_id, started_at, ended_at=None):
    session = await storage.create_session(user_id, note=None, started_at=started_at)
    if ended_at is not None:
        session.ended_at = ended_at
        session = await storage.save_session(session)
    return session


async def _set(storage, session, exercise, logged_at=None, **fields):
    values = {"reps": None, "weight": None, "duration_sec": None, "distance_meters": None, "note": None}
    values.update(fields)
    workout_set = await storage.create_set(session.id, exercise.id, **values)
    if logged_at is not None:
        workout_set.created_at = logged_at
        await storage.save_set(workout_set)
    return workout_set


@pytest.fixture
async def catalog(memory_storage):
    return {
        "bench": await memory_storage.create_exercise(name="Bench Press", metric_type=MetricType.WEIGHT, unit="lbs"),
        "push_ups": await memory_storage.create_exercise(name="Push Ups", metric_type=MetricType.COUNT, unit="reps"),
        "run": await memory_storage.create_exercise(name="Run", metric_type=MetricType.DISTANCE, unit="meters"),
        "plank": await memory_storage.create_exercise(name="Plank", metric_type=MetricType.DURATION, unit="seconds"),
    }


@pytest.mark.asyncio
async def test_today_stats_for_one_ended_session(memory_storage, catalog):
    session = await _session(memory_storage, "alice", _at(10, 8), _at(10, 9, 30))
    await _set(memory_storage, session, catalog["bench"], reps=10, weight=50)
    await _set(memory_storage, session, catalog["push_ups"], reps=8)
    await _set(memory_storage, session, catalog["run"], distance_meters=1000)

    stats = await AnalyticsService.get_today_stats(memory_storage, "alice", now=_at(10, 12))

    assert stats["workout_time"] == 90
    assert stats["total_sets"] == 3
    assert stats["exercise_count"] == 3
    # weight 50 x 10 reps + 8 reps + 1000 meters
    assert stats["total_volume"] == 1508


@pytest.mark.asyncio
async def test_today_stats_window_and_active_sessions(memory_storage, catalog):
    yesterday = await _session(memory_storage, "alice", _at(9, 20), _at(9, 21))
    await _set(memory_storage, yesterday, catalog["push_ups"], reps=50)
    other_user = await _session(memory_storage, "bob", _at(10, 7), _at(10, 8))
    await _set(memory_storage, other_user, catalog["push_ups"], reps=50)

    active = await _session(memory_storage, "alice", _at(10, 11))
    await _set(memory_storage, active, catalog["plank"], duration_sec=60)
    await _set(memory_storage, active, catalog["plank"], duration_sec=45)

    stats = await AnalyticsService.get_today_stats(memory_storage, "alice", now=_at(10, 11, 40))

    assert stats["workout_time"] == 40
    assert stats["total_sets"] == 2
    assert stats["exercise_count"] == 1
    assert stats["total_volume"] == 105


@pytest.mark.asyncio
async def test_today_stats_rounds_each_session_to_the_nearest_minute(memory_storage):
    await _session(memory_storage, "alice", _at(10, 6), _at(10, 6) + timedelta(seconds=89))
    await _session(memory_storage, "alice", _at(10, 7), _at(10, 7) + timedelta(seconds=91))

    stats = await AnalyticsService.get_today_stats(memory_storage, "alice", now=_at(10, 12))

    assert stats["workout_time"] == 3
    assert stats["total_sets"] == 0
    assert stats["total_volume"] == 0


@pytest.mark.asyncio
async def test_weight_without_reps_counts_the_weight(memory_storage, catalog):
    session = await _session(memory_storage, "alice", _at(10, 8), _at(10, 9))
    await _set(memory_storage, session, catalog["bench"], weight=135)
    await _set(memory_storage, session, catalog["bench"], reps=0, weight=100)

    stats = await AnalyticsService.get_today_stats(memory_storage, "alice", now=_at(10, 10))
    assert stats["total_volume"] == 135


@pytest.mark.asyncio
async def test_week_buckets_group_sets_from_the_same_week(memory_storage, catalog):
    session = await _session(memory_storage, "alice", _at(1, 8), _at(1, 9))
    # 2026-03-02 (Mon) and 2026-03-05 (Thu) share the week starting Sunday 2026-03-01
    await _set(memory_storage, session, catalog["push_ups"], logged_at=_at(2, 8), reps=10)
    await _set(memory_storage, session, catalog["push_ups"], logged_at=_at(5, 8), reps=15)
    await _set(memory_storage, session, catalog["push_ups"], logged_at=_at(8, 8), reps=20)
    await _set(memory_storage, session, catalog["bench"], logged_at=_at(5, 9), reps=5, weight=200)

    series = await AnalyticsService.get_exercise_timeseries(memory_storage, "alice", catalog["push_ups"].id, "week")

    assert series == [
        {"date": "2026-03-01", "max_value": 15, "total_volume": 25, "set_count": 2},
        {"date": "2026-03-08", "max_value": 20, "total_volume": 20, "set_count": 1},
    ]


@pytest.mark.asyncio
async def test_day_buckets_are_sparse_and_ascending(memory_storage, catalog):
    session = await _session(memory_storage, "alice", _at(1, 8), _at(1, 9))
    await _set(memory_storage, session, catalog["run"], logged_at=_at(6, 7), distance_meters=5000)
    await _set(memory_storage, session, catalog["run"], logged_at=_at(2, 7), distance_meters=3000)
    await _set(memory_storage, session, catalog["run"], logged_at=_at(2, 18), distance_meters=2000)
    await _set(memory_storage, session, catalog["run"], logged_at=_at(4, 7), note="forgot the watch")

    series = await AnalyticsService.get_exercise_timeseries(memory_storage, "alice", catalog["run"].id, "day")

    assert [point["date"] for point in series] == ["2026-03-02", "2026-03-06"]
    assert series[0]["max_value"] == 3000
    assert series[0]["total_volume"] == 5000
    assert series[0]["set_count"] == 2


@pytest.mark.asyncio
async def test_timeseries_for_unknown_exercise(memory_storage):
    with pytest.raises(NotFoundError):
        await AnalyticsService.get_exercise_timeseries(memory_storage, "alice", uuid.uuid4(), "day")


@pytest.mark.asyncio
async def test_personal_records_keep_the_first_of_equal_values(memory_storage, catalog):
    session = await _session(memory_storage, "alice", _at(1, 8), _at(1, 9))
    await _set(memory_storage, session, catalog["bench"], logged_at=_at(1, 8, 10), reps=5, weight=100)
    first_best = await _set(memory_storage, session, catalog["bench"], logged_at=_at(1, 8, 20), reps=3, weight=120)
    await _set(memory_storage, session, catalog["bench"], logged_at=_at(1, 8, 30), reps=1, weight=120)
    await _set(memory_storage, session, catalog["bench"], logged_at=_at(1, 8, 40), reps=12)
    push = await _set(memory_storage, session, catalog["push_ups"], logged_at=_at(1, 8, 50), reps=20)

    bob_session = await _session(memory_storage, "bob", _at(1, 8))
    await _set(memory_storage, bob_session, catalog["bench"], reps=1, weight=300)

    records = await AnalyticsService.get_personal_records(memory_storage, "alice")

    assert [r["exercise_name"] for r in records] == ["Bench Press", "Push Ups"]
    assert records[0]["value"] == 120
    assert records[0]["set_id"] == str(first_best.id)
    assert records[0]["date"] == _at(1, 8, 20).isoformat()
    assert records[1]["value"] == 20
    assert records[1]["set_id"] == str(push.id)


@pytest.mark.asyncio
async def test_analytics_routes(client: AsyncClient, alice_headers, exercises):
    start = await client.post(f"{API}/workouts/sessions", json={}, headers=alice_headers)
    session_id = start.json()["data"]["id"]
    await client.post(
        f"{API}/workouts/sessions/{session_id}/sets",
        json={"exercise_id": str(exercises["Push Ups"].id), "reps": 12},
        headers=alice_headers,
    )

    missing = await client.get(f"{API}/users/alice/progress", headers=alice_headers)
    assert missing.status_code == 400

    unknown = await client.get(
        f"{API}/users/alice/progress", params={"exerciseId": str(uuid.uuid4())}, headers=alice_headers
    )
    assert unknown.status_code == 404

    progress = await client.get(
        f"{API}/users/alice/progress",
        params={"exerciseId": str(exercises["Push Ups"].id), "granularity": "week"},
        headers=alice_headers,
    )
    assert progress.status_code == 200
    assert progress.json()["data"][0]["max_value"] == 12

    prs = await client.get(f"{API}/users/alice/prs", headers=alice_headers)
    assert prs.json()["data"][0]["exercise_name"] == "Push Ups"

    today = await client.get(f"{API}/users/alice/today-stats", headers=alice_headers)
    assert today.status_code == 200
    assert today.json()["data"]["total_sets"] == 1
    assert today.json()["data"]["exercise_count"] == 1
