import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from httpx import ASGITransport

from fittrack.auth.security import create_access_token
from fittrack.client import (
    ActiveWorkoutCoordinator,
    ApiError,
    FileSignalChannel,
    FitTrackClient,
    LocalBroadcastChannel,
    NoActiveWorkout,
)
from fittrack.main import app
from fittrack.models import Exercise, MetricType, User

STARTED = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


async def _eventually(predicate, timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class FakeClient:
    """Server stand-in holding one user's sessions in memory."""

    def __init__(self, session: Optional[Dict[str, Any]] = None, sets: Optional[List[Dict[str, Any]]] = None):
        self.session = session
        self.sets = sets or []
        self.fetches = 0
        self.failure: Optional[ApiError] = None

    def _maybe_fail(self) -> None:
        if self.failure:
            failure, self.failure = self.failure, None
            raise failure

    async def get_active_session(self, user_id):
        self.fetches += 1
        return dict(self.session) if self.session else None

    async def get_session(self, session_id):
        return {**self.session, "sets": [dict(s) for s in self.sets]}

    async def start_session(self, note=None):
        self._maybe_fail()
        if not self.session:
            self.session = {"id": "s1", "started_at": STARTED.isoformat(), "ended_at": None, "note": note}
        return dict(self.session)

    async def end_session(self, session_id):
        self._maybe_fail()
        ended = {**self.session, "ended_at": (STARTED + timedelta(hours=1)).isoformat()}
        self.session, self.sets = None, []
        return ended

    async def add_set(self, session_id, exercise_id, **fields):
        self._maybe_fail()
        created = {"id": f"set-{len(self.sets) + 1}", "exercise_id": exercise_id, **fields}
        self.sets.append(created)
        return dict(created)

    async def update_set(self, set_id, **fields):
        self._maybe_fail()
        for workout_set in self.sets:
            if workout_set["id"] == set_id:
                workout_set.update(fields)
                return dict(workout_set)
        raise ApiError(404, "set does not exist")

    async def delete_set(self, set_id):
        self._maybe_fail()
        self.sets = [s for s in self.sets if s["id"] != set_id]


def _coordinator(client, channel=None, **kwargs) -> ActiveWorkoutCoordinator:
    kwargs.setdefault("poll_interval", 60)
    return ActiveWorkoutCoordinator(client, "alice", channel or LocalBroadcastChannel(), **kwargs)


@pytest.mark.asyncio
async def test_elapsed_follows_the_server_start_time():
    now = {"value": STARTED + timedelta(seconds=65)}
    client = FakeClient(session={"id": "s1", "started_at": "2026-03-10T08:00:00Z", "ended_at": None, "note": None})

    async with _coordinator(client, tick_interval=0.01, clock=lambda: now["value"]) as coordinator:
        assert coordinator.is_loading is False
        assert coordinator.active_session["id"] == "s1"
        assert coordinator.elapsed == 65

        now["value"] = STARTED + timedelta(hours=1, seconds=2)
        await _eventually(lambda: coordinator.elapsed == 3602)

        await coordinator.end_workout()
        assert coordinator.active_session is None
        assert coordinator.elapsed == 0


@pytest.mark.asyncio
async def test_mutations_update_local_state():
    client = FakeClient()
    async with _coordinator(client, clock=lambda: STARTED) as coordinator:
        assert coordinator.active_session is None
        with pytest.raises(NoActiveWorkout):
            await coordinator.add_set("push-ups", reps=10)

        await coordinator.start_workout(note="legs")
        created = await coordinator.add_set("push-ups", reps=10)
        await coordinator.add_set("plank", duration_sec=60)
        await coordinator.update_set(created["id"], reps=0)
        assert [s.get("reps") for s in coordinator.sets] == [0, None]

        await coordinator.delete_set(created["id"])
        assert [s["id"] for s in coordinator.sets] == ["set-2"]

        # Starting again hands back the same session and keeps its sets
        await coordinator.start_workout()
        assert [s["id"] for s in coordinator.sets] == ["set-2"]


@pytest.mark.asyncio
async def test_failed_mutation_refreshes_and_reraises():
    client = FakeClient(
        session={"id": "s1", "started_at": STARTED.isoformat(), "ended_at": None, "note": None},
        sets=[{"id": "set-1", "exercise_id": "push-ups", "reps": 5}],
    )
    async with _coordinator(client, clock=lambda: STARTED) as coordinator:
        fetches = client.fetches
        # Another device logged a set the coordinator has not seen yet
        client.sets.append({"id": "set-2", "exercise_id": "plank", "duration_sec": 30})
        client.failure = ApiError(404, "exercise does not exist")

        with pytest.raises(ApiError):
            await coordinator.add_set("missing", reps=1)

        assert client.fetches == fetches + 1
        assert coordinator.last_error == "API error 404: exercise does not exist"
        assert [s["id"] for s in coordinator.sets] == ["set-1", "set-2"]

        await coordinator.add_set("push-ups", reps=3)
        assert coordinator.last_error is None


class SlowReadClient(FakeClient):
    """Takes its active-session snapshot, then waits for ``gate`` before answering."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate: Optional[asyncio.Event] = None
        self.waiting = 0

    async def get_active_session(self, user_id):
        snapshot = await super().get_active_session(user_id)
        if self.gate is not None and not self.gate.is_set():
            self.waiting += 1
            await self.gate.wait()
        return snapshot


@pytest.mark.asyncio
async def test_refresh_started_before_a_mutation_does_not_undo_it():
    client = SlowReadClient()
    async with _coordinator(client, clock=lambda: STARTED) as coordinator:
        client.gate = asyncio.Event()
        poll = asyncio.create_task(coordinator.refresh())
        await _eventually(lambda: client.waiting == 1)

        session = await coordinator.start_workout()
        client.gate.set()
        await poll

        assert coordinator.active_session["id"] == session["id"]
        assert client.session["id"] == session["id"]


@pytest.mark.asyncio
async def test_local_channel_skips_own_signals():
    channel = LocalBroadcastChannel()
    mine = channel.subscribe("tab-a")

    await channel.publish("tab-a")
    await channel.publish("tab-b")

    signal = await asyncio.wait_for(mine.__anext__(), 1)
    assert signal.source == "tab-b"

    mine.close()
    await channel.publish("tab-b")
    assert mine.queue.empty()


@pytest.mark.asyncio
async def test_file_channel_delivers_signals_across_instances(tmp_path):
    path = str(tmp_path / "signals" / "active-workout.json")
    writer = FileSignalChannel(path, poll_interval=0.01)
    reader = FileSignalChannel(path, poll_interval=0.01)

    await writer.publish("tab-a")
    subscription = reader.subscribe("tab-b")
    # Markers written before subscribing are not replayed
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(subscription.__anext__(), 0.1)

    await reader.publish("tab-b")
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(subscription.__anext__(), 0.1)

    await writer.publish("tab-a")
    signal = await asyncio.wait_for(subscription.__anext__(), 1)
    assert signal.source == "tab-a"
    assert reader.read_marker()["source"] == "tab-a"


@pytest.mark.asyncio
async def test_file_channel_ignores_a_corrupt_marker(tmp_path):
    path = tmp_path / "marker.json"
    path.write_text("{not json", encoding="utf-8")
    assert FileSignalChannel(str(path)).read_marker() is None
    assert FileSignalChannel(str(tmp_path / "missing.json")).read_marker() is None


@pytest.fixture
async def api_exercise(file_sessionmaker):
    async with file_sessionmaker() as session:
        exercise = Exercise(name="Push Ups", metric_type=MetricType.COUNT, unit="reps")
        session.add_all([exercise, User(id="alice", username="alice", name="Alice")])
        await session.commit()
    return str(exercise.id)


def _http_client() -> FitTrackClient:
    token = create_access_token("alice", username="alice", name="Alice")
    return FitTrackClient("http://test", token=token, transport=ASGITransport(app=app))


@pytest.mark.asyncio
async def test_two_clients_stay_in_sync(api_exercise):
    channel = LocalBroadcastChannel()
    async with _http_client() as first_client, _http_client() as second_client:
        async with _coordinator(first_client, channel, source="tab-a") as first, \
                _coordinator(second_client, channel, source="tab-b") as second:
            assert first.active_session is None
            assert second.active_session is None

            session = await first.start_workout(note="push day")
            await _eventually(lambda: second.active_session is not None)
            assert second.active_session["id"] == session["id"]

            created = await first.add_set(api_exercise, reps=0)
            assert created["reps"] == 0
            await _eventually(lambda: len(second.sets) == 1)
            assert second.sets[0]["id"] == created["id"]

            await second.update_set(created["id"], reps=12)
            await _eventually(lambda: first.sets and first.sets[0]["reps"] == 12)

            with pytest.raises(ApiError) as excinfo:
                await second.add_set("00000000-0000-0000-0000-000000000000", reps=1)
            assert excinfo.value.status_code == 404
            assert second.last_error is not None

            await second.end_workout()
            await _eventually(lambda: first.active_session is None)
            assert first.sets == []
