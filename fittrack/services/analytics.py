from datetime import date, datetime
from typing import Literal
import uuid

from fittrack.core.exceptions import NotFoundError
from fittrack.models import Exercise
from fittrack.services.metrics import measure, set_volume
from fittrack.services.timezone_service import as_utc, local_date, local_day_window, utcnow, week_start
from fittrack.storage import Storage

Granularity = Literal["day", "week"]


class AnalyticsService:
    @staticmethod
    async def _exercise_map(storage: Storage) -> dict[uuid.UUID, Exercise]:
        return {exercise.id: exercise for exercise in await storage.list_exercises()}

    @staticmethod
    async def get_personal_records(storage: Storage, user_id: str) -> list[dict]:
        """Best reading per exercise the user has logged, by the exercise's metric type."""
        exercises = await AnalyticsService._exercise_map(storage)
        records: dict[uuid.UUID, dict] = {}

        for workout_set in await storage.list_sets_for_user(user_id):
            exercise = exercises.get(workout_set.exercise_id)
            if exercise is None:
                continue
            reading = measure(exercise.metric_type, workout_set)
            if reading is None:
                continue
            current = records.get(exercise.id)
            # Only a strictly greater value replaces the standing record
            if current is None or reading.value > current["value"]:
                records[exercise.id] = {
                    "exercise_id": str(exercise.id),
                    "exercise_name": exercise.name,
                    "metric_type": exercise.metric_type.value,
                    "unit": exercise.unit,
                    "value": reading.value,
                    "set_id": str(workout_set.id),
                    "date": as_utc(workout_set.created_at).isoformat(),
                }

        return sorted(records.values(), key=lambda r: r["exercise_name"])

    @staticmethod
    async def get_exercise_timeseries(
        storage: Storage,
        user_id: str,
        exercise_id: uuid.UUID,
        granularity: Granularity = "day",
    ) -> list[dict]:
        exercise = await storage.get_exercise(exercise_id)
        if not exercise:
            raise NotFoundError("Exercise not found")

        buckets: dict[date, dict] = {}
        for workout_set in await storage.list_sets_for_user(user_id, exercise_id=exercise_id):
            reading = measure(exercise.metric_type, workout_set)
            if reading is None:
                continue
            day = local_date(workout_set.created_at)
            key = week_start(day) if granularity == "week" else day
            bucket = buckets.setdefault(key, {"max_value": reading.value, "total_volume": 0, "set_count": 0})
            bucket["max_value"] = max(bucket["max_value"], reading.value)
            bucket["total_volume"] += reading.value
            bucket["set_count"] += 1

        return [
            {"date": key.isoformat(), **buckets[key]}
            for key in sorted(buckets)
        ]

    @staticmethod
    async def get_today_stats(storage: Storage, user_id: str, now: datetime | None = None) -> dict:
        now = as_utc(now) if now else utcnow()
        start, end = local_day_window(now)
        sessions = await storage.list_sessions_started_between(user_id, start, end)
        sets = await storage.list_sets_for_sessions([s.id for s in sessions])
        exercises = await AnalyticsService._exercise_map(storage)

        total_volume = 0.0
        for workout_set in sets:
            exercise = exercises.get(workout_set.exercise_id)
            if exercise is not None:
                total_volume += set_volume(exercise.metric_type, workout_set)

        workout_minutes = 0
        for session in sessions:
            finished = as_utc(session.ended_at) if session.ended_at else now
            seconds = (finished - as_utc(session.started_at)).total_seconds()
            workout_minutes += round(max(seconds, 0) / 60)

        return {
            "total_sets": len(sets),
            "total_volume": total_volume,
            "workout_time": workout_minutes,
            "exercise_count": len({s.exercise_id for s in sets}),
        }
