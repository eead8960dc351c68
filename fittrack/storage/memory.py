from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone

from fittrack.models import (
    Challenge,
    ChallengeEntry,
    ChallengeParticipant,
    ChallengeStatus,
    Exercise,
    MetricType,
    User,
    WorkoutSession,
    WorkoutSet,
)
from fittrack.services.timezone_service import as_utc
from fittrack.storage.base import ActiveSessionExists, Storage


def _copy(entity):
    """Detached copy of a mapped row, so callers never mutate stored state in place."""
    return type(entity)(**{column.key: getattr(entity, column.key) for column in entity.__table__.columns})


def _copies(entities) -> list:
    return [_copy(entity) for entity in entities]


class MemoryStorage(Storage):
    """In-process storage keyed by id. Meant for tests and local experiments.

    Every listing sorts explicitly; nothing depends on dict iteration order.
    The active-session check-and-insert is serialized with an asyncio lock.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.exercises: dict[uuid.UUID, Exercise] = {}
        self.sessions: dict[uuid.UUID, WorkoutSession] = {}
        self.sets: dict[uuid.UUID, WorkoutSet] = {}
        self.challenges: dict[uuid.UUID, Challenge] = {}
        self.participants: dict[uuid.UUID, ChallengeParticipant] = {}
        self.entries: dict[uuid.UUID, ChallengeEntry] = {}
        self._session_lock = asyncio.Lock()

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # Users
    async def get_user(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return _copy(user) if user else None

    async def get_user_by_username(self, username: str) -> User | None:
        for user in self.users.values():
            if user.username == username:
                return _copy(user)
        return None

    async def upsert_user(self, user_id: str, *, username: str, name: str) -> User:
        if user_id not in self.users:
            self.users[user_id] = User(id=user_id, username=username, name=name)
        return _copy(self.users[user_id])

    async def save_user(self, user: User) -> User:
        self.users[user.id] = _copy(user)
        return user

    async def list_users(self) -> list[User]:
        return _copies(sorted(self.users.values(), key=lambda u: u.username))

    # Exercises
    async def create_exercise(self, *, name: str, metric_type: MetricType, unit: str) -> Exercise:
        exercise = Exercise(id=uuid.uuid4(), name=name, metric_type=metric_type, unit=unit)
        self.exercises[exercise.id] = exercise
        return _copy(exercise)

    async def get_exercise(self, exercise_id: uuid.UUID) -> Exercise | None:
        exercise = self.exercises.get(exercise_id)
        return _copy(exercise) if exercise else None

    async def get_exercise_by_name(self, name: str) -> Exercise | None:
        for exercise in self.exercises.values():
            if exercise.name == name:
                return _copy(exercise)
        return None

    async def list_exercises(self) -> list[Exercise]:
        return _copies(sorted(self.exercises.values(), key=lambda e: e.name))

    # Sessions
    def _active_for(self, user_id: str, *, exclude: uuid.UUID | None = None) -> WorkoutSession | None:
        for session in self.sessions.values():
            if session.user_id == user_id and session.ended_at is None and session.id != exclude:
                return session
        return None

    async def create_session(self, user_id: str, *, note: str | None, started_at: datetime) -> WorkoutSession:
        async with self._session_lock:
            if self._active_for(user_id) is not None:
                raise ActiveSessionExists(user_id)
            # Yield while holding the lock; a racing creator has to wait for it
            await asyncio.sleep(0)
            session = WorkoutSession(id=uuid.uuid4(), user_id=user_id, note=note, started_at=started_at, ended_at=None)
            self.sessions[session.id] = session
            return _copy(session)

    async def get_session(self, session_id: uuid.UUID) -> WorkoutSession | None:
        session = self.sessions.get(session_id)
        return _copy(session) if session else None

    async def get_active_session(self, user_id: str) -> WorkoutSession | None:
        session = self._active_for(user_id)
        return _copy(session) if session else None

    async def list_sessions(
        self,
        user_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
        after: datetime | None = None,
    ) -> list[WorkoutSession]:
        rows = [s for s in self.sessions.values() if s.user_id == user_id]
        if before is not None:
            rows = [s for s in rows if as_utc(s.started_at) < as_utc(before)]
        if after is not None:
            rows = [s for s in rows if as_utc(s.started_at) > as_utc(after)]
        rows.sort(key=lambda s: (as_utc(s.started_at), str(s.id)), reverse=True)
        return _copies(rows[:limit])

    async def list_sessions_started_between(self, user_id: str, start: datetime, end: datetime) -> list[WorkoutSession]:
        rows = [
            s for s in self.sessions.values()
            if s.user_id == user_id and as_utc(start) <= as_utc(s.started_at) < as_utc(end)
        ]
        rows.sort(key=lambda s: (as_utc(s.started_at), str(s.id)))
        return _copies(rows)

    async def save_session(self, session: WorkoutSession) -> WorkoutSession:
        async with self._session_lock:
            if session.ended_at is None and self._active_for(session.user_id, exclude=session.id) is not None:
                raise ActiveSessionExists(session.user_id)
            self.sessions[session.id] = _copy(session)
            return session

    async def delete_session(self, session_id: uuid.UUID) -> None:
        # Plain dict operations cannot fail halfway, so the cascade is atomic here
        for set_id in [s.id for s in self.sets.values() if s.session_id == session_id]:
            del self.sets[set_id]
        self.sessions.pop(session_id, None)

    # Sets
    async def create_set(
        self,
        session_id: uuid.UUID,
        exercise_id: uuid.UUID,
        *,
        reps: int | None,
        weight: float | None,
        duration_sec: int | None,
        distance_meters: float | None,
        note: str | None,
    ) -> WorkoutSet:
        workout_set = WorkoutSet(
            id=uuid.uuid4(),
            session_id=session_id,
            exercise_id=exercise_id,
            reps=reps,
            weight=weight,
            duration_sec=duration_sec,
            distance_meters=distance_meters,
            note=note,
            created_at=self._now(),
        )
        self.sets[workout_set.id] = workout_set
        return _copy(workout_set)

    async def get_set(self, set_id: uuid.UUID) -> WorkoutSet | None:
        workout_set = self.sets.get(set_id)
        return _copy(workout_set) if workout_set else None

    @staticmethod
    def _creation_order(rows: list[WorkoutSet]) -> list[WorkoutSet]:
        return sorted(rows, key=lambda s: (as_utc(s.created_at), str(s.id)))

    async def list_sets_by_session(self, session_id: uuid.UUID) -> list[WorkoutSet]:
        return await self.list_sets_for_sessions([session_id])

    async def list_sets_for_sessions(self, session_ids: list[uuid.UUID]) -> list[WorkoutSet]:
        wanted = set(session_ids)
        return _copies(self._creation_order([s for s in self.sets.values() if s.session_id in wanted]))

    async def list_sets_for_user(self, user_id: str, *, exercise_id: uuid.UUID | None = None) -> list[WorkoutSet]:
        owned = {s.id for s in self.sessions.values() if s.user_id == user_id}
        rows = [
            s for s in self.sets.values()
            if s.session_id in owned and (exercise_id is None or s.exercise_id == exercise_id)
        ]
        return _copies(self._creation_order(rows))

    async def save_set(self, workout_set: WorkoutSet) -> WorkoutSet:
        self.sets[workout_set.id] = _copy(workout_set)
        return workout_set

    async def delete_set(self, set_id: uuid.UUID) -> None:
        self.sets.pop(set_id, None)

    # Challenges
    async def create_challenge(
        self,
        *,
        title: str,
        activity: str,
        metric: MetricType,
        unit: str,
        start_at: datetime,
        end_at: datetime,
        created_by: str,
        status: ChallengeStatus,
    ) -> Challenge:
        challenge = Challenge(
            id=uuid.uuid4(),
            title=title,
            activity=activity,
            metric=metric,
            unit=unit,
            start_at=start_at,
            end_at=end_at,
            created_by=created_by,
            status=status,
            created_at=self._now(),
        )
        self.challenges[challenge.id] = challenge
        return _copy(challenge)

    async def get_challenge(self, challenge_id: uuid.UUID) -> Challenge | None:
        challenge = self.challenges.get(challenge_id)
        return _copy(challenge) if challenge else None

    async def list_challenges(
        self,
        *,
        status: ChallengeStatus | None = None,
        user_id: str | None = None,
    ) -> list[Challenge]:
        rows = list(self.challenges.values())
        if status is not None:
            rows = [c for c in rows if c.status == status]
        if user_id is not None:
            joined = {p.challenge_id for p in self.participants.values() if p.user_id == user_id}
            rows = [c for c in rows if c.id in joined]
        rows.sort(key=lambda c: (as_utc(c.created_at), str(c.id)), reverse=True)
        return _copies(rows)

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        self.challenges[challenge.id] = _copy(challenge)
        return challenge

    async def add_participants(self, challenge_id: uuid.UUID, user_ids: list[str]) -> list[str]:
        joined = {p.user_id for p in self.participants.values() if p.challenge_id == challenge_id}
        added: list[str] = []
        for user_id in user_ids:
            if user_id in joined:
                continue
            joined.add(user_id)
            participant = ChallengeParticipant(
                id=uuid.uuid4(), challenge_id=challenge_id, user_id=user_id, joined_at=self._now()
            )
            self.participants[participant.id] = participant
            added.append(user_id)
        return added

    async def list_participants(self, challenge_id: uuid.UUID) -> list[User]:
        users = [
            self.users[p.user_id]
            for p in self.participants.values()
            if p.challenge_id == challenge_id and p.user_id in self.users
        ]
        return _copies(sorted(users, key=lambda u: u.username))

    async def is_participant(self, challenge_id: uuid.UUID, user_id: str) -> bool:
        return any(p.challenge_id == challenge_id and p.user_id == user_id for p in self.participants.values())

    async def create_entry(self, challenge_id: uuid.UUID, user_id: str, *, value: int, note: str | None) -> ChallengeEntry:
        entry = ChallengeEntry(
            id=uuid.uuid4(), challenge_id=challenge_id, user_id=user_id, value=value, note=note, created_at=self._now()
        )
        self.entries[entry.id] = entry
        return _copy(entry)

    async def get_entry(self, entry_id: uuid.UUID) -> ChallengeEntry | None:
        entry = self.entries.get(entry_id)
        return _copy(entry) if entry else None

    async def list_entries(self, challenge_id: uuid.UUID) -> list[ChallengeEntry]:
        rows = [e for e in self.entries.values() if e.challenge_id == challenge_id]
        rows.sort(key=lambda e: (as_utc(e.created_at), str(e.id)), reverse=True)
        return _copies(rows)

    async def delete_entry(self, entry_id: uuid.UUID) -> None:
        self.entries.pop(entry_id, None)
