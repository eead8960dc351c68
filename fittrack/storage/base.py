from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from fittrack.models import (
    Challenge,
    ChallengeEntry,
    ChallengeStatus,
    Exercise,
    MetricType,
    User,
    WorkoutSession,
    WorkoutSet,
)


class ActiveSessionExists(Exception):
    """Raised by a storage backend when a write would leave a user with two active sessions."""

    def __init__(self, user_id: str):
        super().__init__(f"user {user_id} already has an active session")
        self.user_id = user_id


class Storage(ABC):
    """Persistence contract for the workout, exercise, user and challenge tables.

    Backends return mapped model instances. Writers are expected to have validated
    their input already; backends only enforce what the schema enforces (uniqueness,
    the one-active-session rule, cascade deletes).
    """

    # Users
    @abstractmethod
    async def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    async def upsert_user(self, user_id: str, *, username: str, name: str) -> User:
        """Return the user, creating it on first sight. Existing profiles are left untouched."""

    @abstractmethod
    async def save_user(self, user: User) -> User: ...

    @abstractmethod
    async def list_users(self) -> list[User]: ...

    # Exercises
    @abstractmethod
    async def create_exercise(self, *, name: str, metric_type: MetricType, unit: str) -> Exercise: ...

    @abstractmethod
    async def get_exercise(self, exercise_id: uuid.UUID) -> Exercise | None: ...

    @abstractmethod
    async def get_exercise_by_name(self, name: str) -> Exercise | None: ...

    @abstractmethod
    async def list_exercises(self) -> list[Exercise]: ...

    # Sessions
    @abstractmethod
    async def create_session(self, user_id: str, *, note: str | None, started_at: datetime) -> WorkoutSession:
        """Insert an active session. Raises ActiveSessionExists if the user already has one."""

    @abstractmethod
    async def get_session(self, session_id: uuid.UUID) -> WorkoutSession | None: ...

    @abstractmethod
    async def get_active_session(self, user_id: str) -> WorkoutSession | None: ...

    @abstractmethod
    async def list_sessions(
        self,
        user_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
        after: datetime | None = None,
    ) -> list[WorkoutSession]:
        """Sessions by start time, newest first; ``before``/``after`` are exclusive bounds."""

    @abstractmethod
    async def list_sessions_started_between(self, user_id: str, start: datetime, end: datetime) -> list[WorkoutSession]:
        """Sessions with start <= started_at < end, oldest first."""

    @abstractmethod
    async def save_session(self, session: WorkoutSession) -> WorkoutSession:
        """Persist changed fields. Raises ActiveSessionExists when reopening collides."""

    @abstractmethod
    async def delete_session(self, session_id: uuid.UUID) -> None:
        """Delete the session and all of its sets in one atomic step."""

    # Sets
    @abstractmethod
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
    ) -> WorkoutSet: ...

    @abstractmethod
    async def get_set(self, set_id: uuid.UUID) -> WorkoutSet | None: ...

    @abstractmethod
    async def list_sets_by_session(self, session_id: uuid.UUID) -> list[WorkoutSet]:
        """Sets of one session in creation order."""

    @abstractmethod
    async def list_sets_for_sessions(self, session_ids: list[uuid.UUID]) -> list[WorkoutSet]: ...

    @abstractmethod
    async def list_sets_for_user(self, user_id: str, *, exercise_id: uuid.UUID | None = None) -> list[WorkoutSet]:
        """Every set in the user's sessions, optionally for one exercise, in creation order."""

    @abstractmethod
    async def save_set(self, workout_set: WorkoutSet) -> WorkoutSet: ...

    @abstractmethod
    async def delete_set(self, set_id: uuid.UUID) -> None: ...

    # Challenges
    @abstractmethod
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
    ) -> Challenge: ...

    @abstractmethod
    async def get_challenge(self, challenge_id: uuid.UUID) -> Challenge | None: ...

    @abstractmethod
    async def list_challenges(
        self,
        *,
        status: ChallengeStatus | None = None,
        user_id: str | None = None,
    ) -> list[Challenge]:
        """Newest first. ``user_id`` restricts to challenges the user participates in."""

    @abstractmethod
    async def save_challenge(self, challenge: Challenge) -> Challenge: ...

    @abstractmethod
    async def add_participants(self, challenge_id: uuid.UUID, user_ids: list[str]) -> list[str]:
        """Join users to a challenge, skipping those already in it. Returns the ids added."""

    @abstractmethod
    async def list_participants(self, challenge_id: uuid.UUID) -> list[User]:
        """Participants ordered by username."""

    @abstractmethod
    async def is_participant(self, challenge_id: uuid.UUID, user_id: str) -> bool: ...

    @abstractmethod
    async def create_entry(self, challenge_id: uuid.UUID, user_id: str, *, value: int, note: str | None) -> ChallengeEntry: ...

    @abstractmethod
    async def get_entry(self, entry_id: uuid.UUID) -> ChallengeEntry | None: ...

    @abstractmethod
    async def list_entries(self, challenge_id: uuid.UUID) -> list[ChallengeEntry]:
        """Entries newest first."""

    @abstractmethod
    async def delete_entry(self, entry_id: uuid.UUID) -> None: ...
