from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
from fittrack.storage.base import ActiveSessionExists, Storage

logger = logging.getLogger(__name__)


class SqlStorage(Storage):
    """Storage backed by an SQLAlchemy AsyncSession; every write commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _add_and_commit(self, entity):
        self.db.add(entity)
        await self.db.commit()
        return entity

    # Users
    async def get_user(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def upsert_user(self, user_id: str, *, username: str, name: str) -> User:
        user = await self.get_user(user_id)
        if user:
            return user
        try:
            return await self._add_and_commit(User(id=user_id, username=username, name=name))
        except IntegrityError:
            await self.db.rollback()
            # Same id inserted by a concurrent request; a username clash propagates
            user = await self.get_user(user_id)
            if user is None:
                raise
            return user

    async def save_user(self, user: User) -> User:
        try:
            return await self._add_and_commit(user)
        except IntegrityError:
            await self.db.rollback()
            raise

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.username.asc()))
        return list(result.scalars().all())

    # Exercises
    async def create_exercise(self, *, name: str, metric_type: MetricType, unit: str) -> Exercise:
        return await self._add_and_commit(Exercise(id=uuid.uuid4(), name=name, metric_type=metric_type, unit=unit))

    async def get_exercise(self, exercise_id: uuid.UUID) -> Exercise | None:
        return await self.db.get(Exercise, exercise_id)

    async def get_exercise_by_name(self, name: str) -> Exercise | None:
        result = await self.db.execute(select(Exercise).where(Exercise.name == name))
        return result.scalar_one_or_none()

    async def list_exercises(self) -> list[Exercise]:
        result = await self.db.execute(select(Exercise).order_by(Exercise.name.asc()))
        return list(result.scalars().all())

    # Sessions
    async def create_session(self, user_id: str, *, note: str | None, started_at: datetime) -> WorkoutSession:
        session = WorkoutSession(id=uuid.uuid4(), user_id=user_id, note=note, started_at=started_at, ended_at=None)
        try:
            return await self._add_and_commit(session)
        except IntegrityError as exc:
            await self.db.rollback()
            if await self.get_active_session(user_id) is None:
                raise
            raise ActiveSessionExists(user_id) from exc

    async def get_session(self, session_id: uuid.UUID) -> WorkoutSession | None:
        return await self.db.get(WorkoutSession, session_id)

    async def get_active_session(self, user_id: str) -> WorkoutSession | None:
        stmt = select(WorkoutSession).where(
            WorkoutSession.user_id == user_id,
            WorkoutSession.ended_at.is_(None),
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_sessions(
        self,
        user_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
        after: datetime | None = None,
    ) -> list[WorkoutSession]:
        stmt = select(WorkoutSession).where(WorkoutSession.user_id == user_id)
        if before is not None:
            stmt = stmt.where(WorkoutSession.started_at < before)
        if after is not None:
            stmt = stmt.where(WorkoutSession.started_at > after)
        stmt = stmt.order_by(WorkoutSession.started_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_sessions_started_between(self, user_id: str, start: datetime, end: datetime) -> list[WorkoutSession]:
        stmt = (
            select(WorkoutSession)
            .where(
                WorkoutSession.user_id == user_id,
                WorkoutSession.started_at >= start,
                WorkoutSession.started_at < end,
            )
            .order_by(WorkoutSession.started_at.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def save_session(self, session: WorkoutSession) -> WorkoutSession:
        user_id = session.user_id
        try:
            return await self._add_and_commit(session)
        except IntegrityError as exc:
            await self.db.rollback()
            raise ActiveSessionExists(user_id) from exc

    async def delete_session(self, session_id: uuid.UUID) -> None:
        try:
            await self.db.execute(delete(WorkoutSet).where(WorkoutSet.session_id == session_id))
            await self.db.execute(delete(WorkoutSession).where(WorkoutSession.id == session_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception("Cascade delete of session %s rolled back", session_id)
            raise

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
        )
        return await self._add_and_commit(workout_set)

    async def get_set(self, set_id: uuid.UUID) -> WorkoutSet | None:
        return await self.db.get(WorkoutSet, set_id)

    async def list_sets_by_session(self, session_id: uuid.UUID) -> list[WorkoutSet]:
        return await self.list_sets_for_sessions([session_id])

    async def list_sets_for_sessions(self, session_ids: list[uuid.UUID]) -> list[WorkoutSet]:
        if not session_ids:
            return []
        stmt = (
            select(WorkoutSet)
            .where(WorkoutSet.session_id.in_(session_ids))
            .order_by(WorkoutSet.created_at.asc(), WorkoutSet.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_sets_for_user(self, user_id: str, *, exercise_id: uuid.UUID | None = None) -> list[WorkoutSet]:
        stmt = (
            select(WorkoutSet)
            .join(WorkoutSession, WorkoutSet.session_id == WorkoutSession.id)
            .where(WorkoutSession.user_id == user_id)
        )
        if exercise_id is not None:
            stmt = stmt.where(WorkoutSet.exercise_id == exercise_id)
        stmt = stmt.order_by(WorkoutSet.created_at.asc(), WorkoutSet.id.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def save_set(self, workout_set: WorkoutSet) -> WorkoutSet:
        return await self._add_and_commit(workout_set)

    async def delete_set(self, set_id: uuid.UUID) -> None:
        await self.db.execute(delete(WorkoutSet).where(WorkoutSet.id == set_id))
        await self.db.commit()

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
        )
        return await self._add_and_commit(challenge)

    async def get_challenge(self, challenge_id: uuid.UUID) -> Challenge | None:
        return await self.db.get(Challenge, challenge_id)

    async def list_challenges(
        self,
        *,
        status: ChallengeStatus | None = None,
        user_id: str | None = None,
    ) -> list[Challenge]:
        stmt = select(Challenge)
        if status is not None:
            stmt = stmt.where(Challenge.status == status)
        if user_id is not None:
            stmt = stmt.join(ChallengeParticipant, ChallengeParticipant.challenge_id == Challenge.id).where(
                ChallengeParticipant.user_id == user_id
            )
        stmt = stmt.order_by(Challenge.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        return await self._add_and_commit(challenge)

    async def add_participants(self, challenge_id: uuid.UUID, user_ids: list[str]) -> list[str]:
        existing = await self.db.execute(
            select(ChallengeParticipant.user_id).where(ChallengeParticipant.challenge_id == challenge_id)
        )
        joined = set(existing.scalars().all())
        added: list[str] = []
        for user_id in user_ids:
            if user_id in joined:
                continue
            joined.add(user_id)
            self.db.add(ChallengeParticipant(id=uuid.uuid4(), challenge_id=challenge_id, user_id=user_id))
            added.append(user_id)
        await self.db.commit()
        return added

    async def list_participants(self, challenge_id: uuid.UUID) -> list[User]:
        stmt = (
            select(User)
            .join(ChallengeParticipant, ChallengeParticipant.user_id == User.id)
            .where(ChallengeParticipant.challenge_id == challenge_id)
            .order_by(User.username.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def is_participant(self, challenge_id: uuid.UUID, user_id: str) -> bool:
        stmt = select(ChallengeParticipant.id).where(
            ChallengeParticipant.challenge_id == challenge_id,
            ChallengeParticipant.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def create_entry(self, challenge_id: uuid.UUID, user_id: str, *, value: int, note: str | None) -> ChallengeEntry:
        entry = ChallengeEntry(id=uuid.uuid4(), challenge_id=challenge_id, user_id=user_id, value=value, note=note)
        return await self._add_and_commit(entry)

    async def get_entry(self, entry_id: uuid.UUID) -> ChallengeEntry | None:
        return await self.db.get(ChallengeEntry, entry_id)

    async def list_entries(self, challenge_id: uuid.UUID) -> list[ChallengeEntry]:
        stmt = (
            select(ChallengeEntry)
            .where(ChallengeEntry.challenge_id == challenge_id)
            .order_by(ChallengeEntry.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_entry(self, entry_id: uuid.UUID) -> None:
        await self.db.execute(delete(ChallengeEntry).where(ChallengeEntry.id == entry_id))
        await self.db.commit()
