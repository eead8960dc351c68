"""Workout session and set lifecycle.

Every mutation goes through the ownership guard before any effect, and every
invariant (temporal order, immutable keys, references) is checked here before the
storage backend is asked to write anything.
"""
import logging
import uuid
from datetime import datetime

from fittrack.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ReferentialError, ValidationError
from fittrack.models import WorkoutSession, WorkoutSet
from fittrack.services.fields import CLEARED, UNSET, FieldState, SessionPatch, SetPatch, resolve, to_value
from fittrack.services.timezone_service import as_utc, utcnow
from fittrack.storage import ActiveSessionExists, Storage

logger = logging.getLogger(__name__)

NUMERIC_SET_FIELDS = ("reps", "weight", "duration_sec", "distance_meters")


def ensure_session_owner(session: WorkoutSession, user_id: str) -> None:
    if session.user_id != user_id:
        raise ForbiddenError("You can only modify your own workout sessions")


def validate_time_order(started_at: datetime | None, ended_at: datetime | None) -> None:
    if started_at is not None and ended_at is not None and as_utc(ended_at) < as_utc(started_at):
        raise ValidationError("end time cannot precede start time")


class WorkoutService:
    @staticmethod
    async def _get_session_or_404(storage: Storage, session_id: uuid.UUID) -> WorkoutSession:
        session = await storage.get_session(session_id)
        if not session:
            raise NotFoundError("Workout session not found")
        return session

    @staticmethod
    async def _owned_session(storage: Storage, session_id: uuid.UUID, user_id: str) -> WorkoutSession:
        session = await WorkoutService._get_session_or_404(storage, session_id)
        ensure_session_owner(session, user_id)
        return session

    @staticmethod
    async def _owned_set(storage: Storage, set_id: uuid.UUID, user_id: str) -> WorkoutSet:
        workout_set = await storage.get_set(set_id)
        if not workout_set:
            raise NotFoundError("Workout set not found")
        # Ownership is transitive through the set's session
        session = await storage.get_session(workout_set.session_id)
        if not session:
            raise NotFoundError("Workout session not found")
        ensure_session_owner(session, user_id)
        return workout_set

    @staticmethod
    async def _require_exercise(storage: Storage, exercise_id: uuid.UUID) -> None:
        if await storage.get_exercise(exercise_id) is None:
            raise ReferentialError("exercise does not exist")

    # Sessions
    @staticmethod
    async def start_session(storage: Storage, user_id: str, note: str | None = None) -> tuple[WorkoutSession, bool]:
        """Return the user's active session, creating one if there is none.

        The second item is True when a new session was created.
        """
        active = await storage.get_active_session(user_id)
        if active:
            logger.info("Reusing active session %s for user %s", active.id, user_id)
            return active, False
        try:
            session = await storage.create_session(user_id, note=note, started_at=utcnow())
        except ActiveSessionExists:
            # Lost a race with a concurrent start; hand back the winner's session
            active = await storage.get_active_session(user_id)
            if active is None:
                raise ConflictError("Could not start a workout session, please retry")
            logger.info("Concurrent start for user %s resolved to session %s", user_id, active.id)
            return active, False
        logger.info("Started session %s for user %s", session.id, user_id)
        return session, True

    @staticmethod
    async def get_active_session(storage: Storage, user_id: str) -> WorkoutSession | None:
        return await storage.get_active_session(user_id)

    @staticmethod
    async def list_sessions(
        storage: Storage,
        user_id: str,
        *,
        limit: int = 50,
        before: datetime | None = None,
        after: datetime | None = None,
    ) -> list[WorkoutSession]:
        return await storage.list_sessions(
            user_id,
            limit=limit,
            before=as_utc(before) if before else None,
            after=as_utc(after) if after else None,
        )

    @staticmethod
    async def get_session_detail(storage: Storage, session_id: uuid.UUID) -> tuple[WorkoutSession, list[WorkoutSet]]:
        session = await WorkoutService._get_session_or_404(storage, session_id)
        return session, await storage.list_sets_by_session(session.id)

    @staticmethod
    async def end_session(storage: Storage, session_id: uuid.UUID, user_id: str) -> WorkoutSession:
        session = await WorkoutService._owned_session(storage, session_id, user_id)
        if session.ended_at is not None:
            return session
        now = utcnow()
        validate_time_order(session.started_at, now)
        session.ended_at = now
        session = await storage.save_session(session)
        logger.info("Ended session %s for user %s", session.id, user_id)
        return session

    @staticmethod
    async def update_session(
        storage: Storage,
        session_id: uuid.UUID,
        user_id: str,
        patch: SessionPatch,
    ) -> WorkoutSession:
        if patch.user_id is not UNSET:
            raise ValidationError("user_id cannot be changed")
        if patch.started_at is CLEARED:
            raise ValidationError("started_at cannot be cleared")

        session = await WorkoutService._owned_session(storage, session_id, user_id)
        started_at = resolve(session.started_at, patch.started_at)
        ended_at = resolve(session.ended_at, patch.ended_at)
        # Validate the resulting pair, including the field that was not sent
        validate_time_order(started_at, ended_at)

        if ended_at is None and session.ended_at is not None:
            active = await storage.get_active_session(user_id)
            if active and active.id != session.id:
                raise ConflictError("Another workout session is already active")

        session.note = resolve(session.note, patch.note)
        session.started_at = as_utc(started_at)
        session.ended_at = as_utc(ended_at) if ended_at else None
        try:
            return await storage.save_session(session)
        except ActiveSessionExists:
            raise ConflictError("Another workout session is already active")

    @staticmethod
    async def delete_session(storage: Storage, session_id: uuid.UUID, user_id: str) -> None:
        session = await WorkoutService._owned_session(storage, session_id, user_id)
        await storage.delete_session(session.id)
        logger.info("Deleted session %s and its sets for user %s", session.id, user_id)

    # Sets
    @staticmethod
    async def add_set(storage: Storage, session_id: uuid.UUID, user_id: str, patch: SetPatch) -> WorkoutSet:
        if isinstance(patch.exercise_id, FieldState):
            raise ValidationError("exercise_id is required")
        session = await storage.get_session(session_id)
        if not session:
            raise NotFoundError("session does not exist")
        ensure_session_owner(session, user_id)
        await WorkoutService._require_exercise(storage, patch.exercise_id)

        return await storage.create_set(
            session.id,
            patch.exercise_id,
            reps=to_value(patch.reps),
            weight=to_value(patch.weight),
            duration_sec=to_value(patch.duration_sec),
            distance_meters=to_value(patch.distance_meters),
            note=to_value(patch.note),
        )

    @staticmethod
    async def update_set(storage: Storage, set_id: uuid.UUID, user_id: str, patch: SetPatch) -> WorkoutSet:
        if patch.session_id is not UNSET:
            raise ValidationError("session_id cannot be changed")
        if patch.exercise_id is CLEARED:
            raise ValidationError("exercise_id cannot be cleared")

        workout_set = await WorkoutService._owned_set(storage, set_id, user_id)
        if patch.exercise_id is not UNSET:
            await WorkoutService._require_exercise(storage, patch.exercise_id)
            workout_set.exercise_id = patch.exercise_id

        for name in (*NUMERIC_SET_FIELDS, "note"):
            setattr(workout_set, name, resolve(getattr(workout_set, name), getattr(patch, name)))
        return await storage.save_set(workout_set)

    @staticmethod
    async def delete_set(storage: Storage, set_id: uuid.UUID, user_id: str) -> None:
        workout_set = await WorkoutService._owned_set(storage, set_id, user_id)
        await storage.delete_set(workout_set.id)
