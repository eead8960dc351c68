from datetime import datetime
from typing import Annotated, List, Literal
import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from fittrack.auth.dependencies import CurrentUser
from fittrack.core.exceptions import ValidationError
from fittrack.core.responses import StandardResponse
from fittrack.schemas import WorkoutSessionDetailResponse, WorkoutSessionResponse, WorkoutSetResponse
from fittrack.services.fields import SessionPatch, SetPatch
from fittrack.services.timezone_service import UtcDateTime
from fittrack.services.workout_service import WorkoutService
from fittrack.storage import Storage, get_storage

router = APIRouter()

StorageDep = Annotated[Storage, Depends(get_storage)]


class SessionStart(BaseModel):
    note: str | None = None


class SessionUpdate(BaseModel):
    # Fields left out of the body keep their stored values; explicit nulls clear them
    action: Literal["end"] | None = None
    note: str | None = None
    started_at: UtcDateTime | None = None
    ended_at: UtcDateTime | None = None
    user_id: str | None = None


class SetCreate(BaseModel):
    exercise_id: uuid.UUID
    reps: int | None = Field(None, ge=0)
    weight: float | None = Field(None, ge=0)
    duration_sec: int | None = Field(None, ge=0)
    distance_meters: float | None = Field(None, ge=0)
    note: str | None = None


class SetUpdate(BaseModel):
    session_id: uuid.UUID | None = None
    exercise_id: uuid.UUID | None = None
    reps: int | None = Field(None, ge=0)
    weight: float | None = Field(None, ge=0)
    duration_sec: int | None = Field(None, ge=0)
    distance_meters: float | None = Field(None, ge=0)
    note: str | None = None


@router.post("/sessions", response_model=StandardResponse[WorkoutSessionResponse])
async def start_session(
    current_user: CurrentUser,
    storage: StorageDep,
    data: SessionStart | None = None,
):
    """Start a workout, or hand back the one already in progress."""
    session, created = await WorkoutService.start_session(storage, current_user.id, note=data.note if data else None)
    return StandardResponse(
        message="Workout session started" if created else "Active workout session resumed",
        data=WorkoutSessionResponse.model_validate(session),
    )


@router.get("/sessions", response_model=StandardResponse[List[WorkoutSessionResponse]])
async def list_sessions(
    current_user: CurrentUser,
    storage: StorageDep,
    user_id: Annotated[str, Query(alias="userId")],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    before: datetime | None = None,
    after: datetime | None = None,
):
    sessions = await WorkoutService.list_sessions(storage, user_id, limit=limit, before=before, after=after)
    return StandardResponse(data=[WorkoutSessionResponse.model_validate(s) for s in sessions])


@router.get("/active-session", response_model=StandardResponse[WorkoutSessionResponse | None])
async def get_active_session(
    current_user: CurrentUser,
    storage: StorageDep,
    user_id: Annotated[str, Query(alias="userId")],
):
    session = await WorkoutService.get_active_session(storage, user_id)
    return StandardResponse(data=WorkoutSessionResponse.model_validate(session) if session else None)


@router.get("/sessions/{session_id}", response_model=StandardResponse[WorkoutSessionDetailResponse])
async def get_session(
    session_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    """Session with its sets in the order they were logged."""
    session, sets = await WorkoutService.get_session_detail(storage, session_id)
    detail = WorkoutSessionDetailResponse.model_validate(session)
    detail.sets = [WorkoutSetResponse.model_validate(s) for s in sets]
    return StandardResponse(data=detail)


@router.patch("/sessions/{session_id}", response_model=StandardResponse[WorkoutSessionResponse])
async def update_session(
    session_id: uuid.UUID,
    data: SessionUpdate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    """Edit a session, or end it with ``{"action": "end"}``."""
    if data.action == "end":
        if data.model_fields_set - {"action"}:
            raise ValidationError("action \"end\" cannot be combined with other fields")
        session = await WorkoutService.end_session(storage, session_id, current_user.id)
        return StandardResponse(message="Workout session ended", data=WorkoutSessionResponse.model_validate(session))

    session = await WorkoutService.update_session(storage, session_id, current_user.id, SessionPatch.from_model(data))
    return StandardResponse(message="Workout session updated", data=WorkoutSessionResponse.model_validate(session))


@router.delete("/sessions/{session_id}", response_model=StandardResponse)
async def delete_session(
    session_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    """Delete a session together with all of its sets."""
    await WorkoutService.delete_session(storage, session_id, current_user.id)
    return StandardResponse(message="Workout session deleted")


@router.post("/sessions/{session_id}/sets", response_model=StandardResponse[WorkoutSetResponse])
async def add_set(
    session_id: uuid.UUID,
    data: SetCreate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    workout_set = await WorkoutService.add_set(storage, session_id, current_user.id, SetPatch.from_model(data))
    return StandardResponse(message="Set logged", data=WorkoutSetResponse.model_validate(workout_set))


@router.patch("/sets/{set_id}", response_model=StandardResponse[WorkoutSetResponse])
async def update_set(
    set_id: uuid.UUID,
    data: SetUpdate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    workout_set = await WorkoutService.update_set(storage, set_id, current_user.id, SetPatch.from_model(data))
    return StandardResponse(message="Set updated", data=WorkoutSetResponse.model_validate(workout_set))


@router.delete("/sets/{set_id}", response_model=StandardResponse)
async def delete_set(
    set_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    await WorkoutService.delete_set(storage, set_id, current_user.id)
    return StandardResponse(message="Set deleted")
