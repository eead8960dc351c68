"""Response bodies shared by several routers. Request bodies live next to their routes."""
from typing import List
import uuid

from pydantic import BaseModel, Field

from fittrack.models.enums import ChallengeStatus, MetricType
from fittrack.services.timezone_service import UtcDateTime


class UserResponse(BaseModel):
    id: str
    username: str
    name: str

    class Config:
        from_attributes = True


class ExerciseResponse(BaseModel):
    id: uuid.UUID
    name: str
    metric_type: MetricType
    unit: str

    class Config:
        from_attributes = True


class WorkoutSetResponse(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID
    exercise_id: uuid.UUID
    reps: int | None
    weight: float | None
    duration_sec: int | None
    distance_meters: float | None
    note: str | None
    created_at: UtcDateTime

    class Config:
        from_attributes = True


class WorkoutSessionResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    started_at: UtcDateTime
    ended_at: UtcDateTime | None
    note: str | None

    class Config:
        from_attributes = True


class WorkoutSessionDetailResponse(WorkoutSessionResponse):
    sets: List[WorkoutSetResponse] = Field(default_factory=list)


class ChallengeResponse(BaseModel):
    id: uuid.UUID
    title: str
    activity: str
    metric: MetricType
    unit: str
    start_at: UtcDateTime
    end_at: UtcDateTime
    created_by: str
    status: ChallengeStatus
    created_at: UtcDateTime

    class Config:
        from_attributes = True


class ChallengeEntryResponse(BaseModel):
    id: uuid.UUID
    challenge_id: uuid.UUID
    user_id: str
    value: int
    note: str | None
    created_at: UtcDateTime

    class Config:
        from_attributes = True


class LeaderboardRowResponse(BaseModel):
    user_id: str
    username: str
    name: str
    total: int
    rank: int
    delta_from_leader: int

    class Config:
        from_attributes = True
