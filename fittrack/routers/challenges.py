from typing import Annotated, List
import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator

from fittrack.auth.dependencies import CurrentUser
from fittrack.core.responses import StandardResponse
from fittrack.models.enums import ChallengeStatus, MetricType
from fittrack.schemas import ChallengeEntryResponse, ChallengeResponse, LeaderboardRowResponse, UserResponse
from fittrack.services import challenge_service
from fittrack.services.timezone_service import UtcDateTime
from fittrack.storage import Storage, get_storage

router = APIRouter()

StorageDep = Annotated[Storage, Depends(get_storage)]


class ChallengeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    activity: str = Field(..., min_length=1, max_length=120)
    metric: MetricType = MetricType.COUNT
    unit: str | None = None
    start_at: UtcDateTime
    end_at: UtcDateTime
    participant_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_window(self) -> "ChallengeCreate":
        if self.end_at < self.start_at:
            raise ValueError("end_at cannot precede start_at")
        return self


class ChallengeStatusUpdate(BaseModel):
    status: ChallengeStatus


class ParticipantsAdd(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)


class EntryCreate(BaseModel):
    value: int = Field(..., ge=0)
    note: str | None = None


@router.get("/challenges", response_model=StandardResponse[List[ChallengeResponse]])
async def list_challenges(
    current_user: CurrentUser,
    storage: StorageDep,
    status: ChallengeStatus | None = None,
    user_id: str | None = Query(None, alias="userId"),
):
    challenges = await challenge_service.list_challenges(storage, status=status, user_id=user_id)
    return StandardResponse(data=[ChallengeResponse.model_validate(c) for c in challenges])


@router.post("/challenges", response_model=StandardResponse[ChallengeResponse])
async def create_challenge(
    data: ChallengeCreate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    """Create a challenge. The creator joins it automatically."""
    challenge = await challenge_service.create_challenge(
        storage,
        current_user.id,
        title=data.title,
        activity=data.activity,
        metric=data.metric,
        unit=data.unit,
        start_at=data.start_at,
        end_at=data.end_at,
        participant_ids=data.participant_ids,
    )
    return StandardResponse(message="Challenge created", data=ChallengeResponse.model_validate(challenge))


@router.get("/challenges/{challenge_id}", response_model=StandardResponse[ChallengeResponse])
async def get_challenge(
    challenge_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    challenge = await challenge_service.get_challenge(storage, challenge_id)
    return StandardResponse(data=ChallengeResponse.model_validate(challenge))


@router.patch("/challenges/{challenge_id}/status", response_model=StandardResponse[ChallengeResponse])
async def update_challenge_status(
    challenge_id: uuid.UUID,
    data: ChallengeStatusUpdate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    challenge = await challenge_service.update_challenge_status(storage, challenge_id, current_user.id, data.status)
    return StandardResponse(message="Challenge status updated", data=ChallengeResponse.model_validate(challenge))


@router.get("/challenges/{challenge_id}/leaderboard", response_model=StandardResponse[List[LeaderboardRowResponse]])
async def get_leaderboard(
    challenge_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    rows = await challenge_service.get_leaderboard(storage, challenge_id)
    return StandardResponse(data=[LeaderboardRowResponse.model_validate(r) for r in rows])


@router.get("/challenges/{challenge_id}/participants", response_model=StandardResponse[List[UserResponse]])
async def list_participants(
    challenge_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    users = await challenge_service.list_participants(storage, challenge_id)
    return StandardResponse(data=[UserResponse.model_validate(u) for u in users])


@router.post("/challenges/{challenge_id}/participants", response_model=StandardResponse[List[str]])
async def add_participants(
    challenge_id: uuid.UUID,
    data: ParticipantsAdd,
    current_user: CurrentUser,
    storage: StorageDep,
):
    added = await challenge_service.add_participants(storage, challenge_id, data.user_ids)
    return StandardResponse(message=f"{len(added)} participant(s) added", data=added)


@router.get("/challenges/{challenge_id}/entries", response_model=StandardResponse[List[ChallengeEntryResponse]])
async def list_entries(
    challenge_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    entries = await challenge_service.list_entries(storage, challenge_id)
    return StandardResponse(data=[ChallengeEntryResponse.model_validate(e) for e in entries])


@router.post("/challenges/{challenge_id}/entries", response_model=StandardResponse[ChallengeEntryResponse])
async def create_entry(
    challenge_id: uuid.UUID,
    data: EntryCreate,
    current_user: CurrentUser,
    storage: StorageDep,
):
    """Log progress toward a challenge as the current user."""
    entry = await challenge_service.create_entry(
        storage, challenge_id, current_user.id, value=data.value, note=data.note
    )
    return StandardResponse(message="Entry logged", data=ChallengeEntryResponse.model_validate(entry))


@router.delete("/entries/{entry_id}", response_model=StandardResponse)
async def delete_entry(
    entry_id: uuid.UUID,
    current_user: CurrentUser,
    storage: StorageDep,
):
    await challenge_service.delete_entry(storage, entry_id, current_user.id)
    return StandardResponse(message="Entry deleted")
