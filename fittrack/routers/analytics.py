from typing import Annotated, Literal
import uuid

from fastapi import APIRouter, Depends, Query

from fittrack.auth.dependencies import CurrentUser
from fittrack.core.responses import StandardResponse
from fittrack.services.analytics import AnalyticsService
from fittrack.storage import Storage, get_storage

router = APIRouter()


@router.get("/{user_id}/prs", response_model=StandardResponse)
async def get_personal_records(
    user_id: str,
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    records = await AnalyticsService.get_personal_records(storage, user_id)
    return StandardResponse(data=records)


@router.get("/{user_id}/progress", response_model=StandardResponse)
async def get_progress(
    user_id: str,
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
    exercise_id: uuid.UUID = Query(..., alias="exerciseId"),
    granularity: Literal["day", "week"] = Query("day"),
):
    """Per-day or per-week series for one exercise, oldest bucket first."""
    series = await AnalyticsService.get_exercise_timeseries(storage, user_id, exercise_id, granularity)
    return StandardResponse(data=series)


@router.get("/{user_id}/today-stats", response_model=StandardResponse)
async def get_today_stats(
    user_id: str,
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    stats = await AnalyticsService.get_today_stats(storage, user_id)
    return StandardResponse(data=stats)
