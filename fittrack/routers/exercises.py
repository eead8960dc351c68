from typing import Annotated, List
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from fittrack.auth.dependencies import CurrentUser
from fittrack.core.exceptions import ConflictError
from fittrack.core.responses import StandardResponse
from fittrack.models.enums import DEFAULT_UNITS, MetricType
from fittrack.schemas import ExerciseResponse
from fittrack.storage import Storage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter()


class ExerciseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    metric_type: MetricType
    unit: str | None = Field(None, min_length=1, max_length=32)


@router.post("/exercises", response_model=StandardResponse[ExerciseResponse])
async def create_exercise(
    data: ExerciseCreate,
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    """Create a new exercise. The unit defaults per metric type when omitted."""
    name = data.name.strip()
    if await storage.get_exercise_by_name(name):
        raise ConflictError(f"Exercise '{name}' already exists")
    exercise = await storage.create_exercise(
        name=name,
        metric_type=data.metric_type,
        unit=data.unit or DEFAULT_UNITS[data.metric_type],
    )
    logger.info("Exercise %s (%s) created by %s", exercise.name, exercise.metric_type.value, current_user.id)
    return StandardResponse(message="Exercise created", data=ExerciseResponse.model_validate(exercise))


@router.get("/exercises", response_model=StandardResponse[List[ExerciseResponse]])
async def list_exercises(
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    """List all available exercises."""
    exercises = await storage.list_exercises()
    return StandardResponse(data=[ExerciseResponse.model_validate(e) for e in exercises])
