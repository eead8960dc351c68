from typing import Annotated, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from fittrack.auth.dependencies import CurrentUser
from fittrack.core.exceptions import ConflictError
from fittrack.core.responses import StandardResponse
from fittrack.schemas import UserResponse
from fittrack.storage import Storage, get_storage

router = APIRouter()


class ProfileUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=64)
    name: str | None = Field(None, min_length=1, max_length=120)


@router.get("", response_model=StandardResponse[List[UserResponse]])
async def list_users(
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    """List every known user, for picking challenge participants."""
    users = await storage.list_users()
    return StandardResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get("/me", response_model=StandardResponse[UserResponse])
async def get_me(current_user: CurrentUser):
    """Current user profile. The first call with a new token creates it."""
    return StandardResponse(data=UserResponse.model_validate(current_user))


@router.patch("/me", response_model=StandardResponse[UserResponse])
async def update_me(
    data: ProfileUpdate,
    current_user: CurrentUser,
    storage: Annotated[Storage, Depends(get_storage)],
):
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    username = update_data.get("username")
    if username and username != current_user.username:
        existing = await storage.get_user_by_username(username)
        if existing and existing.id != current_user.id:
            raise ConflictError(f"Username '{username}' is already taken")

    for key, value in update_data.items():
        setattr(current_user, key, value)
    user = await storage.save_user(current_user)
    return StandardResponse(message="Profile updated", data=UserResponse.model_validate(user))
