import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from fittrack.auth.security import decode_access_token
from fittrack.config import settings
from fittrack.models.user import User
from fittrack.storage import Storage, get_storage

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    storage: Annotated[Storage, Depends(get_storage)],
) -> User:
    """Resolve the acting user, creating the local profile on first sight of a token."""
    if settings.AUTH_MODE == "dev":
        return await storage.upsert_user(
            settings.DEV_USER_ID, username=settings.DEV_USERNAME, name=settings.DEV_USER_NAME
        )

    if credentials is None:
        raise _credentials_exception()
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise _credentials_exception()

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        raise _credentials_exception()

    username = payload.get("username") or user_id
    user = await storage.upsert_user(str(user_id), username=username, name=payload.get("name") or username)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
