from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.database import get_db
from fittrack.storage.base import ActiveSessionExists, Storage
from fittrack.storage.memory import MemoryStorage
from fittrack.storage.sql import SqlStorage


async def get_storage(db: Annotated[AsyncSession, Depends(get_db)]) -> Storage:
    return SqlStorage(db)


__all__ = [
    "ActiveSessionExists",
    "MemoryStorage",
    "SqlStorage",
    "Storage",
    "get_storage",
]
