"""Three-state field values for partial updates.

A numeric field in an update payload is either absent (``UNSET``: keep the stored
value), explicitly null (``CLEARED``: store null) or a value, and a value of ``0``
is a real logged amount. Truthiness never decides which case applies.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, TypeVar, Union
import uuid

from pydantic import BaseModel

T = TypeVar("T")


class FieldState(enum.Enum):
    UNSET = "unset"
    CLEARED = "cleared"

    def __repr__(self) -> str:
        return self.name


UNSET = FieldState.UNSET
CLEARED = FieldState.CLEARED

Patch = Union[FieldState, T]


def state_of(payload: BaseModel, name: str) -> Patch[Any]:
    """UNSET when the client did not send ``name``, CLEARED when it sent null, else the value."""
    if name not in payload.model_fields_set:
        return UNSET
    value = getattr(payload, name)
    return CLEARED if value is None else value


def resolve(current: T | None, patch: Patch[T]) -> T | None:
    if patch is UNSET:
        return current
    if patch is CLEARED:
        return None
    return patch


def to_value(patch: Patch[T]) -> T | None:
    """Value for an insert: anything not supplied is stored as null."""
    return None if isinstance(patch, FieldState) else patch


@dataclass
class SetPatch:
    session_id: Patch[uuid.UUID] = UNSET
    exercise_id: Patch[uuid.UUID] = UNSET
    reps: Patch[int] = UNSET
    weight: Patch[float] = UNSET
    duration_sec: Patch[int] = UNSET
    distance_meters: Patch[float] = UNSET
    note: Patch[str] = UNSET

    @classmethod
    def from_model(cls, payload: BaseModel) -> "SetPatch":
        return cls(**{f.name: state_of(payload, f.name) for f in fields(cls) if f.name in type(payload).model_fields})


@dataclass
class SessionPatch:
    user_id: Patch[str] = UNSET
    note: Patch[str] = UNSET
    started_at: Patch[datetime] = UNSET
    ended_at: Patch[datetime] = UNSET

    @classmethod
    def from_model(cls, payload: BaseModel) -> "SessionPatch":
        return cls(**{f.name: state_of(payload, f.name) for f in fields(cls) if f.name in type(payload).model_fields})
