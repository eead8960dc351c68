"""Challenges, participants, logged entries and the leaderboard."""
from dataclasses import dataclass
from datetime import datetime
import logging
import uuid

from fittrack.core.exceptions import ForbiddenError, NotFoundError, ReferentialError, ValidationError
from fittrack.models import Challenge, ChallengeEntry, ChallengeStatus, MetricType, User
from fittrack.models.enums import DEFAULT_UNITS
from fittrack.services.timezone_service import as_utc
from fittrack.storage import Storage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardRow:
    user_id: str
    username: str
    name: str
    total: int
    rank: int
    delta_from_leader: int


def rank_totals(participants: list[User], entries: list[ChallengeEntry]) -> list[LeaderboardRow]:
    """Sum entry values per participant and rank them, highest total first.

    Participants with no entries score 0. Equal totals are ordered by username and
    still get consecutive ranks (150, 300, 300 ranks as 1, 2, 3).
    """
    totals = {user.id: 0 for user in participants}
    for entry in entries:
        if entry.user_id in totals:
            totals[entry.user_id] += entry.value

    ordered = sorted(participants, key=lambda u: (-totals[u.id], u.username))
    leader_total = totals[ordered[0].id] if ordered else 0
    return [
        LeaderboardRow(
            user_id=user.id,
            username=user.username,
            name=user.name,
            total=totals[user.id],
            rank=position,
            delta_from_leader=leader_total - totals[user.id],
        )
        for position, user in enumerate(ordered, start=1)
    ]


async def create_challenge(
    storage: Storage,
    created_by: str,
    *,
    title: str,
    activity: str,
    start_at: datetime,
    end_at: datetime,
    metric: MetricType = MetricType.COUNT,
    unit: str | None = None,
    participant_ids: list[str] | None = None,
) -> Challenge:
    """Create a challenge; the creator always joins, plus any listed participants."""
    if as_utc(end_at) < as_utc(start_at):
        raise ValidationError("end_at cannot precede start_at")
    await _require_users(storage, participant_ids or [])

    challenge = await storage.create_challenge(
        title=title,
        activity=activity,
        metric=metric,
        unit=unit or DEFAULT_UNITS[metric],
        start_at=as_utc(start_at),
        end_at=as_utc(end_at),
        created_by=created_by,
        status=ChallengeStatus.UPCOMING,
    )
    await storage.add_participants(challenge.id, [created_by, *(participant_ids or [])])
    logger.info("Challenge %s created by %s", challenge.id, created_by)
    return challenge


async def get_challenge(storage: Storage, challenge_id: uuid.UUID) -> Challenge:
    challenge = await storage.get_challenge(challenge_id)
    if not challenge:
        raise NotFoundError("Challenge not found")
    return challenge


async def list_challenges(
    storage: Storage,
    *,
    status: ChallengeStatus | None = None,
    user_id: str | None = None,
) -> list[Challenge]:
    return await storage.list_challenges(status=status, user_id=user_id)


async def update_challenge_status(
    storage: Storage,
    challenge_id: uuid.UUID,
    user_id: str,
    status: ChallengeStatus,
) -> Challenge:
    challenge = await get_challenge(storage, challenge_id)
    if challenge.created_by != user_id:
        raise ForbiddenError("Only the challenge creator can change its status")
    challenge.status = status
    return await storage.save_challenge(challenge)


async def _require_users(storage: Storage, user_ids: list[str]) -> None:
    for user_id in user_ids:
        if await storage.get_user(user_id) is None:
            raise ReferentialError(f"user {user_id} does not exist")


async def add_participants(storage: Storage, challenge_id: uuid.UUID, user_ids: list[str]) -> list[str]:
    """Add users to a challenge. Users already in it are skipped; returns the ids added."""
    await get_challenge(storage, challenge_id)
    await _require_users(storage, user_ids)
    added = await storage.add_participants(challenge_id, list(dict.fromkeys(user_ids)))
    if added:
        logger.info("Added %d participant(s) to challenge %s", len(added), challenge_id)
    return added


async def list_participants(storage: Storage, challenge_id: uuid.UUID) -> list[User]:
    await get_challenge(storage, challenge_id)
    return await storage.list_participants(challenge_id)


async def create_entry(
    storage: Storage,
    challenge_id: uuid.UUID,
    user_id: str,
    *,
    value: int,
    note: str | None = None,
) -> ChallengeEntry:
    await get_challenge(storage, challenge_id)
    if not await storage.is_participant(challenge_id, user_id):
        raise ValidationError("Only participants can log entries for this challenge")
    return await storage.create_entry(challenge_id, user_id, value=value, note=note)


async def list_entries(storage: Storage, challenge_id: uuid.UUID) -> list[ChallengeEntry]:
    await get_challenge(storage, challenge_id)
    return await storage.list_entries(challenge_id)


async def delete_entry(storage: Storage, entry_id: uuid.UUID, user_id: str) -> None:
    entry = await storage.get_entry(entry_id)
    if not entry:
        raise NotFoundError("Challenge entry not found")
    if entry.user_id != user_id:
        raise ForbiddenError("You can only delete your own entries")
    await storage.delete_entry(entry.id)


async def get_leaderboard(storage: Storage, challenge_id: uuid.UUID) -> list[LeaderboardRow]:
    await get_challenge(storage, challenge_id)
    participants = await storage.list_participants(challenge_id)
    entries = await storage.list_entries(challenge_id)
    return rank_totals(participants, entries)
