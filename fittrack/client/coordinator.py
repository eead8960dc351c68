"""Client-side tracking of the signed-in user's in-progress workout.

The server stays authoritative: the coordinator fetches the active session on
start, every ``poll_interval`` seconds, and whenever another client signals a
change. Between fetches a ``tick_interval`` loop recomputes ``elapsed`` from the
last fetched start time without any network traffic.
"""
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import logging
import uuid

from fittrack.client.api import FitTrackClient
from fittrack.client.signals import SignalChannel, Subscription

logger = logging.getLogger(__name__)


class NoActiveWorkout(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class ActiveWorkoutCoordinator:
    def __init__(
        self,
        client: FitTrackClient,
        user_id: str,
        channel: SignalChannel,
        *,
        source: Optional[str] = None,
        tick_interval: float = 1.0,
        poll_interval: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.user_id = user_id
        self.channel = channel
        self.source = source or uuid.uuid4().hex
        self.tick_interval = tick_interval
        self.poll_interval = poll_interval
        self.clock = clock

        self.active_session: Optional[Dict[str, Any]] = None
        self.sets: List[Dict[str, Any]] = []
        self.elapsed = 0
        self.last_error: Optional[str] = None
        self.is_loading = True

        self._reference_start: Optional[datetime] = None
        # Bumped by every mutation; a refresh begun under an older value is stale
        self._generation = 0
        self._subscription: Optional[Subscription] = None
        self._tasks: List[asyncio.Task] = []

    async def __aenter__(self) -> "ActiveWorkoutCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        if self._tasks:
            return
        self._subscription = self.channel.subscribe(self.source)
        await self.refresh()
        self._tasks = [
            asyncio.create_task(self._tick_loop()),
            asyncio.create_task(self._poll_loop()),
            asyncio.create_task(self._signal_loop()),
        ]

    async def close(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    # State
    async def refresh(self) -> None:
        """Fetch the active session (and its sets) and make it the local truth.

        A fetch that overlapped a local mutation may predate it, so it is repeated.
        """
        while True:
            generation = self._generation
            try:
                session = await self.client.get_active_session(self.user_id)
                sets: List[Dict[str, Any]] = []
                if session:
                    sets = (await self.client.get_session(session["id"])).get("sets", [])
            finally:
                self.is_loading = False
            if generation == self._generation:
                break
            logger.debug("Refresh overlapped a local change; fetching again")
        self._apply(session, sets)

    def _apply(self, session: Optional[Dict[str, Any]], sets: List[Dict[str, Any]]) -> None:
        self.active_session = session
        self.sets = sets
        self._reference_start = _parse_timestamp(session["started_at"]) if session else None
        self._update_elapsed()

    def _update_elapsed(self) -> None:
        if self._reference_start is None:
            self.elapsed = 0
            return
        self.elapsed = max(int((self.clock() - self._reference_start).total_seconds()), 0)

    # Background loops
    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            self._update_elapsed()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("Active session poll failed", exc_info=True)

    async def _signal_loop(self) -> None:
        async for signal in self._subscription:
            logger.debug("Change signalled by %s; refreshing", signal.source)
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("Refresh after change signal failed", exc_info=True)

    # Mutations
    async def _mutate(self, call: Callable[[], Awaitable[Any]], apply: Callable[[Any], None]) -> Any:
        self._generation += 1
        try:
            result = await call()
        except Exception as exc:
            self._generation += 1
            self.last_error = str(exc)
            # Local state may have drifted from the server; reconcile before surfacing the error
            try:
                await self.refresh()
            except Exception:
                logger.warning("Reconciling refresh failed", exc_info=True)
            raise
        self._generation += 1
        self.last_error = None
        apply(result)
        await self.channel.publish(self.source)
        return result

    def _require_active(self) -> Dict[str, Any]:
        if not self.active_session:
            raise NoActiveWorkout("No active workout session")
        return self.active_session

    async def start_workout(self, note: Optional[str] = None) -> Dict[str, Any]:
        def apply(session: Dict[str, Any]) -> None:
            # A reused session keeps the sets already cached for it
            same = self.active_session and self.active_session["id"] == session["id"]
            self._apply(session, self.sets if same else [])

        return await self._mutate(lambda: self.client.start_session(note), apply)

    async def end_workout(self) -> Dict[str, Any]:
        session = self._require_active()
        return await self._mutate(lambda: self.client.end_session(session["id"]), lambda _: self._apply(None, []))

    async def add_set(self, exercise_id: str, **fields: Any) -> Dict[str, Any]:
        session = self._require_active()
        return await self._mutate(
            lambda: self.client.add_set(session["id"], exercise_id, **fields),
            lambda created: self.sets.append(created),
        )

    async def update_set(self, set_id: str, **fields: Any) -> Dict[str, Any]:
        def apply(updated: Dict[str, Any]) -> None:
            self.sets = [updated if s["id"] == updated["id"] else s for s in self.sets]

        return await self._mutate(lambda: self.client.update_set(set_id, **fields), apply)

    async def delete_set(self, set_id: str) -> None:
        def apply(_: Any) -> None:
            self.sets = [s for s in self.sets if s["id"] != set_id]

        await self._mutate(lambda: self.client.delete_set(set_id), apply)
