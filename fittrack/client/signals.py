"""Change signals shared between clients watching the same user's workout.

A signal carries no payload beyond who sent it and when; receivers react by
re-fetching from the server. Subscriptions never yield the subscriber's own
signals.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import asyncio
import json
import logging
import os
import time
import uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signal:
    source: str
    at: float


class Subscription(ABC):
    """Async iterator of signals from other sources. Registered as soon as it is created."""

    def __init__(self, source: str):
        self.source = source

    def __aiter__(self) -> "Subscription":
        return self

    @abstractmethod
    async def __anext__(self) -> Signal:
        ...

    def close(self) -> None:
        pass


class SignalChannel(ABC):
    @abstractmethod
    async def publish(self, source: str) -> Signal:
        ...

    @abstractmethod
    def subscribe(self, source: str) -> Subscription:
        ...


class _QueueSubscription(Subscription):
    def __init__(self, channel: "LocalBroadcastChannel", source: str):
        super().__init__(source)
        self._channel = channel
        self.queue: asyncio.Queue[Signal] = asyncio.Queue()
        channel._queues.add(self.queue)

    async def __anext__(self) -> Signal:
        while True:
            signal = await self.queue.get()
            if signal.source != self.source:
                return signal

    def close(self) -> None:
        self._channel._queues.discard(self.queue)


class LocalBroadcastChannel(SignalChannel):
    """In-process fan-out: every subscription gets its own queue."""

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue] = set()

    async def publish(self, source: str) -> Signal:
        signal = Signal(source=source, at=time.time())
        for queue in list(self._queues):
            queue.put_nowait(signal)
        return signal

    def subscribe(self, source: str) -> Subscription:
        return _QueueSubscription(self, source)


class _FileSubscription(Subscription):
    def __init__(self, channel: "FileSignalChannel", source: str):
        super().__init__(source)
        self._channel = channel
        # Anything already in the file predates this subscription
        marker = channel.read_marker()
        self._last_id = marker.get("id") if marker else None

    async def __anext__(self) -> Signal:
        while True:
            await asyncio.sleep(self._channel.poll_interval)
            marker = self._channel.read_marker()
            if not marker or marker.get("id") == self._last_id:
                continue
            self._last_id = marker.get("id")
            if marker.get("source") != self.source:
                return Signal(source=marker["source"], at=marker["at"])


class FileSignalChannel(SignalChannel):
    """Polling fallback for clients in separate processes: a marker file rewritten on every publish.

    Only the latest marker survives, so a subscriber that polls slower than
    signals arrive sees several changes as one.
    """

    def __init__(self, path: str, poll_interval: float = 0.5):
        self.path = path
        self.poll_interval = poll_interval

    async def publish(self, source: str) -> Signal:
        signal = Signal(source=source, at=time.time())
        marker = {"id": uuid.uuid4().hex, "source": signal.source, "at": signal.at}
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.{os.getpid()}.{marker['id']}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(marker, handle)
        # Readers never see a half-written marker
        os.replace(tmp_path, self.path)
        return signal

    def read_marker(self) -> dict | None:
        try:
            with open(self.path, encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("Unreadable signal marker at %s", self.path, exc_info=True)
            return None

    def subscribe(self, source: str) -> Subscription:
        return _FileSubscription(self, source)
