"""Fan-out of bridge events to attached dashboard sessions."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64

Event = Tuple[str, dict[str, Any]]

_session_ids = itertools.count(1)


def make_message(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": event, "data": data}


class ClientSession:
    """Outbound mailbox for one attached client."""

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.id = next(_session_ids)
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def send(self, event: str, data: dict[str, Any]) -> None:
        message = make_message(event, data)
        while True:
            try:
                self._queue.put_nowait(message)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:  # pragma: no cover - race
                    pass

    async def next_message(self) -> dict[str, Any]:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> list[dict[str, Any]]:
        """Return and remove every queued message without waiting."""

        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return messages


class SessionBroadcaster:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._sessions: Set[ClientSession] = set()
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._sessions)

    async def attach(
        self,
        replay: Optional[Callable[[], Iterable[Event]]] = None,
    ) -> ClientSession:
        """Register a session.

        ``replay`` is evaluated under the broadcast lock so the current state
        is queued ahead of any event published after it.
        """

        session = ClientSession(self._queue_size)
        async with self._lock:
            for event, data in (replay() if replay else ()):
                session.send(event, data)
            self._sessions.add(session)
        logger.info("Client %s attached (%d total)", session.id, len(self._sessions))
        return session

    async def detach(self, session: ClientSession) -> None:
        async with self._lock:
            self._sessions.discard(session)
        logger.info("Client %s detached (%d total)", session.id, len(self._sessions))

    async def publish(self, event: str, data: dict[str, Any]) -> None:
        async with self._lock:
            for session in list(self._sessions):
                session.send(event, data)


__all__ = ["ClientSession", "Event", "SessionBroadcaster", "make_message"]
