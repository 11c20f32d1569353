"""
Broadcast output: fan-out of published items to any number of listeners.

Each subscriber gets its own unbounded queue, so a slow listener never
blocks the publisher or other listeners. Subscriptions can filter on type
tag ("GraphUpdate" for snapshots, the frame `type` otherwise).

Closing is one-shot: the first close() ends every subscription, later calls
do nothing.
"""

from __future__ import annotations
from typing import Any, AsyncIterator
import asyncio
import logging

from forcegraph.stream.protocol import frame_tag

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One listener. Iterate with `async for`; iteration ends on close."""

    def __init__(self, owner: Broadcast, tags: frozenset[str] | None):
        self._owner = owner
        self._queue: asyncio.Queue = asyncio.Queue()
        self.tags = tags
        self._done = False

    def wants(self, tag: str) -> bool:
        return self.tags is None or tag in self.tags

    def _deliver(self, item: Any) -> None:
        self._queue.put_nowait(item)

    def __aiter__(self) -> AsyncIterator[Any]:
        return self

    async def __anext__(self) -> Any:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        return item

    async def get(self) -> Any:
        """Next item, or raise StopAsyncIteration once closed."""
        return await self.__anext__()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Stop listening. Items already queued are discarded."""
        self._owner._unsubscribe(self)
        self._done = True


class Broadcast:
    """Publish/subscribe hub with an idempotent close."""

    def __init__(self):
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, *tags: str) -> Subscription:
        """
        Add a listener.

        Args:
            tags: Only receive items with these tags (all items if empty)
        """
        sub = Subscription(self, frozenset(tags) if tags else None)
        if self._closed:
            sub._deliver(_CLOSED)
        else:
            self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def publish(self, item: Any) -> int:
        """
        Deliver an item to every interested listener.

        Returns:
            Number of listeners that received it

        Raises:
            RuntimeError: if the broadcast is closed
        """
        if self._closed:
            raise RuntimeError("Cannot publish on a closed broadcast")
        tag = frame_tag(item)
        delivered = 0
        for sub in self._subscribers:
            if sub.wants(tag):
                sub._deliver(item)
                delivered += 1
        logger.debug("Published %s to %d listener(s)", tag, delivered)
        return delivered

    def close(self) -> bool:
        """
        End every subscription.

        Returns:
            True on the first call, False afterwards
        """
        if self._closed:
            return False
        self._closed = True
        for sub in self._subscribers:
            sub._deliver(_CLOSED)
        self._subscribers.clear()
        return True
