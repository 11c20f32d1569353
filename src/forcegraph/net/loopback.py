"""
In-process transport: channels backed by asyncio queues.

Used to replay recorded sessions (demos) and to script connect failures,
drops and peer messages without a socket.

    transport = LoopbackTransport()
    channel = transport.add_channel()      # next open() succeeds with it
    transport.add_failure(OSError("down")) # ...or fails
    channel.push('{"type": "GraphBegin"}')
    channel.finish()                       # peer closes
"""

from __future__ import annotations
from typing import AsyncIterator
import asyncio
import json

_END = object()


class LoopbackChannel:
    """A channel whose peer side is driven from Python."""

    def __init__(self):
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    # Peer side

    def push(self, message: str | dict) -> None:
        """Queue a message from the peer (dicts are JSON-encoded)."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbox.put_nowait(message)

    def finish(self) -> None:
        """Peer closes the stream cleanly."""
        self._inbox.put_nowait(_END)

    def fail(self, exc: BaseException) -> None:
        """Stream errors out with `exc`."""
        self._inbox.put_nowait(exc)

    def sent_frames(self) -> list[dict]:
        return [json.loads(text) for text in self.sent]

    # Local side

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("Channel is closed")
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self._inbox.put_nowait(_END)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[str]:
        while True:
            item = await self._inbox.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class LoopbackTransport:
    """
    Hands out scripted outcomes, one per open() call.

    Once the script runs out, open() raises ConnectionRefusedError.
    """

    def __init__(self):
        self._outcomes: list[LoopbackChannel | BaseException] = []
        self.opened: list[str] = []

    def add_channel(self, channel: LoopbackChannel | None = None) -> LoopbackChannel:
        channel = channel or LoopbackChannel()
        self._outcomes.append(channel)
        return channel

    def add_failure(self, exc: BaseException | None = None) -> None:
        self._outcomes.append(exc or ConnectionRefusedError("connection refused"))

    @property
    def attempts(self) -> int:
        return len(self.opened)

    async def open(self, address: str) -> LoopbackChannel:
        self.opened.append(address)
        await asyncio.sleep(0)
        if not self._outcomes:
            raise ConnectionRefusedError(f"No peer at {address}")
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
