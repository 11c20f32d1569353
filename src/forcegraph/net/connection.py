"""
Connection manager: one live channel, reconnect with exponential backoff.

The manager owns exactly one transport channel at a time. Incoming messages
go through the StreamAssembler; replies are written back on the channel,
snapshots and tagged frames are published on `frames`, JSON-RPC responses
go to whoever registered a response handler.

Backoff policy:

    delay(attempt) = min(max_delay, base ** attempt)      (seconds)

`attempt` drops to 0 as soon as a connect succeeds and goes up by one on
every failure (failed open, or the channel closing/erroring later). The
wait is an event wait, so dispose() cuts it short.

The socket itself is not implemented here; anything that satisfies the
Transport/Channel protocols will do.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Literal, Mapping, Protocol
import asyncio
import contextlib
import logging

from forcegraph.stream.assembler import StreamAssembler
from forcegraph.stream.protocol import RpcResponse, encode_frame
from forcegraph.net.broadcast import Broadcast

logger = logging.getLogger(__name__)


class ConnectionLost(ConnectionError):
    """There is no live channel (never connected, dropped, or disposed)."""


class Channel(Protocol):
    """An open, ready, bidirectional message stream."""

    async def send(self, message: str) -> None:
        ...

    async def close(self) -> None:
        ...

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """
        Yield messages until the peer closes (iteration ends) or the
        stream fails (iteration raises).
        """
        ...


class Transport(Protocol):
    """Opens channels to an address."""

    async def open(self, address: str) -> Channel:
        """
        Connect and wait until the channel is ready.

        Raises whatever the underlying implementation raises on failure.
        """
        ...


@dataclass
class ReconnectPolicy:
    """Backoff configuration."""

    base: float = 2.0
    max_delay: float = 30.0  # Cap, in seconds
    time_scale: float = 1.0  # Wall-clock seconds per delay second
    history_size: int = 32  # How many scheduled delays to remember


def backoff_delay(attempt: int, policy: ReconnectPolicy | None = None) -> float:
    """Delay in seconds before retry number `attempt` (0-based)."""
    policy = policy or ReconnectPolicy()
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Cap the exponent so huge attempt counts cannot overflow
    if attempt > 64:
        return float(policy.max_delay)
    return float(min(policy.max_delay, policy.base ** attempt))


class ConnectionManager:
    """
    Owns the single active channel and its retry loop.

    Lifecycle: create → connect(address) → ... → dispose(). After dispose
    the manager is finished; create a new one to connect again.
    """

    def __init__(
        self,
        transport: Transport,
        assembler: StreamAssembler | None = None,
        policy: ReconnectPolicy | None = None,
    ):
        self.transport = transport
        self.assembler = assembler or StreamAssembler()
        self.policy = policy or ReconnectPolicy()

        self.frames = Broadcast()
        self.address: str | None = None
        self.attempt = 0
        self.backoff_history: deque[float] = deque(maxlen=self.policy.history_size)
        self.connect_count = 0

        self._channel: Channel | None = None
        self._connected = False
        self._disposed = False
        self._disposed_event = asyncio.Event()
        self._connected_event = asyncio.Event()
        self._task: asyncio.Task | None = None

        self._response_handlers: list[Callable[[RpcResponse], None]] = []
        self._disconnect_handlers: list[Callable[[], None]] = []

    # ═══════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def status(self) -> Literal["connected", "connecting", "disconnected", "disposed"]:
        if self._disposed:
            return "disposed"
        if self._connected:
            return "connected"
        if self._task is not None and not self._task.done():
            return "connecting"
        return "disconnected"

    def add_response_handler(self, handler: Callable[[RpcResponse], None]) -> None:
        """Call `handler` for every JSON-RPC response received."""
        self._response_handlers.append(handler)

    def add_disconnect_handler(self, handler: Callable[[], None]) -> None:
        """Call `handler` whenever a live channel goes away."""
        self._disconnect_handlers.append(handler)

    # ═══════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════

    def connect(self, address: str) -> asyncio.Task | None:
        """
        Start the connect/retry loop for `address`.

        No-op (returns the existing loop) when already connected or
        connecting. Must be called from a running event loop.

        Returns:
            The supervisor task, or None if the manager is disposed
        """
        if self._disposed:
            logger.warning("connect() on a disposed connection manager; ignoring")
            return None
        if self._connected or (self._task is not None and not self._task.done()):
            return self._task

        self.address = address
        self._task = asyncio.get_running_loop().create_task(self._run(address))
        return self._task

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until a channel is live. Returns False on timeout or dispose."""
        if self._connected:
            return True
        connected = asyncio.ensure_future(self._connected_event.wait())
        disposed = asyncio.ensure_future(self._disposed_event.wait())
        try:
            await asyncio.wait(
                {connected, disposed},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            connected.cancel()
            disposed.cancel()
        return self._connected and not self._disposed

    async def dispose(self) -> None:
        """
        Shut down for good. Safe to call any number of times.

        Closes the channel and the `frames` output exactly once and aborts a
        pending backoff wait immediately.
        """
        if self._disposed:
            return
        self._disposed = True
        self._disposed_event.set()
        self._connected = False

        channel, self._channel = self._channel, None
        if channel is not None:
            await self._close_channel(channel)

        self.frames.close()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Connection manager disposed")

    async def send(self, frame: Mapping[str, Any] | str) -> None:
        """
        Send one frame on the live channel.

        Raises:
            ConnectionLost: if there is no live channel
        """
        channel = self._channel
        if channel is None or not self._connected:
            raise ConnectionLost("Not connected")
        text = frame if isinstance(frame, str) else encode_frame(frame)
        await channel.send(text)

    # ═══════════════════════════════════════════════════════════════
    # RETRY LOOP
    # ═══════════════════════════════════════════════════════════════

    async def _run(self, address: str) -> None:
        while not self._disposed:
            logger.info("Connecting to %s...", address)
            try:
                channel = await self.transport.open(address)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # any transport failure is retried
                logger.warning("Connection to %s failed: %s", address, exc)
                if not await self._backoff():
                    return
                continue

            if self._disposed:
                await channel.close()
                return

            self._channel = channel
            self._connected = True
            self.attempt = 0
            self.connect_count += 1
            self._connected_event.set()
            logger.info("Connected to %s", address)

            try:
                await self._pump(channel)
                if not self._disposed:
                    logger.warning("Connection to %s closed by peer", address)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # stream errors are retried
                if not self._disposed:
                    logger.warning("Connection to %s lost: %s", address, exc)
            finally:
                self._connected = False
                self._connected_event.clear()
                if self._channel is channel:
                    self._channel = None
                if not self._disposed:
                    await self._close_channel(channel)
                self.assembler.reset()
                self._notify_disconnect()

            if self._disposed or not await self._backoff():
                return

    async def _pump(self, channel: Channel) -> None:
        async for message in channel:
            if self._disposed:
                return
            result = self.assembler.feed(message)
            for reply in result.replies:
                # Sent once; the next frame is not held back waiting for an answer
                await channel.send(encode_frame(reply))
                if self._disposed:
                    return
            for item in result.published:
                self.frames.publish(item)
            for response in result.responses:
                self._dispatch_response(response)

    async def _backoff(self) -> bool:
        """Wait out the current delay. Returns False if disposed meanwhile."""
        delay = backoff_delay(self.attempt, self.policy)
        self.attempt += 1
        self.backoff_history.append(delay)
        logger.info("Retrying in %g seconds (attempt %d)", delay, self.attempt)
        try:
            await asyncio.wait_for(
                self._disposed_event.wait(),
                timeout=delay * self.policy.time_scale,
            )
        except asyncio.TimeoutError:
            pass
        return not self._disposed

    def _dispatch_response(self, response: RpcResponse) -> None:
        if not self._response_handlers:
            logger.debug("Dropping JSON-RPC response %r: no handler", response.id)
        for handler in self._response_handlers:
            try:
                handler(response)
            except Exception as exc:  # handler errors stay with the handler
                logger.error("JSON-RPC response handler failed for id %r: %s", response.id, exc)

    async def _close_channel(self, channel: Channel) -> None:
        try:
            await channel.close()
        except Exception as exc:  # transport-specific close failures
            logger.warning("Error while closing channel: %s", exc)

    def _notify_disconnect(self) -> None:
        for handler in self._disconnect_handlers:
            handler()
