"""
Layout engine session: connection → snapshots → simulation → observers.

The session subscribes to the connection's broadcast output, loads every
snapshot into the stepper, recenters it on the viewport, and keeps ticking
until the layout settles. It then sleeps until something disturbs it again
(new snapshot, search results, drag).

Everything runs on one event loop. A tick is synchronous, so nothing can
interleave with it; drags are queued and applied just before the next
tick, never during one.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Callable
import asyncio
import contextlib
import logging

import numpy as np

from forcegraph.core.graph import GraphEdge, GraphNode, GraphSnapshot
from forcegraph.core.layout import ForceLayout, ForceLayoutConfig
from forcegraph.net.connection import ConnectionLost, ConnectionManager
from forcegraph.net.rpc import RpcClient, RpcError
from forcegraph.stream.protocol import FocusNode, IndexerStatus, Spotlight

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Session configuration."""

    address: str = "ws://127.0.0.1:7432"
    viewport: tuple[float, float] = (1280.0, 800.0)  # Width, height
    frame_interval: float = 0.016  # Wall-clock seconds between ticks (~60 fps)
    rpc_timeout: float = 10.0
    search_limit: int = 50
    layout: ForceLayoutConfig = field(default_factory=ForceLayoutConfig)

    @property
    def viewport_center(self) -> tuple[float, float]:
        width, height = self.viewport
        return width / 2, height / 2


@dataclass
class GraphState:
    """What observers (renderer, UI) get to see."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    is_connected: bool = False
    is_loading: bool = False
    error: str | None = None
    selected_node_id: str | None = None
    spotlight_node_id: str | None = None
    peer_version: str | None = None
    indexer_phase: str | None = None

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def copy_with(self, **changes: Any) -> GraphState:
        """Copy with changes. `error` is cleared unless given."""
        changes.setdefault("error", None)
        return replace(self, **changes)


class LayoutEngine:
    """
    One live session: owns the stepper and the observable state.

    Usage:
        engine = LayoutEngine(ConnectionManager(transport))
        engine.start()
        ...
        await engine.stop()
    """

    def __init__(
        self,
        connection: ConnectionManager,
        config: EngineConfig | None = None,
        rpc: RpcClient | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.connection = connection
        self.config = config or EngineConfig()
        self.layout = ForceLayout(
            config=self.config.layout,
            rng=rng if rng is not None else np.random.default_rng(),
        )
        self.rpc = rpc or RpcClient.over(connection, timeout=self.config.rpc_timeout)

        self._state = GraphState()
        self._drags: list[tuple[str, float, float]] = []
        self._listeners: list[Callable[[GraphState], None]] = []
        self._wake = asyncio.Event()
        self._running = False
        self._tasks: list[asyncio.Task] = []

    # ═══════════════════════════════════════════════════════════════
    # OBSERVATION
    # ═══════════════════════════════════════════════════════════════

    @property
    def state(self) -> GraphState:
        """Current state, with the live connection status."""
        return replace(self._state, is_connected=self.connection.is_connected)

    @property
    def is_running(self) -> bool:
        return self._running

    def on_change(self, listener: Callable[[GraphState], None]) -> None:
        """Call `listener` with the new state after every change and tick."""
        self._listeners.append(listener)

    def _set_state(self, **changes: Any) -> None:
        self._state = self._state.copy_with(**changes)
        self._notify()

    def _notify(self) -> None:
        state = self.state
        for listener in self._listeners:
            listener(state)

    # ═══════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════

    def start(self) -> None:
        """Connect and start consuming/ticking. Needs a running loop."""
        if self._running:
            return
        self._running = True
        self._set_state(is_loading=True)
        loop = asyncio.get_running_loop()
        subscription = self.connection.frames.subscribe()
        self._tasks = [
            loop.create_task(self._consume(subscription)),
            loop.create_task(self._tick_loop()),
        ]
        self.connection.connect(self.config.address)

    async def stop(self) -> None:
        """Stop ticking and dispose of the connection. Idempotent."""
        if not self._running and not self._tasks:
            await self.connection.dispose()
            return
        self._running = False
        self._wake.set()
        await self.connection.dispose()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def _consume(self, subscription) -> None:
        async for item in subscription:
            if not self._running:
                return
            self.handle(item)

    async def _tick_loop(self) -> None:
        interval = self.config.frame_interval
        while self._running:
            if self._drags or self.layout.moving:
                self.tick()
                await asyncio.sleep(interval)
                continue
            self._wake.clear()
            if self._drags or self.layout.moving:
                continue
            await self._wake.wait()

    # ═══════════════════════════════════════════════════════════════
    # INPUTS
    # ═══════════════════════════════════════════════════════════════

    def handle(self, item: Any) -> None:
        """React to one item from the broadcast output."""
        if isinstance(item, GraphSnapshot):
            self.load_snapshot(item)
        elif isinstance(item, (FocusNode, Spotlight)):
            self._set_state(spotlight_node_id=item.node_id)
        elif isinstance(item, IndexerStatus):
            self._set_state(
                indexer_phase=item.phase,
                is_loading=item.phase != "done",
            )
        else:
            logger.debug("Ignoring %s frame", getattr(item, "type", type(item).__name__))

    def load_snapshot(self, snapshot: GraphSnapshot) -> None:
        """Replace the graph with a snapshot, recenter it, and wake the loop."""
        self._drags.clear()
        self.layout.load_snapshot(snapshot)
        self.layout.recenter(*self.config.viewport_center)
        peer = self.connection.assembler.peer
        self._set_state(
            nodes=self.layout.nodes,
            edges=self.layout.edges,
            is_loading=False,
            peer_version=peer.version if peer is not None else None,
        )
        self._wake.set()

    def drag(self, node_id: str, x: float, y: float) -> None:
        """Queue a position write for the next tick boundary."""
        self._drags.append((node_id, float(x), float(y)))
        self._wake.set()

    def select(self, node_id: str | None) -> None:
        self._set_state(selected_node_id=node_id)

    async def search(self, query: str) -> list[GraphNode]:
        """
        Ask the peer for matching nodes and show them.

        Errors are reported through `state.error`, not raised.
        """
        if not query:
            return []
        self._set_state(is_loading=True)
        try:
            nodes = await self.rpc.discover(query, limit=self.config.search_limit)
        except (RpcError, ConnectionLost, asyncio.TimeoutError) as exc:
            logger.warning("Search for %r failed: %s", query, exc)
            self._set_state(is_loading=False, error=str(exc) or type(exc).__name__)
            return []

        self._drags.clear()
        self.layout.load(nodes, self.layout.edges)
        self.layout.recenter(*self.config.viewport_center)
        self._set_state(nodes=self.layout.nodes, edges=self.layout.edges, is_loading=False)
        self._wake.set()
        return nodes

    # ═══════════════════════════════════════════════════════════════
    # SIMULATION
    # ═══════════════════════════════════════════════════════════════

    def tick(self) -> bool:
        """Apply queued drags, then run one simulation step."""
        drags, self._drags = self._drags, []
        for node_id, x, y in drags:
            if not self.layout.place(node_id, x, y):
                logger.debug("Drag for unknown node %s ignored", node_id)
        moving = self.layout.step()
        self._notify()
        return moving
