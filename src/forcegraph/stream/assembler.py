"""
Stream assembler: turns a frame sequence into graph snapshots.

    Hello           → reply "ready_for_graph" (state unchanged)
    GraphBegin      → clear buffers, idle → streaming
    NodeBatch       → append nodes
    EdgeBatch       → append edges
    GraphEnd        → emit one GraphSnapshot, streaming → idle
                      (while idle: only if batches were buffered)
    anything else   → emit as-is for tag subscribers

The assembler is synchronous and transport-agnostic: `feed()` takes one raw
message and returns what should happen next (replies to send, items to
publish). The connection layer does the I/O.

A bad frame is logged and dropped. Batches are fully decoded before they
touch the buffers, so one bad frame never leaves half a batch behind.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping
import logging

from forcegraph.core.graph import GraphEdge, GraphNode, GraphSnapshot
from forcegraph.stream.protocol import (
    READY_FOR_GRAPH,
    EdgeBatch,
    Frame,
    FrameDecodeError,
    GraphBegin,
    GraphEnd,
    Hello,
    NodeBatch,
    RpcResponse,
    decode_frame,
)

logger = logging.getLogger(__name__)


@dataclass
class AssemblerConfig:
    """Configuration for the stream assembler."""

    # When True, batches outside a GraphBegin/GraphEnd bracket are dropped.
    # By default they are buffered and the next GraphEnd emits them.
    strict_sequencing: bool = False


@dataclass
class FeedResult:
    """What one message produced."""

    replies: list[dict[str, Any]] = field(default_factory=list)  # Frames to send back
    published: list[Any] = field(default_factory=list)  # Snapshots and tagged messages
    responses: list[RpcResponse] = field(default_factory=list)  # JSON-RPC replies

    def __bool__(self) -> bool:
        return bool(self.replies or self.published or self.responses)


class StreamAssembler:
    """
    Buffers batched nodes/edges between begin/end markers.

    State is "idle" or "streaming". Only GraphBegin enters streaming and
    only GraphEnd leaves it.
    """

    def __init__(self, config: AssemblerConfig | None = None):
        self.config = config or AssemblerConfig()
        self.state: Literal["idle", "streaming"] = "idle"
        self.peer: Hello | None = None

        self._pending_nodes: list[GraphNode] = []
        self._pending_edges: list[GraphEdge] = []

        # Counters
        self.frames_accepted = 0
        self.frames_rejected = 0
        self.snapshots_emitted = 0

    @property
    def pending_node_count(self) -> int:
        return len(self._pending_nodes)

    @property
    def pending_edge_count(self) -> int:
        return len(self._pending_edges)

    def feed(self, message: str | bytes | Mapping[str, Any]) -> FeedResult:
        """
        Decode and apply one raw message.

        Never raises for bad input: malformed frames are logged and yield an
        empty result.
        """
        try:
            frame = decode_frame(message)
        except FrameDecodeError as exc:
            self.frames_rejected += 1
            logger.warning("Dropping malformed frame: %s", exc)
            return FeedResult()
        except Exception as exc:  # any other decode failure
            self.frames_rejected += 1
            logger.error("Dropping undecodable frame: %s: %s", type(exc).__name__, exc)
            return FeedResult()

        self.frames_accepted += 1
        return self.apply(frame)

    def apply(self, frame: Frame) -> FeedResult:
        """Apply an already-decoded frame."""
        result = FeedResult()

        if isinstance(frame, Hello):
            self.peer = frame
            logger.info(
                "Handshake from peer: v%s, expecting %d nodes and %d edges",
                frame.version, frame.node_count, frame.edge_count,
            )
            result.replies.append(dict(READY_FOR_GRAPH))

        elif isinstance(frame, GraphBegin):
            self._pending_nodes = []
            self._pending_edges = []
            self.state = "streaming"
            logger.debug("Graph stream started")

        elif isinstance(frame, NodeBatch):
            if self._accept_batch(frame):
                self._pending_nodes.extend(frame.nodes)

        elif isinstance(frame, EdgeBatch):
            if self._accept_batch(frame):
                self._pending_edges.extend(frame.edges)

        elif isinstance(frame, GraphEnd):
            if self.state == "streaming":
                result.published.append(self._emit_snapshot())
            elif self._pending_nodes or self._pending_edges:
                logger.warning("GraphEnd without GraphBegin; emitting buffered batches")
                result.published.append(self._emit_snapshot())
            else:
                logger.warning("GraphEnd without GraphBegin; ignoring")

        elif isinstance(frame, RpcResponse):
            result.responses.append(frame)

        else:
            result.published.append(frame)

        return result

    def _accept_batch(self, frame: NodeBatch | EdgeBatch) -> bool:
        if self.state == "streaming":
            return True
        if self.config.strict_sequencing:
            logger.warning("%s outside a graph stream; ignoring", frame.type)
            return False
        logger.warning("%s outside a graph stream; buffering anyway", frame.type)
        return True

    def _emit_snapshot(self) -> GraphSnapshot:
        snapshot = GraphSnapshot(nodes=self._pending_nodes, edges=self._pending_edges)
        self._pending_nodes = []
        self._pending_edges = []
        self.state = "idle"
        self.snapshots_emitted += 1
        logger.info(
            "Graph stream complete: %d nodes, %d edges",
            snapshot.node_count, snapshot.edge_count,
        )
        return snapshot

    def reset(self) -> None:
        """Drop any half-received session (e.g. after a reconnect)."""
        self._pending_nodes = []
        self._pending_edges = []
        self.state = "idle"
