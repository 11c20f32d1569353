"""
Graph entities: nodes, edges and snapshots.

Nodes carry their own simulation state (position, velocity) so the stepper
can work on them in place. Edges only name their endpoints by id; an edge
whose endpoint is missing from the current node set is "dangling" and is
skipped by every consumer rather than treated as an error.

A snapshot is everything received between one GraphBegin and GraphEnd.
There is no patching: the next snapshot replaces the previous one.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping
import time


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present (and not None) in data."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _line(data: Mapping[str, Any], *keys: str) -> int:
    value = _first(data, *keys, default=0)
    try:
        return int(value)
    except OverflowError as exc:
        raise ValueError(f"Line number out of range: {value!r}") from exc


@dataclass
class GraphNode:
    """
    A code entity placed in the layout.

    Everything except x/y/vx/vy is descriptive and fixed for the lifetime
    of the snapshot. x/y/vx/vy belong to the simulation: the stepper writes
    them between ticks, and a user drag may overwrite x/y between ticks.
    """

    id: str
    name: str = ""
    kind: str = ""
    file: str = ""
    line_start: int = 0
    line_end: int = 0
    qualified_name: str = ""
    signature: str | None = None
    centrality: float = 0.0  # In [0, 1]

    # Simulation state
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    @property
    def position(self) -> tuple[float, float]:
        """Current position (x, y)."""
        return self.x, self.y

    @property
    def velocity(self) -> tuple[float, float]:
        """Current velocity (vx, vy)."""
        return self.vx, self.vy

    def move_to(self, x: float, y: float) -> None:
        """Place the node at (x, y) and drop its velocity."""
        self.x = float(x)
        self.y = float(y)
        self.vx = 0.0
        self.vy = 0.0

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> GraphNode:
        """
        Build a node from its wire representation.

        Accepts snake_case (start_line, qualified_name) and camelCase
        (lineStart, qualifiedName) spellings. Only `id` is required.

        Raises:
            ValueError: if data is not a mapping or has no usable id
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Node entry must be an object, got {type(data).__name__}")
        node_id = data.get("id")
        if node_id is None or node_id == "":
            raise ValueError("Node entry is missing 'id'")

        centrality = float(_first(data, "centrality", default=0.0))
        signature = data.get("signature")

        return cls(
            id=str(node_id),
            name=str(_first(data, "name", default="")),
            kind=str(_first(data, "kind", default="")),
            file=str(_first(data, "file", default="")),
            line_start=_line(data, "start_line", "line_start", "lineStart"),
            line_end=_line(data, "end_line", "line_end", "lineEnd"),
            qualified_name=str(_first(data, "qualified_name", "qualifiedName", default="")),
            signature=None if signature is None else str(signature),
            centrality=min(1.0, max(0.0, centrality)),
        )

    def to_json(self) -> dict[str, Any]:
        """Wire representation (positions are not part of the protocol)."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "file": self.file,
            "start_line": self.line_start,
            "end_line": self.line_end,
            "centrality": self.centrality,
        }
        if self.qualified_name:
            data["qualified_name"] = self.qualified_name
        if self.signature is not None:
            data["signature"] = self.signature
        return data


@dataclass
class GraphEdge:
    """A directed relation between two nodes, by id."""

    source: str
    target: str
    kind: str = "calls"

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> GraphEdge:
        """
        Build an edge from its wire representation.

        Raises:
            ValueError: if data is not a mapping or lacks source/target
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Edge entry must be an object, got {type(data).__name__}")
        source = _first(data, "source", "from")
        target = _first(data, "target", "to")
        if source is None or target is None:
            raise ValueError("Edge entry needs both 'source' and 'target'")
        return cls(
            source=str(source),
            target=str(target),
            kind=str(_first(data, "kind", default="calls")),
        )

    def to_json(self) -> dict[str, Any]:
        return {"source": self.source, "target": self.target, "kind": self.kind}


def node_index(nodes: list[GraphNode]) -> dict[str, GraphNode]:
    """Id → node lookup table. Later duplicates win."""
    return {node.id: node for node in nodes}


def resolve_edges(
    edges: list[GraphEdge],
    index: Mapping[str, GraphNode],
) -> Iterator[tuple[GraphEdge, GraphNode, GraphNode]]:
    """Yield (edge, source, target) for every edge whose endpoints both exist."""
    for edge in edges:
        source = index.get(edge.source)
        target = index.get(edge.target)
        if source is None or target is None:
            continue
        yield edge, source, target


@dataclass
class GraphSnapshot:
    """
    The complete graph as of one ingestion session boundary.

    `timestamp` is milliseconds since the epoch.
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    is_delta: bool = False

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def resolved_edges(self) -> list[GraphEdge]:
        """Edges whose endpoints are both present (dangling edges dropped)."""
        index = node_index(self.nodes)
        return [edge for edge, _, _ in resolve_edges(self.edges, index)]

    def to_dict(self) -> dict[str, Any]:
        """Wire representation emitted at the end of a streaming session."""
        return {
            "is_delta": self.is_delta,
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "nodes": [node.to_json() for node in self.nodes],
            "edges": [edge.to_json() for edge in self.edges],
            "timestamp": self.timestamp,
        }
