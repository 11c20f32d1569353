"""
Force-directed layout: the simulation stepper.

Each tick:
1. Rebuild the quadtree from current positions
2. Repulsion on every node via Barnes-Hut (F = k·m / d²)
3. Spring attraction along resolved edges longer than the rest length
   (F = (d - d_rest)·attraction, pulling the endpoints together)
4. Integrate: v ← v·damping + F·dt, then p ← p + v·dt
5. Report whether Σ(|vx| + |vy|) is still above the settling threshold

Damping applies to the previous velocity only, not to the force added
this tick.

Springs only pull: edges at or below rest length contribute nothing.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Sequence
import logging
import math

import numpy as np

from forcegraph.core.graph import GraphEdge, GraphNode, GraphSnapshot, node_index, resolve_edges
from forcegraph.core.quadtree import Quadtree, QuadtreeConfig

logger = logging.getLogger(__name__)


@dataclass
class ForceLayoutConfig:
    """Simulation constants."""

    repulsion: float = 5000.0  # Coulomb-like constant k
    attraction: float = 0.1  # Spring stiffness
    damping: float = 0.9  # Velocity retained per tick
    min_distance: float = 80.0  # Spring rest length
    settle_threshold: float = 0.5  # Total |v| below which the layout counts as settled
    dt: float = 1.0  # Simulated time per tick

    # Grid used to place nodes that have no position yet
    seed_origin: tuple[float, float] = (400.0, 300.0)
    seed_spacing: float = 80.0
    seed_columns: int = 10

    quadtree: QuadtreeConfig = field(default_factory=QuadtreeConfig)


def step(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    dt: float,
    config: ForceLayoutConfig | None = None,
    rng: np.random.Generator | None = None,
) -> bool:
    """
    Advance the simulation by one tick, in place.

    Args:
        nodes: Nodes to move (positions and velocities are updated)
        edges: Edges; dangling ones are skipped
        dt: Time step
        config: Simulation constants
        rng: Source for the coincident-point jitter

    Returns:
        True while the layout is still moving
    """
    if not nodes:
        return False
    config = config or ForceLayoutConfig()

    forces = compute_forces(nodes, edges, config, rng)

    damping = config.damping
    total = 0.0
    for node, (fx, fy) in zip(nodes, forces):
        node.vx = node.vx * damping + fx * dt
        node.vy = node.vy * damping + fy * dt
        node.x += node.vx * dt
        node.y += node.vy * dt
        total += abs(node.vx) + abs(node.vy)

    return total > config.settle_threshold


def compute_forces(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    config: ForceLayoutConfig | None = None,
    rng: np.random.Generator | None = None,
) -> list[tuple[float, float]]:
    """
    Net force on every node (same order as `nodes`), without moving anything.
    """
    config = config or ForceLayoutConfig()
    tree = Quadtree.build(nodes, config=config.quadtree, rng=rng)

    forces = [tree.compute_force(node, config.repulsion) for node in nodes]

    slot = {node.id: i for i, node in enumerate(nodes)}
    index = node_index(list(nodes))
    for edge, source, target in resolve_edges(list(edges), index):
        fx, fy = spring_force(source, target, config.min_distance, config.attraction)
        if fx == 0.0 and fy == 0.0:
            continue
        i, j = slot[edge.source], slot[edge.target]
        sx, sy = forces[i]
        tx, ty = forces[j]
        forces[i] = (sx + fx, sy + fy)
        forces[j] = (tx - fx, ty - fy)

    return forces


def spring_force(
    source: GraphNode,
    target: GraphNode,
    min_distance: float,
    attraction: float,
) -> tuple[float, float]:
    """
    Hooke force on `source` toward `target` (target gets the opposite).

    Zero when the endpoints are within the rest length.
    """
    dx = target.x - source.x
    dy = target.y - source.y
    dist = math.sqrt(dx * dx + dy * dy)
    if dist <= min_distance:
        return 0.0, 0.0
    force = (dist - min_distance) * attraction
    return (dx / dist) * force, (dy / dist) * force


def total_velocity(nodes: Sequence[GraphNode]) -> float:
    """Σ(|vx| + |vy|) over all nodes."""
    return float(sum(abs(node.vx) + abs(node.vy) for node in nodes))


def bounding_box(nodes: Sequence[GraphNode]) -> tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of node positions."""
    if not nodes:
        raise ValueError("bounding_box of an empty node set")
    xs = np.fromiter((node.x for node in nodes), dtype=np.float64, count=len(nodes))
    ys = np.fromiter((node.y for node in nodes), dtype=np.float64, count=len(nodes))
    return float(xs.min()), float(ys.min()), float(xs.max()), float(ys.max())


def center_nodes(nodes: Sequence[GraphNode], cx: float, cy: float) -> tuple[float, float]:
    """
    Translate every node so the bounding-box centre lands on (cx, cy).

    Meant for after a bulk load or a search, not for steady-state ticking.

    Returns:
        The (dx, dy) offset applied
    """
    if not nodes:
        return 0.0, 0.0
    min_x, min_y, max_x, max_y = bounding_box(nodes)
    offset_x = cx - (min_x + max_x) / 2
    offset_y = cy - (min_y + max_y) / 2
    for node in nodes:
        node.x += offset_x
        node.y += offset_y
    return offset_x, offset_y


def seed_positions(
    nodes: Sequence[GraphNode],
    origin: tuple[float, float] = (400.0, 300.0),
    spacing: float = 80.0,
    columns: int = 10,
) -> None:
    """Place nodes on a grid, row by row, with zero velocity."""
    ox, oy = origin
    for i, node in enumerate(nodes):
        node.move_to(ox + (i % columns) * spacing, oy + (i // columns) * spacing)


@dataclass
class ForceLayout:
    """
    Stateful stepper over the current snapshot.

    Holds the node and edge lists and keeps positions stable across
    snapshots: nodes whose id was already laid out keep their position and
    velocity, new nodes are seeded on a grid.
    """

    config: ForceLayoutConfig = field(default_factory=ForceLayoutConfig)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    nodes: list[GraphNode] = field(default_factory=list, init=False)
    edges: list[GraphEdge] = field(default_factory=list, init=False)
    current_tick: int = field(default=0, init=False)
    moving: bool = field(default=False, init=False)

    def load(self, nodes: Sequence[GraphNode], edges: Sequence[GraphEdge] = ()) -> int:
        """
        Replace the simulated graph.

        Returns:
            Number of nodes that were newly seeded
        """
        previous = node_index(self.nodes)
        fresh: list[GraphNode] = []
        for node in nodes:
            old = previous.get(node.id)
            if old is not None and old is not node:
                node.x, node.y = old.x, old.y
                node.vx, node.vy = old.vx, old.vy
            elif old is None:
                fresh.append(node)

        cfg = self.config
        seed_positions(fresh, cfg.seed_origin, cfg.seed_spacing, cfg.seed_columns)

        self.nodes = list(nodes)
        self.edges = list(edges)
        self.moving = bool(self.nodes)
        logger.debug(
            "Loaded %d nodes (%d new) and %d edges",
            len(self.nodes), len(fresh), len(self.edges),
        )
        return len(fresh)

    def load_snapshot(self, snapshot: GraphSnapshot) -> int:
        return self.load(snapshot.nodes, snapshot.edges)

    def step(self, dt: float | None = None) -> bool:
        """Run one tick. Returns True while still moving."""
        self.moving = step(
            self.nodes,
            self.edges,
            self.config.dt if dt is None else dt,
            config=self.config,
            rng=self.rng,
        )
        self.current_tick += 1
        if not self.moving:
            logger.debug("Layout settled at tick %d", self.current_tick)
        return self.moving

    def run(self, n_ticks: int, dt: float | None = None, stop_when_settled: bool = True) -> dict:
        """
        Run up to n ticks.

        Returns:
            Statistics dictionary
        """
        ran = 0
        for _ in range(n_ticks):
            self.step(dt)
            ran += 1
            if stop_when_settled and not self.moving:
                break

        return {
            "n_ticks": ran,
            "current_tick": self.current_tick,
            "settled": not self.moving,
            "total_velocity": self.total_velocity(),
        }

    def total_velocity(self) -> float:
        return total_velocity(self.nodes)

    def recenter(self, cx: float, cy: float) -> tuple[float, float]:
        return center_nodes(self.nodes, cx, cy)

    def find(self, node_id: str) -> GraphNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def place(self, node_id: str, x: float, y: float) -> bool:
        """
        Move a node (user drag). Must be called between ticks.

        Returns:
            False if no node has that id
        """
        node = self.find(node_id)
        if node is None:
            return False
        node.move_to(x, y)
        self.moving = True
        return True
