"""
Quadtree spatial index for Barnes-Hut repulsion.

The tree is rebuilt from scratch every simulation tick and thrown away
afterwards. Each quadrant keeps a running mass (node count) and centre of
mass, updated incrementally as nodes are inserted through it, so after any
insertion a quadrant's aggregate equals the mean position of everything
below it.

Force queries walk the tree and stop early at quadrants that look small
from the query point:

    size / distance < θ   →   treat the whole quadrant as one point mass

Internal quadrants that fail the test are opened; leaves that fail it are
summed member by member (they hold at most a handful of nodes). θ = 0
therefore degenerates to exact pairwise summation, larger θ is faster and
coarser. The default 0.7 is on the fast side of the usual 0.5.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Sequence
import math

import numpy as np

from forcegraph.core.graph import GraphNode


@dataclass
class QuadtreeConfig:
    """Configuration for the spatial index."""

    theta: float = 0.7  # Barnes-Hut opening threshold
    max_nodes_per_cell: int = 4  # A leaf splits once it holds more than this
    min_cell_size: float = 10.0  # Leaves this small never split (co-located nodes stay together)
    padding: float = 50.0  # Margin around the node bounding box
    empty_size: float = 1000.0  # Root size when there are no nodes
    jitter: float = 0.1  # Width of the random nudge for coincident points
    near_distance_sq: float = 1.0  # Below this squared distance points count as coincident


@dataclass
class Quadrant:
    """
    One square cell of the tree.

    A quadrant is either a leaf (kind == "leaf", `nodes` holds the graph
    nodes) or internal (kind == "internal", `children` holds exactly four
    quadrants NW, NE, SW, SE and `nodes` is empty). Never both.
    """

    x: float
    y: float
    size: float
    kind: Literal["leaf", "internal"] = "leaf"
    nodes: list[GraphNode] = field(default_factory=list)
    children: tuple[Quadrant, Quadrant, Quadrant, Quadrant] | None = None

    # Aggregate of everything in this subtree
    mass: float = 0.0
    cx: float = 0.0
    cy: float = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.kind == "leaf"

    @property
    def center_of_mass(self) -> tuple[float, float]:
        return self.cx, self.cy

    def contains(self, px: float, py: float) -> bool:
        """Half-open containment: [x, x+size) × [y, y+size)."""
        return self.x <= px < self.x + self.size and self.y <= py < self.y + self.size

    def accumulate(self, px: float, py: float) -> None:
        """Fold one unit mass at (px, py) into the running centre of mass."""
        new_mass = self.mass + 1.0
        self.cx = (self.cx * self.mass + px) / new_mass
        self.cy = (self.cy * self.mass + py) / new_mass
        self.mass = new_mass


def _point_mass_force(
    dx: float, dy: float, dist: float, mass: float, repulsion: float
) -> tuple[float, float]:
    """Inverse-square push away from a mass at offset (dx, dy)."""
    force = repulsion * mass / (dist * dist)
    return -(dx / dist) * force, -(dy / dist) * force


class Quadtree:
    """
    Barnes-Hut quadtree over graph nodes.

    Usage:
        tree = Quadtree.build(nodes)
        fx, fy = tree.compute_force(node, repulsion=5000.0)
    """

    def __init__(
        self,
        x: float,
        y: float,
        size: float,
        config: QuadtreeConfig | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.config = config or QuadtreeConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.root = Quadrant(x, y, size)

    @classmethod
    def build(
        cls,
        nodes: Sequence[GraphNode],
        config: QuadtreeConfig | None = None,
        rng: np.random.Generator | None = None,
    ) -> Quadtree:
        """
        Build a tree covering every node.

        The root is a square padded by `config.padding` on each side of the
        node bounding box, so every node lies strictly inside it.
        """
        config = config or QuadtreeConfig()
        if not nodes:
            return cls(0.0, 0.0, config.empty_size, config=config, rng=rng)

        min_x = min(node.x for node in nodes)
        max_x = max(node.x for node in nodes)
        min_y = min(node.y for node in nodes)
        max_y = max(node.y for node in nodes)

        pad = config.padding
        size = max(max_x - min_x + 2 * pad, max_y - min_y + 2 * pad)

        tree = cls(min_x - pad, min_y - pad, size, config=config, rng=rng)
        for node in nodes:
            tree.insert(node)
        return tree

    # ═══════════════════════════════════════════════════════════════
    # CONSTRUCTION
    # ═══════════════════════════════════════════════════════════════

    @property
    def mass(self) -> float:
        return self.root.mass

    @property
    def center_of_mass(self) -> tuple[float, float]:
        return self.root.center_of_mass

    def insert(self, node: GraphNode) -> bool:
        """
        Insert a node. Returns False if it lies outside the root square.
        """
        return self._insert(self.root, node)

    def _insert(self, quad: Quadrant, node: GraphNode) -> bool:
        if not quad.contains(node.x, node.y):
            return False

        quad.accumulate(node.x, node.y)

        if quad.kind == "internal":
            return self._insert_into_child(quad, node)

        quad.nodes.append(node)
        if (
            len(quad.nodes) > self.config.max_nodes_per_cell
            and quad.size > self.config.min_cell_size
        ):
            self._subdivide(quad)
        return True

    def _subdivide(self, quad: Quadrant) -> None:
        """Turn a leaf into an internal quadrant and push its nodes down."""
        half = quad.size / 2
        quad.children = (
            Quadrant(quad.x, quad.y, half),  # NW
            Quadrant(quad.x + half, quad.y, half),  # NE
            Quadrant(quad.x, quad.y + half, half),  # SW
            Quadrant(quad.x + half, quad.y + half, half),  # SE
        )
        quad.kind = "internal"
        pending, quad.nodes = quad.nodes, []
        for node in pending:
            self._insert_into_child(quad, node)

    def _insert_into_child(self, quad: Quadrant, node: GraphNode) -> bool:
        for child in quad.children:
            if child.contains(node.x, node.y):
                return self._insert(child, node)
        return False

    # ═══════════════════════════════════════════════════════════════
    # FORCE QUERY
    # ═══════════════════════════════════════════════════════════════

    def compute_force(self, node: GraphNode, repulsion: float) -> tuple[float, float]:
        """
        Aggregate repulsive force on `node` from everything in the tree.

        Args:
            node: Query node (normally one of the inserted nodes)
            repulsion: Strength constant k in F = k·m / d²

        Returns:
            (fx, fy) pointing away from the other nodes
        """
        return self._force(self.root, node, repulsion)

    def _force(self, quad: Quadrant, node: GraphNode, repulsion: float) -> tuple[float, float]:
        if quad.mass == 0:
            return 0.0, 0.0

        dx = quad.cx - node.x
        dy = quad.cy - node.y
        dist_sq = dx * dx + dy * dy

        # A cell whose center sits on the query point is always opened;
        # coincident members get jittered one by one in the leaf loop.
        if dist_sq >= self.config.near_distance_sq:
            dist = math.sqrt(dist_sq)
            if quad.size / dist < self.config.theta:
                return _point_mass_force(dx, dy, dist, quad.mass, repulsion)

        fx = 0.0
        fy = 0.0
        if quad.kind == "leaf":
            # At most max_nodes_per_cell members (more only below min_cell_size)
            for other in quad.nodes:
                if other is node:
                    continue
                odx = other.x - node.x
                ody = other.y - node.y
                odist_sq = odx * odx + ody * ody
                if odist_sq < self.config.near_distance_sq:
                    jx, jy = self._jitter()
                    fx += jx
                    fy += jy
                    continue
                ofx, ofy = _point_mass_force(odx, ody, math.sqrt(odist_sq), 1.0, repulsion)
                fx += ofx
                fy += ofy
            return fx, fy

        for child in quad.children:
            if child.mass > 0:
                cfx, cfy = self._force(child, node, repulsion)
                fx += cfx
                fy += cfy
        return fx, fy

    def _jitter(self) -> tuple[float, float]:
        half = self.config.jitter / 2
        jx, jy = self.rng.uniform(-half, half, size=2)
        return float(jx), float(jy)

    # ═══════════════════════════════════════════════════════════════
    # DIAGNOSTICS
    # ═══════════════════════════════════════════════════════════════

    def iter_quadrants(self):
        """Depth-first iteration over every quadrant."""
        stack = [self.root]
        while stack:
            quad = stack.pop()
            yield quad
            if quad.children is not None:
                stack.extend(quad.children)

    def depth(self) -> int:
        """Number of levels (a lone root is depth 1)."""

        def _depth(quad: Quadrant) -> int:
            if quad.children is None:
                return 1
            return 1 + max(_depth(child) for child in quad.children)

        return _depth(self.root)

    def leaf_count(self) -> int:
        return sum(1 for quad in self.iter_quadrants() if quad.kind == "leaf")
