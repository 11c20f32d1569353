"""
Core layout primitives.

This layer knows nothing about frames, sockets or sessions. It only knows:
- Nodes with a position and a velocity
- Edges between node ids
- A quadtree that aggregates mass for Barnes-Hut repulsion
- One synchronous simulation tick, and how to tell when it has settled
"""

from forcegraph.core.graph import (
    GraphNode,
    GraphEdge,
    GraphSnapshot,
    node_index,
    resolve_edges,
)
from forcegraph.core.quadtree import Quadrant, Quadtree, QuadtreeConfig
from forcegraph.core.layout import (
    ForceLayout,
    ForceLayoutConfig,
    bounding_box,
    center_nodes,
    compute_forces,
    seed_positions,
    spring_force,
    step,
    total_velocity,
)

__all__ = [
    "GraphNode",
    "GraphEdge",
    "GraphSnapshot",
    "node_index",
    "resolve_edges",
    "Quadrant",
    "Quadtree",
    "QuadtreeConfig",
    "ForceLayout",
    "ForceLayoutConfig",
    "bounding_box",
    "center_nodes",
    "compute_forces",
    "seed_positions",
    "spring_force",
    "step",
    "total_velocity",
]
