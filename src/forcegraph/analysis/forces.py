"""
Exact repulsion reference and Barnes-Hut accuracy check.

The quadtree approximates far clusters by their center of mass. The exact
O(n²) sum is cheap enough for a few thousand nodes with numpy, which makes
it a useful reference for choosing theta:

    error(θ) = ‖F_bh(θ) - F_exact‖ / ‖F_exact‖

Coincident pairs (squared distance below the quadtree's near threshold)
contribute nothing to the reference; the quadtree jitters them instead, so
comparisons should use distinct positions.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Sequence

import numpy as np

from forcegraph.core.graph import GraphNode
from forcegraph.core.quadtree import Quadtree, QuadtreeConfig


@dataclass
class ForceComparison:
    """Barnes-Hut forces against the exact reference."""

    theta: float
    approx: np.ndarray  # shape [n, 2]
    exact: np.ndarray  # shape [n, 2]
    relative_error: float  # ‖approx - exact‖ / ‖exact‖ over all nodes
    max_node_error: float  # Worst per-node relative error
    correlation: float  # Between flattened force components


def positions_array(nodes: Sequence[GraphNode]) -> np.ndarray:
    """Node positions as an [n, 2] array."""
    if not nodes:
        return np.zeros((0, 2))
    return np.array([[node.x, node.y] for node in nodes], dtype=float)


def direct_repulsion(
    nodes: Sequence[GraphNode],
    repulsion: float = 5000.0,
    near_distance_sq: float = 1.0,
) -> np.ndarray:
    """
    Exact pairwise repulsion on every node.

    F_i = Σ_j k · (p_i - p_j) / |p_i - p_j|³

    Args:
        nodes: Nodes to evaluate
        repulsion: Strength constant k
        near_distance_sq: Pairs closer than this (squared) are skipped

    Returns:
        Forces, shape [n, 2], same order as `nodes`
    """
    pos = positions_array(nodes)
    if len(pos) < 2:
        return np.zeros_like(pos)

    # diff[i, j] = p_i - p_j
    diff = pos[:, None, :] - pos[None, :, :]
    dist_sq = np.sum(diff ** 2, axis=-1)

    mask = dist_sq >= near_distance_sq
    safe = np.where(mask, dist_sq, 1.0)
    scale = np.where(mask, repulsion / (safe * np.sqrt(safe)), 0.0)

    return np.sum(diff * scale[:, :, None], axis=1)


def barnes_hut_repulsion(
    nodes: Sequence[GraphNode],
    repulsion: float = 5000.0,
    config: QuadtreeConfig | None = None,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Quadtree-approximated repulsion, shape [n, 2]."""
    if not nodes:
        return np.zeros((0, 2))
    tree = Quadtree.build(nodes, config=config, rng=rng)
    return np.array([tree.compute_force(node, repulsion) for node in nodes], dtype=float)


def compare_barnes_hut_vs_direct(
    nodes: Sequence[GraphNode],
    theta: float = 0.7,
    repulsion: float = 5000.0,
    config: QuadtreeConfig | None = None,
    rng: np.random.Generator | None = None,
) -> ForceComparison:
    """
    Measure how far the quadtree forces are from the exact sum.

    Args:
        nodes: Nodes at distinct positions
        theta: Opening threshold to test (overrides `config.theta`)
        repulsion: Strength constant k
        config: Other quadtree settings
        rng: Jitter source (only used for coincident points)

    Returns:
        ForceComparison with both force arrays and error metrics
    """
    config = replace(config or QuadtreeConfig(), theta=theta)

    approx = barnes_hut_repulsion(nodes, repulsion, config=config, rng=rng)
    exact = direct_repulsion(nodes, repulsion, near_distance_sq=config.near_distance_sq)

    exact_norm = np.linalg.norm(exact)
    if exact_norm < 1e-12:
        relative_error = float(np.linalg.norm(approx - exact))
    else:
        relative_error = float(np.linalg.norm(approx - exact) / exact_norm)

    node_exact = np.linalg.norm(exact, axis=1) if len(exact) else np.zeros(0)
    node_diff = np.linalg.norm(approx - exact, axis=1) if len(exact) else np.zeros(0)
    significant = node_exact > 1e-12
    if np.any(significant):
        max_node_error = float(np.max(node_diff[significant] / node_exact[significant]))
    else:
        max_node_error = 0.0

    if approx.size > 1 and np.std(exact) > 0 and np.std(approx) > 0:
        correlation = float(np.corrcoef(approx.flatten(), exact.flatten())[0, 1])
    else:
        correlation = 1.0 if relative_error < 1e-12 else 0.0

    return ForceComparison(
        theta=theta,
        approx=approx,
        exact=exact,
        relative_error=relative_error,
        max_node_error=max_node_error,
        correlation=correlation,
    )


def theta_sweep(
    nodes: Sequence[GraphNode],
    thetas: Sequence[float],
    repulsion: float = 5000.0,
    rng: np.random.Generator | None = None,
) -> list[ForceComparison]:
    """compare_barnes_hut_vs_direct for each theta in turn."""
    return [
        compare_barnes_hut_vs_direct(nodes, theta=theta, repulsion=repulsion, rng=rng)
        for theta in thetas
    ]
