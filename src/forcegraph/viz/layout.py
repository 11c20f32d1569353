"""
Offline rendering of graph layouts.

Implements the renderer side of a session: given nodes, edges, the current
selection and a viewport transform, draw the graph. Node color follows the
node kind, node size follows centrality, the selected node gets a ring.

Also plots velocity traces and theta sweeps from forcegraph.analysis.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
from matplotlib.axes import Axes

from forcegraph.core.graph import GraphEdge, GraphNode, node_index, resolve_edges
from forcegraph.core.layout import bounding_box

if TYPE_CHECKING:
    from forcegraph.analysis.convergence import SettlingFit
    from forcegraph.analysis.forces import ForceComparison
    from forcegraph.engine import GraphState


# RGB in [0, 1]
KIND_COLORS = {
    "function": (0.0, 0.851, 1.0),  # Cyan
    "class": (0.616, 0.306, 0.867),  # Purple
    "struct": (0.616, 0.306, 0.867),
    "enum": (0.616, 0.306, 0.867),
    "method": (0.0, 0.961, 0.627),  # Mint
    "variable": (1.0, 0.722, 0.0),  # Amber
    "constant": (1.0, 0.722, 0.0),
    "field": (1.0, 0.722, 0.0),
    "import": (1.0, 0.420, 0.420),  # Coral
    "use": (1.0, 0.420, 0.420),
}
DEFAULT_COLOR = (0.588, 0.588, 0.667)
BACKGROUND = "#12121a"


def color_for_kind(kind: str) -> tuple[float, float, float]:
    return KIND_COLORS.get(kind, DEFAULT_COLOR)


@dataclass
class ViewTransform:
    """World → screen mapping: screen = world · scale + offset."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y

    def invert(self, sx: float, sy: float) -> tuple[float, float]:
        """Screen → world, e.g. to turn a pointer drag into a node position."""
        return (sx - self.offset_x) / self.scale, (sy - self.offset_y) / self.scale

    def apply_array(self, points: np.ndarray) -> np.ndarray:
        return points * self.scale + np.array([self.offset_x, self.offset_y])

    @classmethod
    def fit(
        cls,
        nodes: Sequence[GraphNode],
        width: float,
        height: float,
        margin: float = 40.0,
    ) -> ViewTransform:
        """Scale and shift so every node fits inside the viewport."""
        if not nodes:
            return cls()
        min_x, min_y, max_x, max_y = bounding_box(nodes)
        span_x = max(max_x - min_x, 1.0)
        span_y = max(max_y - min_y, 1.0)
        scale = min((width - 2 * margin) / span_x, (height - 2 * margin) / span_y)
        scale = max(scale, 1e-6)
        center_x = (min_x + max_x) / 2
        center_y = (min_y + max_y) / 2
        return cls(
            scale=scale,
            offset_x=width / 2 - center_x * scale,
            offset_y=height / 2 - center_y * scale,
        )


def plot_graph(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    selection: str | None = None,
    transform: ViewTransform | None = None,
    ax: Axes | None = None,
    figsize: tuple[float, float] = (10, 8),
    spotlight: str | None = None,
    show_labels: bool = False,
    title: str | None = None,
) -> tuple[Figure, Axes]:
    """
    Draw a graph layout.

    Args:
        nodes: Laid-out nodes
        edges: Edges (dangling ones are skipped)
        selection: Id of the selected node, drawn with a white ring
        transform: World → screen transform (identity if None)
        ax: Existing axes (creates new if None)
        spotlight: Id of a node to highlight with a larger halo
        show_labels: Write node names next to the markers
        title: Plot title

    Returns:
        (fig, ax) tuple
    """
    transform = transform or ViewTransform()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    ax.set_facecolor(BACKGROUND)
    ax.set_aspect("equal")

    index = node_index(list(nodes))
    segments = [
        (transform.apply(*src.position), transform.apply(*tgt.position))
        for _, src, tgt in resolve_edges(list(edges), index)
    ]
    if segments:
        ax.add_collection(
            LineCollection(segments, colors=[(1.0, 1.0, 1.0, 0.25)], linewidths=0.8, zorder=1)
        )

    if nodes:
        points = transform.apply_array(np.array([node.position for node in nodes], dtype=float))
        colors = [color_for_kind(node.kind) for node in nodes]
        sizes = [30.0 + 120.0 * node.centrality for node in nodes]
        ax.scatter(points[:, 0], points[:, 1], s=sizes, c=colors, zorder=2, edgecolors="none")

        for node_id, ring, size in ((spotlight, "#ffb800", 600.0), (selection, "white", 300.0)):
            node = index.get(node_id) if node_id is not None else None
            if node is None:
                continue
            sx, sy = transform.apply(*node.position)
            ax.scatter([sx], [sy], s=size, facecolors="none", edgecolors=ring, linewidths=1.5, zorder=3)

        if show_labels:
            for node, (sx, sy) in zip(nodes, points):
                ax.annotate(
                    node.name or node.id,
                    (sx, sy),
                    xytext=(4, 4),
                    textcoords="offset points",
                    color="white",
                    fontsize=7,
                )

        ax.autoscale_view()

    # Screen coordinates grow downward
    if not ax.yaxis_inverted():
        ax.invert_yaxis()
    ax.set_xticks([])
    ax.set_yticks([])
    if title:
        ax.set_title(title)

    return fig, ax


def plot_state(
    state: "GraphState",
    transform: ViewTransform | None = None,
    ax: Axes | None = None,
    **kwargs,
) -> tuple[Figure, Axes]:
    """plot_graph for a session state snapshot."""
    return plot_graph(
        state.nodes,
        state.edges,
        selection=state.selected_node_id,
        transform=transform,
        ax=ax,
        spotlight=state.spotlight_node_id,
        **kwargs,
    )


def plot_velocity_trace(
    trace: np.ndarray,
    fit: "SettlingFit | None" = None,
    threshold: float | None = None,
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
) -> tuple[Figure, Axes]:
    """
    Plot total velocity per tick on a log scale.

    Args:
        trace: Velocity trace
        fit: Optional exponential fit to overlay
        threshold: Optional settle threshold drawn as a horizontal line
        ax: Existing axes (creates new if None)

    Returns:
        (fig, ax) tuple
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    trace = np.asarray(trace, dtype=float)
    ticks = np.arange(len(trace))
    ax.semilogy(ticks, np.maximum(trace, 1e-12), label="Σ|v|")

    if fit is not None:
        model = fit.initial * np.exp(-fit.rate * ticks)
        ax.semilogy(
            ticks, model, "--",
            label=f"fit: r={fit.rate:.3f}, t½={fit.half_life:.1f}",
        )
    if threshold is not None:
        ax.axhline(threshold, color="gray", linestyle=":", label="settle threshold")

    ax.set_xlabel("Tick")
    ax.set_ylabel("Total velocity")
    ax.grid(True, alpha=0.3)
    ax.legend()

    return fig, ax


def plot_theta_sweep(
    comparisons: Sequence["ForceComparison"],
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
) -> tuple[Figure, Axes]:
    """Relative force error against theta."""
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    thetas = [c.theta for c in comparisons]
    errors = [c.relative_error for c in comparisons]
    ax.plot(thetas, errors, "o-")
    ax.set_xlabel("θ")
    ax.set_ylabel("Relative force error")
    ax.grid(True, alpha=0.3)

    return fig, ax


def save_figure(fig: Figure, path: str | Path, dpi: int = 150, **kwargs) -> None:
    """Save figure to file."""
    fig.savefig(path, dpi=dpi, bbox_inches="tight", **kwargs)
