"""
Visualization utilities.

- Graph layouts (kind colors, centrality sizes, selection ring)
- Velocity traces and settling fits
- Theta sweeps
"""

from forcegraph.viz.layout import (
    KIND_COLORS,
    ViewTransform,
    color_for_kind,
    plot_graph,
    plot_state,
    plot_theta_sweep,
    plot_velocity_trace,
    save_figure,
)

__all__ = [
    "KIND_COLORS",
    "ViewTransform",
    "color_for_kind",
    "plot_graph",
    "plot_state",
    "plot_theta_sweep",
    "plot_velocity_trace",
    "save_figure",
]
