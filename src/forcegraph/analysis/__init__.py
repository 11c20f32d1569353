"""
Analysis layer: offline checks on the layout.

IMPORTANT: Nothing here is used while a session runs.

- direct_repulsion: exact O(n²) forces as a reference
- compare_barnes_hut_vs_direct: quadtree accuracy for a given theta
- record_velocity_trace / fit_settling_rate: how fast a layout settles
"""

from forcegraph.analysis.forces import (
    ForceComparison,
    barnes_hut_repulsion,
    compare_barnes_hut_vs_direct,
    direct_repulsion,
    positions_array,
    theta_sweep,
)
from forcegraph.analysis.convergence import (
    SettlingFit,
    fit_settling_rate,
    record_velocity_trace,
    ticks_to_settle,
)

__all__ = [
    "ForceComparison",
    "barnes_hut_repulsion",
    "compare_barnes_hut_vs_direct",
    "direct_repulsion",
    "positions_array",
    "theta_sweep",
    "SettlingFit",
    "fit_settling_rate",
    "record_velocity_trace",
    "ticks_to_settle",
]
