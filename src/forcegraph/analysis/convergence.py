"""
Settling diagnostics for the force layout.

With damping d < 1 and weak forces the total velocity decays roughly
geometrically once the layout is near equilibrium:

    V(t) ≈ V₀ · exp(-r·t)

so log V(t) is close to linear in t. The fitted rate r (and the half-life
ln 2 / r) summarise how quickly a given configuration calms down.
"""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np
from scipy import stats

from forcegraph.core.layout import ForceLayout


@dataclass
class SettlingFit:
    """Exponential fit to a velocity trace."""

    rate: float  # r in V ≈ V₀·exp(-r·t); positive when settling
    initial: float  # V₀
    half_life: float  # Ticks for V to halve (inf if not decaying)
    r_squared: float
    n_points: int


def record_velocity_trace(
    layout: ForceLayout,
    n_ticks: int,
    dt: float | None = None,
    stop_when_settled: bool = False,
) -> np.ndarray:
    """
    Run the layout and record total velocity after each tick.

    Args:
        layout: Loaded ForceLayout (advanced in place)
        n_ticks: Maximum number of ticks
        dt: Time step (default: layout config)
        stop_when_settled: Stop at the first tick that reports settled

    Returns:
        1D array of Σ|v|, one entry per tick run
    """
    trace = []
    for _ in range(n_ticks):
        moving = layout.step(dt)
        trace.append(layout.total_velocity())
        if stop_when_settled and not moving:
            break
    return np.array(trace, dtype=float)


def ticks_to_settle(trace: np.ndarray, threshold: float = 0.5) -> int | None:
    """First tick (1-based) at which the trace drops to `threshold`, or None."""
    below = np.nonzero(np.asarray(trace) <= threshold)[0]
    if len(below) == 0:
        return None
    return int(below[0]) + 1


def fit_settling_rate(
    trace: np.ndarray,
    skip: int = 0,
    floor: float = 1e-9,
) -> SettlingFit:
    """
    Fit log V(t) = log V₀ - r·t by linear regression.

    Args:
        trace: Velocity trace from record_velocity_trace
        skip: Leading ticks to ignore (initial transient)
        floor: Values at or below this are dropped before taking logs

    Returns:
        SettlingFit

    Raises:
        ValueError: fewer than two usable points
    """
    values = np.asarray(trace, dtype=float)[skip:]
    ticks = np.arange(skip, skip + len(values), dtype=float)

    usable = values > floor
    if np.count_nonzero(usable) < 2:
        raise ValueError("Need at least two positive velocity samples to fit")

    t = ticks[usable]
    log_v = np.log(values[usable])

    slope, intercept, r_value, _, _ = stats.linregress(t, log_v)
    rate = -float(slope)
    half_life = float(np.log(2) / rate) if rate > 0 else float("inf")

    return SettlingFit(
        rate=rate,
        initial=float(np.exp(intercept)),
        half_life=half_life,
        r_squared=float(r_value ** 2),
        n_points=int(len(t)),
    )
