"""
Test: How accurate is Barnes-Hut repulsion as theta varies?

θ = 0 opens every cell and reproduces the exact O(n²) sum. Larger θ treats
more distant clusters as single point masses: faster, less accurate. This
sweeps θ on a clustered point cloud and reports the relative force error
together with the time per force evaluation.
"""

import time

import numpy as np
import matplotlib.pyplot as plt
from pathlib import Path

from forcegraph.core import GraphNode
from forcegraph.analysis import direct_repulsion, theta_sweep
from forcegraph.viz import plot_theta_sweep, save_figure


def make_clusters(n_clusters: int, per_cluster: int, rng: np.random.Generator) -> list[GraphNode]:
    """Gaussian blobs scattered over a 2000×2000 area."""
    nodes = []
    centers = rng.uniform(0, 2000, size=(n_clusters, 2))
    for c, (cx, cy) in enumerate(centers):
        points = rng.normal((cx, cy), 60.0, size=(per_cluster, 2))
        for k, (x, y) in enumerate(points):
            nodes.append(GraphNode(id=f"c{c}_{k}", x=float(x), y=float(y)))
    return nodes


def main():
    """Run the theta sweep."""
    rng = np.random.default_rng(seed=42)

    print("=" * 60)
    print("Barnes-Hut Accuracy vs Theta")
    print("=" * 60)

    nodes = make_clusters(n_clusters=8, per_cluster=60, rng=rng)
    print(f"\nNodes: {len(nodes)}")

    start = time.perf_counter()
    direct_repulsion(nodes)
    direct_ms = (time.perf_counter() - start) * 1000
    print(f"Exact sum: {direct_ms:.1f} ms")

    thetas = [0.0, 0.2, 0.4, 0.5, 0.7, 0.9, 1.2, 1.5]
    print(f"\n{'θ':>6} {'rel error':>12} {'max node':>12} {'ms':>8}")
    print("-" * 42)
    comparisons = []
    for theta in thetas:
        start = time.perf_counter()
        [result] = theta_sweep(nodes, [theta], rng=rng)
        elapsed_ms = (time.perf_counter() - start) * 1000
        comparisons.append(result)
        print(f"{theta:>6.2f} {result.relative_error:>12.2e} {result.max_node_error:>12.2e} {elapsed_ms:>8.1f}")

    fig, ax = plot_theta_sweep(comparisons)
    ax.set_yscale("log")
    ax.set_title(f"Barnes-Hut relative error ({len(nodes)} nodes)")

    output_dir = Path("output/demo_theta_accuracy")
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "theta_sweep.png"
    save_figure(fig, output_path)
    plt.close(fig)
    print(f"\nSaved: {output_path}")

    default = next(c for c in comparisons if c.theta == 0.7)
    print("\n" + "=" * 60)
    print("  SUMMARY")
    print("=" * 60)
    print(f"  • θ=0 error: {comparisons[0].relative_error:.2e}")
    print(f"  • θ=0.7 (default) error: {default.relative_error:.2e}")
    print("=" * 60)


if __name__ == "__main__":
    main()
