"""Smoke tests for the matplotlib renderer."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from forcegraph.core.graph import GraphEdge, GraphNode
from forcegraph.analysis import compare_barnes_hut_vs_direct, fit_settling_rate
from forcegraph.engine import GraphState
from forcegraph.viz import (
    ViewTransform,
    color_for_kind,
    plot_graph,
    plot_state,
    plot_theta_sweep,
    plot_velocity_trace,
    save_figure,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


class TestViewTransform:
    """Tests for the world → screen mapping."""

    def test_round_trip(self):
        transform = ViewTransform(scale=2.0, offset_x=10.0, offset_y=-5.0)
        assert transform.apply(3.0, 4.0) == (16.0, 3.0)
        assert transform.invert(16.0, 3.0) == (3.0, 4.0)

    def test_fit_centers_nodes(self, make_nodes):
        nodes = make_nodes((0, 0), (200, 100))
        transform = ViewTransform.fit(nodes, width=800, height=600, margin=0.0)
        assert transform.scale == pytest.approx(4.0)
        assert transform.apply(100.0, 50.0) == pytest.approx((400.0, 300.0))

    def test_fit_empty(self):
        assert ViewTransform.fit([], 800, 600) == ViewTransform()


class TestPlots:
    """Tests that plots build without errors."""

    def test_kind_colors(self):
        assert color_for_kind("function") != color_for_kind("class")
        assert color_for_kind("struct") == color_for_kind("class")
        assert color_for_kind("unknown-kind") == color_for_kind("")

    def test_plot_graph(self, make_nodes):
        nodes = make_nodes((0, 0), (100, 0), (50, 80))
        edges = [GraphEdge("n0", "n1"), GraphEdge("n1", "ghost")]
        fig, ax = plot_graph(nodes, edges, selection="n0", spotlight="n2", show_labels=True, title="t")
        assert ax.get_title() == "t"
        assert len(ax.collections) == 4  # edges, nodes, spotlight ring, selection ring

    def test_plot_graph_empty(self):
        fig, ax = plot_graph([], [])
        assert len(ax.collections) == 0

    def test_plot_state(self):
        state = GraphState(nodes=[GraphNode(id="a", kind="function")], selected_node_id="a")
        fig, ax = plot_state(state)
        assert len(ax.collections) == 2

    def test_plot_velocity_trace(self):
        trace = 10.0 * 0.8 ** np.arange(30)
        fig, ax = plot_velocity_trace(trace, fit=fit_settling_rate(trace), threshold=0.5)
        assert len(ax.lines) == 3

    def test_plot_theta_sweep(self, random_nodes):
        nodes = random_nodes(20)
        comparisons = [compare_barnes_hut_vs_direct(nodes, theta=t) for t in (0.0, 0.7)]
        fig, ax = plot_theta_sweep(comparisons)
        assert len(ax.lines) == 1

    def test_save_figure(self, tmp_path, make_nodes):
        fig, _ = plot_graph(make_nodes((0, 0), (10, 10)), [])
        path = tmp_path / "layout.png"
        save_figure(fig, path, dpi=50)
        assert path.exists()
