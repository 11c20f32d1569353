"""Unit tests for the Barnes-Hut quadtree."""

import math

import pytest
import numpy as np

from forcegraph.core.graph import GraphNode
from forcegraph.core.quadtree import Quadrant, Quadtree, QuadtreeConfig
from forcegraph.analysis.forces import direct_repulsion


class TestQuadrant:
    """Tests for a single cell."""

    def test_contains_is_half_open(self):
        quad = Quadrant(0.0, 0.0, 10.0)
        assert quad.contains(0.0, 0.0)
        assert quad.contains(9.99, 9.99)
        assert not quad.contains(10.0, 5.0)
        assert not quad.contains(5.0, 10.0)
        assert not quad.contains(-0.01, 5.0)

    def test_accumulate_running_mean(self):
        quad = Quadrant(0.0, 0.0, 100.0)
        quad.accumulate(10.0, 20.0)
        quad.accumulate(30.0, 40.0)
        assert quad.mass == 2.0
        assert quad.center_of_mass == pytest.approx((20.0, 30.0))


class TestBuild:
    """Tests for tree construction."""

    def test_empty_tree(self):
        tree = Quadtree.build([])
        assert (tree.root.x, tree.root.y, tree.root.size) == (0.0, 0.0, 1000.0)
        assert tree.mass == 0.0

    def test_root_padding(self, make_nodes):
        nodes = make_nodes((0, 0), (200, 100))
        tree = Quadtree.build(nodes)
        assert tree.root.x == -50.0
        assert tree.root.y == -50.0
        assert tree.root.size == 300.0

    def test_root_mass_and_center(self, random_nodes):
        nodes = random_nodes(57)
        tree = Quadtree.build(nodes)
        assert tree.mass == 57
        mean_x = np.mean([node.x for node in nodes])
        mean_y = np.mean([node.y for node in nodes])
        assert tree.center_of_mass == pytest.approx((mean_x, mean_y))

    def test_every_node_inserted(self, random_nodes):
        nodes = random_nodes(200)
        tree = Quadtree.build(nodes)
        leaf_total = sum(len(q.nodes) for q in tree.iter_quadrants() if q.kind == "leaf")
        assert leaf_total == 200

    def test_leaf_splits_past_capacity(self, make_nodes):
        four = Quadtree.build(make_nodes((0, 0), (100, 0), (0, 100), (100, 100)))
        assert four.root.kind == "leaf"
        assert four.root.children is None

        five = Quadtree.build(make_nodes((0, 0), (100, 0), (0, 100), (100, 100), (50, 50)))
        assert five.root.kind == "internal"
        assert len(five.root.children) == 4
        assert five.root.nodes == []

    def test_internal_mass_is_sum_of_children(self, random_nodes):
        tree = Quadtree.build(random_nodes(100))
        for quad in tree.iter_quadrants():
            if quad.kind == "internal":
                assert quad.mass == sum(child.mass for child in quad.children)

    def test_coincident_nodes_stop_splitting(self, make_nodes):
        nodes = make_nodes(*[(5, 5)] * 12)
        tree = Quadtree.build(nodes)
        assert tree.mass == 12
        # Splitting stops once cells reach the minimum size
        assert all(q.size > 10.0 / 2 for q in tree.iter_quadrants())

    def test_insert_outside_root(self, make_nodes):
        tree = Quadtree(0.0, 0.0, 100.0)
        assert not tree.insert(GraphNode(id="far", x=500.0, y=500.0))
        assert tree.mass == 0.0


class TestComputeForce:
    """Tests for the force query."""

    def test_empty_tree_gives_zero(self):
        tree = Quadtree.build([])
        assert tree.compute_force(GraphNode(id="q", x=10.0, y=10.0), 5000.0) == (0.0, 0.0)

    def test_single_node_feels_nothing(self, make_nodes):
        [node] = make_nodes((10, 10))
        tree = Quadtree.build([node])
        assert tree.compute_force(node, 5000.0) == (0.0, 0.0)

    def test_two_nodes_push_apart(self, make_nodes):
        a, b = make_nodes((0, 0), (100, 0))
        tree = Quadtree.build([a, b])
        fx, fy = tree.compute_force(a, 5000.0)
        # k / d² = 5000 / 100²
        assert fx == pytest.approx(-0.5)
        assert fy == pytest.approx(0.0)
        bx, _ = tree.compute_force(b, 5000.0)
        assert bx == pytest.approx(0.5)

    def test_coincident_nodes_get_bounded_jitter(self, make_nodes, rng):
        nodes = make_nodes(*[(5, 5)] * 6)
        tree = Quadtree.build(nodes, rng=rng)
        fx, fy = tree.compute_force(nodes[0], 5000.0)
        assert math.isfinite(fx) and math.isfinite(fy)
        assert abs(fx) <= 0.05 * len(nodes)
        assert abs(fy) <= 0.05 * len(nodes)

    @pytest.mark.parametrize("theta", [0.0, 1e-3])
    def test_small_theta_matches_exact_sum(self, random_nodes, theta):
        nodes = random_nodes(150)
        tree = Quadtree.build(nodes, config=QuadtreeConfig(theta=theta))
        approx = np.array([tree.compute_force(node, 5000.0) for node in nodes])
        exact = direct_repulsion(nodes, 5000.0)
        error = np.linalg.norm(approx - exact, axis=1)
        assert np.all(error <= 0.01 * np.linalg.norm(exact, axis=1) + 1e-12)

    def test_default_theta_is_close(self, random_nodes):
        nodes = random_nodes(300)
        tree = Quadtree.build(nodes)
        approx = np.array([tree.compute_force(node, 5000.0) for node in nodes])
        exact = direct_repulsion(nodes, 5000.0)
        assert np.linalg.norm(approx - exact) / np.linalg.norm(exact) < 0.1


class TestDiagnostics:
    """Tests for introspection helpers."""

    def test_depth_and_leaves(self, make_nodes, random_nodes):
        assert Quadtree.build(make_nodes((0, 0))).depth() == 1
        assert Quadtree.build(make_nodes((0, 0))).leaf_count() == 1

        tree = Quadtree.build(random_nodes(100))
        assert tree.depth() > 1
        assert tree.leaf_count() >= 4
