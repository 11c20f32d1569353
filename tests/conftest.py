"""
Pytest configuration and shared fixtures.
"""

import asyncio

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def make_nodes():
    """Factory for GraphNodes at given positions: make_nodes((0, 0), (100, 0))."""
    from forcegraph.core import GraphNode

    def _make(*positions, prefix="n"):
        return [
            GraphNode(id=f"{prefix}{i}", name=f"{prefix}{i}", x=float(x), y=float(y))
            for i, (x, y) in enumerate(positions)
        ]

    return _make


@pytest.fixture
def random_nodes(rng):
    """Factory for n nodes scattered uniformly over a square."""
    from forcegraph.core import GraphNode

    def _make(n, extent=1000.0):
        points = rng.uniform(0.0, extent, size=(n, 2))
        return [GraphNode(id=f"r{i}", x=float(x), y=float(y)) for i, (x, y) in enumerate(points)]

    return _make


@pytest.fixture
def wait_until():
    """Poll a predicate on the event loop until it holds (or time runs out)."""

    async def _wait(predicate, timeout=2.0, poll=0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                return False
            await asyncio.sleep(poll)
        return True

    return _wait


def session_frames(nodes, edges):
    """A Hello plus one begin/batch/end session, as wire dicts."""
    return [
        {"type": "Hello", "payload": {"version": "1.0", "node_count": len(nodes), "edge_count": len(edges)}},
        {"type": "GraphBegin", "payload": {}},
        {"type": "NodeBatch", "payload": {"nodes": nodes}},
        {"type": "EdgeBatch", "payload": {"edges": edges}},
        {"type": "GraphEnd", "payload": {}},
    ]


@pytest.fixture
def small_session():
    """Three nodes, two edges (one of them dangling)."""
    nodes = [
        {"id": "a", "name": "main", "kind": "function"},
        {"id": "b", "name": "parse", "kind": "function"},
        {"id": "c", "name": "Config", "kind": "class"},
    ]
    edges = [
        {"source": "a", "target": "b"},
        {"source": "b", "target": "ghost"},
    ]
    return session_frames(nodes, edges)
