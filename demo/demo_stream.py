"""
Demo: Replay a recorded indexer session through a full layout engine.

No socket involved: a loopback transport plays the peer. The first connect
attempt is refused to show the backoff; the second one streams a small
graph in two batches, then points the spotlight at one node.

The demo:
1. Scripts the peer (refusal, then hello/begin/batches/end/focus)
2. Starts a LayoutEngine and waits for the snapshot
3. Lets the layout settle, drags one node, lets it settle again
4. Saves the final layout
"""

import asyncio
import logging

import matplotlib.pyplot as plt
from pathlib import Path

from forcegraph.engine import EngineConfig, LayoutEngine
from forcegraph.logging_config import setup_logging
from forcegraph.net import ConnectionManager, LoopbackTransport, ReconnectPolicy
from forcegraph.viz import ViewTransform, plot_state, save_figure


def recorded_session() -> list[dict]:
    """Frames as an indexer would send them for a tiny project."""
    names = ["main", "parse_args", "load_config", "Config", "run", "Worker", "Worker.step", "log"]
    kinds = ["function", "function", "function", "class", "function", "class", "method", "function"]
    nodes = [
        {
            "id": f"n{i}",
            "name": name,
            "kind": kind,
            "file": "app.py",
            "lineStart": 10 * i + 1,
            "lineEnd": 10 * i + 8,
            "centrality": 1.0 / (i + 1),
        }
        for i, (name, kind) in enumerate(zip(names, kinds))
    ]
    calls = [(0, 1), (0, 2), (2, 3), (0, 4), (4, 5), (5, 6), (6, 7), (4, 7), (2, 7)]
    edges = [{"source": f"n{a}", "target": f"n{b}", "kind": "calls"} for a, b in calls]

    return [
        {"type": "Hello", "payload": {"version": "0.1.0", "node_count": len(nodes), "edge_count": len(edges)}},
        {"type": "GraphBegin", "payload": {}},
        {"type": "NodeBatch", "payload": {"nodes": nodes[:5]}},
        {"type": "NodeBatch", "payload": {"nodes": nodes[5:]}},
        {"type": "EdgeBatch", "payload": {"edges": edges}},
        {"type": "GraphEnd", "payload": {}},
        {"type": "FocusNode", "payload": {"node_id": "n5", "file": "app.py", "line": 51}},
    ]


async def wait_for(predicate, timeout: float = 5.0, poll: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(poll)
    return True


async def run_demo() -> None:
    print("\n1. Scripting the peer...")
    transport = LoopbackTransport()
    transport.add_failure(ConnectionRefusedError("indexer not up yet"))
    channel = transport.add_channel()
    for frame in recorded_session():
        channel.push(frame)

    # Backoff delays are scaled down so the demo does not sit out a full second
    connection = ConnectionManager(transport, policy=ReconnectPolicy(time_scale=0.05))
    engine = LayoutEngine(connection, EngineConfig(viewport=(800, 600), frame_interval=0.0))

    print("\n2. Starting engine...")
    engine.start()
    if not await wait_for(lambda: engine.state.node_count > 0):
        print("   No snapshot received!")
        await engine.stop()
        return
    state = engine.state
    print(f"   Connect attempts: {transport.attempts}, backoff: {list(connection.backoff_history)}")
    print(f"   Snapshot: {state.node_count} nodes, {state.edge_count} edges (peer {state.peer_version})")
    print(f"   Reply sent to peer: {channel.sent_frames()}")

    print("\n3. Settling...")
    await wait_for(lambda: not engine.layout.moving)
    print(f"   Settled after {engine.layout.current_tick} ticks")
    print(f"   Spotlight: {engine.state.spotlight_node_id}")

    engine.select("n0")
    engine.drag("n0", 100.0, 100.0)
    await wait_for(lambda: engine.layout.moving)
    await wait_for(lambda: not engine.layout.moving)
    print(f"   Re-settled after drag at tick {engine.layout.current_tick}")

    print("\n4. Plotting...")
    state = engine.state
    transform = ViewTransform.fit(state.nodes, width=800, height=600)
    fig, _ = plot_state(state, transform=transform, show_labels=True, title="Replayed session")
    output_dir = Path("output/demo_stream")
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "stream.png"
    save_figure(fig, output_path)
    plt.close(fig)
    print(f"   Saved: {output_path}")

    await engine.stop()
    print(f"\n   Connection status after stop: {connection.status}")


def main():
    """Run the stream replay demo."""
    setup_logging(logging.WARNING)

    print("=" * 60)
    print("Stream Replay Demo")
    print("=" * 60)

    asyncio.run(run_demo())

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
