"""
Connection layer.

- ConnectionManager: single live channel, reconnect with backoff
- Broadcast: fan-out of snapshots and tagged frames
- RpcClient / HttpRpcClient: JSON-RPC queries
- LoopbackTransport: in-process transport for replays
"""

from forcegraph.net.broadcast import Broadcast, Subscription
from forcegraph.net.connection import (
    Channel,
    ConnectionLost,
    ConnectionManager,
    ReconnectPolicy,
    Transport,
    backoff_delay,
)
from forcegraph.net.loopback import LoopbackChannel, LoopbackTransport
from forcegraph.net.rpc import HttpRpcClient, RpcClient, RpcError, build_request, nodes_from_result

__all__ = [
    "Broadcast",
    "Subscription",
    "Channel",
    "ConnectionLost",
    "ConnectionManager",
    "ReconnectPolicy",
    "Transport",
    "backoff_delay",
    "LoopbackChannel",
    "LoopbackTransport",
    "HttpRpcClient",
    "RpcClient",
    "RpcError",
    "build_request",
    "nodes_from_result",
]
