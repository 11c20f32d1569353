"""
JSON-RPC 2.0 query client (discover / search / graph info).

Queries are plain request/response, separate from the streaming frames:

    → {"jsonrpc": "2.0", "id": 7, "method": "discover", "params": {"query": "parse", "limit": 50}}
    ← {"id": 7, "result": {"nodes": [...]}}
    ← {"id": 7, "error": {"code": -32601, "message": "Method not found"}}

Two carriers share the same query methods:
- RpcClient: over the live connection; responses come back interleaved with
  stream frames and are matched to pending requests by id
- HttpRpcClient: one HTTP POST per call, via httpx
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping
import asyncio
import logging

import httpx

from forcegraph.core.graph import GraphNode
from forcegraph.stream.protocol import RpcResponse
from forcegraph.net.connection import ConnectionLost, ConnectionManager

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """The peer answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_json(cls, error: Mapping[str, Any]) -> RpcError:
        try:
            code = int(error.get("code", -32603))
        except (ValueError, TypeError, OverflowError):
            code = -32603
        return cls(
            code=code,
            message=str(error.get("message", "Unknown error")),
            data=error.get("data"),
        )


def build_request(request_id: int, method: str, params: Mapping[str, Any] | None) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": method,
        "params": dict(params or {}),
    }


def nodes_from_result(result: Any) -> list[GraphNode]:
    """Decode `result.nodes`, skipping entries that do not parse."""
    if not isinstance(result, Mapping):
        return []
    raw = result.get("nodes")
    if not isinstance(raw, list):
        return []
    nodes = []
    for item in raw:
        try:
            nodes.append(GraphNode.from_json(item))
        except (ValueError, TypeError, OverflowError) as exc:
            logger.warning("Skipping malformed node in query result: %s", exc)
    return nodes


class _QueryMethods(ABC):
    """Typed wrappers over `call`."""

    @abstractmethod
    async def call(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """Send one request and return its result."""
        pass

    async def discover(self, query: str, limit: int = 50) -> list[GraphNode]:
        """Nodes relevant to a free-text query."""
        result = await self.call("discover", {"query": query, "limit": limit})
        return nodes_from_result(result)

    async def search(self, query: str, kind: str | None = None, limit: int = 10) -> list[GraphNode]:
        """Name search, optionally restricted to one node kind."""
        params: dict[str, Any] = {"query": query, "limit": limit}
        if kind is not None:
            params["kind"] = kind
        result = await self.call("search", params)
        return nodes_from_result(result)

    async def graph_info(self) -> Any:
        return await self.call("graph.info", {})


class RpcClient(_QueryMethods):
    """
    JSON-RPC over a message channel.

    `send` delivers one request frame; responses are fed back through
    `handle_response`. Use `RpcClient.over(connection)` to wire both ends
    to a ConnectionManager.
    """

    def __init__(
        self,
        send: Callable[[dict], Awaitable[None]],
        timeout: float = 10.0,
    ):
        self._send = send
        self.timeout = timeout
        self._next_id = 0
        self._pending: dict[Any, asyncio.Future] = {}

    @classmethod
    def over(cls, connection: ConnectionManager, timeout: float = 10.0) -> RpcClient:
        client = cls(connection.send, timeout=timeout)
        connection.add_response_handler(client.handle_response)
        connection.add_disconnect_handler(client.fail_pending)
        return client

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def call(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """
        Send a request and wait for its response.

        Raises:
            RpcError: the peer returned an error
            ConnectionLost: the channel dropped before the answer arrived
            asyncio.TimeoutError: no answer within `timeout`
        """
        self._next_id += 1
        request_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send(build_request(request_id, method, params))
            return await asyncio.wait_for(future, timeout=self.timeout)
        finally:
            self._pending.pop(request_id, None)

    def handle_response(self, response: RpcResponse) -> None:
        """Resolve the request that `response` answers."""
        future = self._pending.get(response.id)
        if future is None:
            logger.warning("JSON-RPC response for unknown id %r", response.id)
            return
        if future.done():
            return
        if response.error is not None:
            future.set_exception(RpcError.from_json(response.error))
        else:
            future.set_result(response.result)

    def fail_pending(self) -> None:
        """Fail every outstanding request with ConnectionLost."""
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ConnectionLost("Connection lost before response"))


class HttpRpcClient(_QueryMethods):
    """JSON-RPC over HTTP POST."""

    def __init__(
        self,
        base_url: str,
        path: str = "/",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.path = path
        self.timeout = timeout
        self.transport = transport
        self._next_id = 0

    async def call(self, method: str, params: Mapping[str, Any] | None = None) -> Any:
        """
        POST one request and return its result.

        Raises:
            RpcError: the peer returned an error object, or an unusable body
            httpx.HTTPStatusError: non-2xx response
        """
        self._next_id += 1
        payload = build_request(self._next_id, method, params)

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.post(self.path, json=payload)
            response.raise_for_status()
            data = response.json()

        if not isinstance(data, Mapping):
            raise RpcError(-32700, "Response is not a JSON object")
        error = data.get("error")
        if error is not None:
            if not isinstance(error, Mapping):
                raise RpcError(-32603, str(error))
            raise RpcError.from_json(error)
        return data.get("result")
