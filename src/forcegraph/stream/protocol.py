"""
Wire frames for the graph streaming protocol.

Every frame is a JSON object with a `type` discriminator and a `payload`:

    {"type": "NodeBatch", "payload": {"nodes": [...]}}

Decoding is discriminator-first: read `type`, then interpret the payload
against the shape registered for that tag. Tags without a registered shape
are not errors; they decode to an opaque TaggedMessage so that other
subscribers can pick them up by tag.

A JSON-RPC response ({"id": ..., "result": ...} or {"id": ..., "error": ...})
has no `type`; it decodes to RpcResponse.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Mapping, Union
import json

from forcegraph.core.graph import GraphEdge, GraphNode, GraphSnapshot


class FrameDecodeError(ValueError):
    """A frame could not be decoded. The frame should be dropped."""


@dataclass
class Hello:
    """Peer handshake: protocol version and the size of the coming graph."""

    type: ClassVar[str] = "Hello"

    version: str
    node_count: int = 0
    edge_count: int = 0


@dataclass
class GraphBegin:
    type: ClassVar[str] = "GraphBegin"


@dataclass
class GraphEnd:
    type: ClassVar[str] = "GraphEnd"


@dataclass
class NodeBatch:
    type: ClassVar[str] = "NodeBatch"

    nodes: list[GraphNode] = field(default_factory=list)


@dataclass
class EdgeBatch:
    type: ClassVar[str] = "EdgeBatch"

    edges: list[GraphEdge] = field(default_factory=list)


@dataclass
class FocusNode:
    """The peer wants a node brought into view."""

    type: ClassVar[str] = "FocusNode"

    node_id: str
    file: str = ""
    line: int = 0


@dataclass
class Spotlight:
    """An external agent is looking at a node right now."""

    type: ClassVar[str] = "Spotlight"

    node_id: str
    file: str = ""
    line: int = 0


@dataclass
class IndexerStatus:
    """Progress report from the peer's indexer."""

    type: ClassVar[str] = "IndexerStatus"

    phase: str
    files_processed: int = 0
    files_total: int = 0
    current_file: str | None = None


@dataclass
class TaggedMessage:
    """Any other tagged frame, passed through untouched."""

    type: str
    payload: Any = None


@dataclass
class RpcResponse:
    """Reply to a JSON-RPC request sent over the same channel."""

    id: Any
    result: Any = None
    error: Mapping[str, Any] | None = None


Frame = Union[
    Hello,
    GraphBegin,
    GraphEnd,
    NodeBatch,
    EdgeBatch,
    FocusNode,
    Spotlight,
    IndexerStatus,
    TaggedMessage,
    RpcResponse,
]


# Reply sent after a Hello
READY_FOR_GRAPH = {"type": "ready_for_graph"}


def _valid_rpc_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, (str, int))


def _payload_object(payload: Any) -> Mapping[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise FrameDecodeError(f"Payload must be an object, got {type(payload).__name__}")
    return payload


def _decode_hello(payload: Mapping[str, Any]) -> Hello:
    if "version" not in payload:
        raise FrameDecodeError("Hello without 'version'")
    return Hello(
        version=str(payload["version"]),
        node_count=int(payload.get("node_count", 0) or 0),
        edge_count=int(payload.get("edge_count", 0) or 0),
    )


def _decode_node_batch(payload: Mapping[str, Any]) -> NodeBatch:
    raw = payload.get("nodes")
    if not isinstance(raw, list):
        raise FrameDecodeError("NodeBatch needs a 'nodes' list")
    return NodeBatch(nodes=[GraphNode.from_json(item) for item in raw])


def _decode_edge_batch(payload: Mapping[str, Any]) -> EdgeBatch:
    raw = payload.get("edges")
    if not isinstance(raw, list):
        raise FrameDecodeError("EdgeBatch needs an 'edges' list")
    return EdgeBatch(edges=[GraphEdge.from_json(item) for item in raw])


def _decode_focus(cls):
    def decode(payload: Mapping[str, Any]):
        node_id = payload.get("node_id")
        if node_id is None:
            raise FrameDecodeError(f"{cls.type} without 'node_id'")
        return cls(
            node_id=str(node_id),
            file=str(payload.get("file") or ""),
            line=int(payload.get("line") or 0),
        )

    return decode


def _decode_indexer_status(payload: Mapping[str, Any]) -> IndexerStatus:
    current = payload.get("current_file")
    return IndexerStatus(
        phase=str(payload.get("phase", "")),
        files_processed=int(payload.get("files_processed") or 0),
        files_total=int(payload.get("files_total") or 0),
        current_file=None if current is None else str(current),
    )


_DECODERS: dict[str, Callable[[Mapping[str, Any]], Frame]] = {
    "Hello": _decode_hello,
    "GraphBegin": lambda payload: GraphBegin(),
    "GraphEnd": lambda payload: GraphEnd(),
    "NodeBatch": _decode_node_batch,
    "EdgeBatch": _decode_edge_batch,
    "FocusNode": _decode_focus(FocusNode),
    "Spotlight": _decode_focus(Spotlight),
    "IndexerStatus": _decode_indexer_status,
}


def decode_frame(message: str | bytes | Mapping[str, Any]) -> Frame:
    """
    Decode one message into a frame.

    Args:
        message: Raw JSON text/bytes, or an already-parsed object

    Raises:
        FrameDecodeError: invalid JSON, wrong shape, or missing required fields
    """
    if isinstance(message, (str, bytes, bytearray)):
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as exc:
            raise FrameDecodeError(f"Invalid JSON: {exc}") from exc
    else:
        data = message

    if not isinstance(data, Mapping):
        raise FrameDecodeError(f"Frame must be an object, got {type(data).__name__}")

    tag = data.get("type")
    if tag is None:
        if "id" in data and ("result" in data or "error" in data):
            error = data.get("error")
            if error is not None and not isinstance(error, Mapping):
                error = {"code": -32603, "message": str(error)}
            if not _valid_rpc_id(data["id"]):
                raise FrameDecodeError(
                    f"JSON-RPC id must be a string, integer or null, got {type(data['id']).__name__}"
                )
            return RpcResponse(id=data["id"], result=data.get("result"), error=error)
        raise FrameDecodeError("Frame has no 'type'")
    if not isinstance(tag, str):
        raise FrameDecodeError(f"Frame 'type' must be a string, got {type(tag).__name__}")

    decoder = _DECODERS.get(tag)
    if decoder is None:
        return TaggedMessage(type=tag, payload=data.get("payload"))

    try:
        return decoder(_payload_object(data.get("payload")))
    except FrameDecodeError:
        raise
    except (ValueError, TypeError, OverflowError) as exc:
        raise FrameDecodeError(f"Malformed {tag} payload: {exc}") from exc


def encode_frame(frame: Mapping[str, Any]) -> str:
    """Serialize an outbound frame."""
    return json.dumps(frame, separators=(",", ":"))


def frame_tag(item: Any) -> str:
    """
    Type tag used to route an item to subscribers.

    Snapshots are tagged "GraphUpdate"; frames use their own `type`.
    """
    if isinstance(item, GraphSnapshot):
        return "GraphUpdate"
    tag = getattr(item, "type", None)
    if isinstance(tag, str):
        return tag
    return type(item).__name__
