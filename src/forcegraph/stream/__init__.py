"""
Frame decoding and snapshot assembly.

- protocol: discriminator-first decoding of wire frames
- StreamAssembler: buffers begin/batch/end sessions into GraphSnapshots
"""

from forcegraph.stream.protocol import (
    READY_FOR_GRAPH,
    EdgeBatch,
    FocusNode,
    Frame,
    FrameDecodeError,
    GraphBegin,
    GraphEnd,
    Hello,
    IndexerStatus,
    NodeBatch,
    RpcResponse,
    Spotlight,
    TaggedMessage,
    decode_frame,
    encode_frame,
    frame_tag,
)
from forcegraph.stream.assembler import AssemblerConfig, FeedResult, StreamAssembler

__all__ = [
    "READY_FOR_GRAPH",
    "EdgeBatch",
    "FocusNode",
    "Frame",
    "FrameDecodeError",
    "GraphBegin",
    "GraphEnd",
    "Hello",
    "IndexerStatus",
    "NodeBatch",
    "RpcResponse",
    "Spotlight",
    "TaggedMessage",
    "decode_frame",
    "encode_frame",
    "frame_tag",
    "AssemblerConfig",
    "FeedResult",
    "StreamAssembler",
]
