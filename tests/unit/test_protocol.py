"""Unit tests for wire frame decoding."""

import json

import pytest

from forcegraph.core.graph import GraphSnapshot
from forcegraph.stream.protocol import (
    EdgeBatch,
    FocusNode,
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


class TestDecodeFrame:
    """Tests for discriminator-first decoding."""

    def test_hello(self):
        frame = decode_frame('{"type": "Hello", "payload": {"version": "0.3", "node_count": 5, "edge_count": 2}}')
        assert frame == Hello(version="0.3", node_count=5, edge_count=2)

    def test_markers(self):
        assert isinstance(decode_frame({"type": "GraphBegin"}), GraphBegin)
        assert isinstance(decode_frame({"type": "GraphEnd", "payload": {}}), GraphEnd)

    def test_node_batch(self):
        frame = decode_frame({
            "type": "NodeBatch",
            "payload": {"nodes": [{"id": "a", "lineStart": 4}, {"id": "b", "start_line": 7}]},
        })
        assert isinstance(frame, NodeBatch)
        assert [node.id for node in frame.nodes] == ["a", "b"]
        assert [node.line_start for node in frame.nodes] == [4, 7]

    def test_edge_batch(self):
        frame = decode_frame({"type": "EdgeBatch", "payload": {"edges": [{"source": "a", "target": "b"}]}})
        assert isinstance(frame, EdgeBatch)
        assert frame.edges[0].kind == "calls"

    def test_bytes_input(self):
        raw = json.dumps({"type": "GraphBegin", "payload": {}}).encode()
        assert isinstance(decode_frame(raw), GraphBegin)

    def test_focus_and_spotlight(self):
        focus = decode_frame({"type": "FocusNode", "payload": {"node_id": "n1", "file": "a.py", "line": 3}})
        assert focus == FocusNode(node_id="n1", file="a.py", line=3)
        spot = decode_frame({"type": "Spotlight", "payload": {"node_id": "n2"}})
        assert spot == Spotlight(node_id="n2")

    def test_indexer_status(self):
        frame = decode_frame({
            "type": "IndexerStatus",
            "payload": {"phase": "parsing", "files_processed": 3, "files_total": 10, "current_file": "x.py"},
        })
        assert frame == IndexerStatus(phase="parsing", files_processed=3, files_total=10, current_file="x.py")

    def test_unknown_tag_is_opaque(self):
        frame = decode_frame({"type": "Telemetry", "payload": {"cpu": 0.5}})
        assert frame == TaggedMessage(type="Telemetry", payload={"cpu": 0.5})

    def test_rpc_result(self):
        frame = decode_frame({"jsonrpc": "2.0", "id": 3, "result": {"nodes": []}})
        assert frame == RpcResponse(id=3, result={"nodes": []})

    def test_rpc_error(self):
        frame = decode_frame({"id": 4, "error": {"code": -32601, "message": "Method not found"}})
        assert isinstance(frame, RpcResponse)
        assert frame.error["code"] == -32601

    def test_rpc_error_string_is_wrapped(self):
        frame = decode_frame({"id": 4, "error": "boom"})
        assert frame.error == {"code": -32603, "message": "boom"}

    def test_rpc_string_and_null_ids(self):
        assert decode_frame({"id": "req-1", "result": 1}).id == "req-1"
        assert decode_frame({"id": None, "error": {"code": -32700}}).id is None

    @pytest.mark.parametrize(
        "message",
        [
            "not json",
            "[1, 2, 3]",
            '{"payload": {}}',
            '{"type": 7}',
            '{"type": "Hello", "payload": {}}',
            '{"type": "NodeBatch", "payload": {"nodes": "a"}}',
            '{"type": "NodeBatch", "payload": {"nodes": [{"name": "no id"}]}}',
            '{"type": "EdgeBatch", "payload": {"edges": [{"source": "a"}]}}',
            '{"type": "EdgeBatch", "payload": []}',
            '{"type": "FocusNode", "payload": {"file": "a.py"}}',
            '{"type": "Hello", "payload": {"version": "1", "node_count": "many"}}',
            '{"type": "Hello", "payload": {"version": "1", "node_count": 1e999}}',
            '{"type": "NodeBatch", "payload": {"nodes": [{"id": "b", "start_line": Infinity}]}}',
            "[" * 100_000,
            '{"id": [1], "result": {}}',
            '{"id": {"n": 1}, "error": {"code": 1}}',
            '{"id": true, "result": null}',
        ],
    )
    def test_malformed(self, message):
        with pytest.raises(FrameDecodeError):
            decode_frame(message)

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_frame("{")


class TestEncodeAndTags:
    """Tests for outbound encoding and routing tags."""

    def test_encode_is_compact(self):
        assert encode_frame({"type": "ready_for_graph"}) == '{"type":"ready_for_graph"}'

    def test_frame_tags(self):
        assert frame_tag(GraphSnapshot()) == "GraphUpdate"
        assert frame_tag(FocusNode(node_id="a")) == "FocusNode"
        assert frame_tag(TaggedMessage(type="Telemetry")) == "Telemetry"
        assert frame_tag(object()) == "object"
