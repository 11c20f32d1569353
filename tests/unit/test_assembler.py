"""Unit tests for the stream assembler."""

import logging

import pytest

from forcegraph.core.graph import GraphSnapshot
from forcegraph.stream.assembler import AssemblerConfig, StreamAssembler
from forcegraph.stream.protocol import READY_FOR_GRAPH, FocusNode, RpcResponse, TaggedMessage


def node_batch(*ids):
    return {"type": "NodeBatch", "payload": {"nodes": [{"id": node_id} for node_id in ids]}}


def edge_batch(*pairs):
    return {"type": "EdgeBatch", "payload": {"edges": [{"source": s, "target": t} for s, t in pairs]}}


BEGIN = {"type": "GraphBegin", "payload": {}}
END = {"type": "GraphEnd", "payload": {}}


class TestSession:
    """Tests for begin/batch/end sessions."""

    def test_batches_assemble_in_order(self):
        assembler = StreamAssembler()
        published = []
        for message in [BEGIN, node_batch("n1", "n2"), node_batch("n3"), edge_batch(("n1", "n2")), END]:
            published.extend(assembler.feed(message).published)

        assert len(published) == 1
        snapshot = published[0]
        assert isinstance(snapshot, GraphSnapshot)
        assert [node.id for node in snapshot.nodes] == ["n1", "n2", "n3"]
        assert snapshot.edge_count == 1
        assert snapshot.is_delta is False
        assert assembler.state == "idle"
        assert assembler.snapshots_emitted == 1

    def test_state_transitions(self):
        assembler = StreamAssembler()
        assert assembler.state == "idle"
        assembler.feed(BEGIN)
        assert assembler.state == "streaming"
        assembler.feed(END)
        assert assembler.state == "idle"

    def test_begin_clears_buffers(self):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        assembler.feed(node_batch("stale"))
        assembler.feed(BEGIN)
        assembler.feed(node_batch("fresh"))
        [snapshot] = assembler.feed(END).published
        assert [node.id for node in snapshot.nodes] == ["fresh"]

    def test_empty_session(self):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        [snapshot] = assembler.feed(END).published
        assert snapshot.node_count == 0
        assert snapshot.edge_count == 0

    def test_dangling_edge_kept_in_snapshot(self):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        assembler.feed(node_batch("a"))
        assembler.feed(edge_batch(("a", "ghost")))
        [snapshot] = assembler.feed(END).published
        assert snapshot.edge_count == 1
        assert snapshot.resolved_edges() == []

    def test_end_without_begin_ignored(self, caplog):
        assembler = StreamAssembler()
        with caplog.at_level(logging.WARNING):
            result = assembler.feed(END)
        assert not result
        assert "GraphEnd without GraphBegin" in caplog.text

    def test_consecutive_sessions_are_independent(self):
        assembler = StreamAssembler()
        snapshots = []
        for ids in (("a", "b"), ("c",)):
            assembler.feed(BEGIN)
            assembler.feed(node_batch(*ids))
            snapshots.extend(assembler.feed(END).published)
        assert [s.node_count for s in snapshots] == [2, 1]


class TestOutOfBracket:
    """Tests for batches that arrive outside a session."""

    def test_permissive_by_default(self):
        assembler = StreamAssembler()
        assembler.feed(node_batch("early"))
        assembler.feed(edge_batch(("early", "late")))
        assert assembler.pending_node_count == 1
        assert assembler.state == "idle"

        [snapshot] = assembler.feed(END).published
        assert [node.id for node in snapshot.nodes] == ["early"]
        assert snapshot.edge_count == 1
        assert assembler.pending_node_count == 0
        assert assembler.snapshots_emitted == 1

    def test_strict_drops_them(self):
        assembler = StreamAssembler(AssemblerConfig(strict_sequencing=True))
        assembler.feed(node_batch("early"))
        assembler.feed(edge_batch(("a", "b")))
        assert assembler.pending_node_count == 0
        assert assembler.pending_edge_count == 0
        assert not assembler.feed(END)


class TestOtherFrames:
    """Tests for handshake, pass-through and errors."""

    def test_hello_replies_once(self):
        assembler = StreamAssembler()
        result = assembler.feed({"type": "Hello", "payload": {"version": "2.0", "node_count": 3}})
        assert result.replies == [READY_FOR_GRAPH]
        assert result.published == []
        assert assembler.peer.version == "2.0"
        assert assembler.state == "idle"

    def test_tagged_frames_pass_through(self):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        [focus] = assembler.feed({"type": "FocusNode", "payload": {"node_id": "x"}}).published
        [other] = assembler.feed({"type": "Custom", "payload": 1}).published
        assert focus == FocusNode(node_id="x")
        assert other == TaggedMessage(type="Custom", payload=1)
        assert assembler.state == "streaming"

    def test_rpc_responses_routed_separately(self):
        assembler = StreamAssembler()
        result = assembler.feed({"id": 1, "result": {"nodes": []}})
        assert result.responses == [RpcResponse(id=1, result={"nodes": []})]
        assert result.published == []

    def test_malformed_frame_leaves_buffers_alone(self, caplog):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        assembler.feed(node_batch("a"))
        bad = {"type": "NodeBatch", "payload": {"nodes": [{"id": "b"}, {"name": "no id"}]}}
        with caplog.at_level(logging.WARNING):
            result = assembler.feed(bad)
        assert not result
        assert assembler.pending_node_count == 1
        assert assembler.frames_rejected == 1
        assert assembler.frames_accepted == 2
        assert "Dropping malformed frame" in caplog.text

    @pytest.mark.parametrize(
        "message",
        [
            "garbage",
            b"\xff\xfe",
            "{}",
            '{"type":"NodeBatch","payload":{"nodes":[{"id":"b","start_line":1e999}]}}',
            '{"type":"Hello","payload":{"version":"1","node_count":Infinity}}',
            "[" * 100_000,
            '{"id":[1],"result":{}}',
        ],
    )
    def test_feed_never_raises(self, message):
        assembler = StreamAssembler()
        assert not assembler.feed(message)

    def test_unexpected_decode_error_is_dropped(self, monkeypatch, caplog):
        def explode(message):
            raise RuntimeError("decoder bug")

        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        assembler.feed(node_batch("a"))
        monkeypatch.setattr("forcegraph.stream.assembler.decode_frame", explode)
        with caplog.at_level(logging.ERROR):
            assert not assembler.feed(node_batch("b"))
        assert assembler.pending_node_count == 1
        assert assembler.frames_rejected == 1
        assert "RuntimeError" in caplog.text

    def test_reset(self):
        assembler = StreamAssembler()
        assembler.feed(BEGIN)
        assembler.feed(node_batch("a", "b"))
        assembler.reset()
        assert assembler.state == "idle"
        assert assembler.pending_node_count == 0
