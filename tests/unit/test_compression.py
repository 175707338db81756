"""
Unit tests for CompressionEngine scoring/archival and GraphStore.compress().
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from weave_graph.graph.compression import CompressionEngine
from weave_graph.graph.store import GraphStore
from weave_graph.models.graph import Edge, Node, NodeType

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _node(label, node_type=NodeType.CONCEPT, frequency=1, age=timedelta(0), **kwargs):
    ts = NOW - age
    return Node(type=node_type, label=label, frequency=frequency, created_at=ts, updated_at=ts, **kwargs)


class TestSizeEstimation:
    def test_node_size(self):
        node = Node(type=NodeType.CONCEPT, label="abc", description="de", metadata={"k": 1})
        expected = 50 + 3 * 2 + 2 * 2 + len(json.dumps({"k": 1}, separators=(",", ":")))
        assert CompressionEngine.estimate_node_size(node) == expected

    def test_node_size_without_description(self):
        node = Node(type=NodeType.CONCEPT, label="abc")
        assert CompressionEngine.estimate_node_size(node) == 50 + 6 + 2

    def test_edge_size(self):
        edge = Edge.relates("s", "t")
        assert CompressionEngine.estimate_edge_size(edge) == 100 + 2

    def test_usage_is_clamped(self):
        engine = CompressionEngine(max_context_bytes=1000)
        assert engine.calculate_context_usage_percentage(500) == 0.5
        assert engine.calculate_context_usage_percentage(5000) == 1.0
        assert engine.calculate_context_usage_percentage(0) == 0.0


class TestScoring:
    def test_frequency_and_connections(self):
        a = _node("a", frequency=3)
        b = _node("b")
        edges = [Edge.relates(a.id, b.id)]
        scores = CompressionEngine.score_nodes([a, b], edges, now=NOW)
        assert scores[a.id] == 3 + 2
        assert scores[b.id] == 1 + 2

    def test_error_penalty_has_floor(self):
        err = _node("e", node_type=NodeType.ERROR, frequency=2)
        assert CompressionEngine.score_nodes([err], [], now=NOW)[err.id] == pytest.approx(0.1)

    def test_stale_low_frequency_halved(self):
        stale = _node("s", frequency=2, age=timedelta(hours=25))
        busy = _node("b", frequency=4, age=timedelta(hours=25))
        scores = CompressionEngine.score_nodes([stale, busy], [], now=NOW)
        assert scores[stale.id] == 1.0
        assert scores[busy.id] == 4.0

    def test_candidates_worst_first_rounded_up(self):
        nodes = [_node(f"n{i}", frequency=i + 1) for i in range(5)]
        candidates = CompressionEngine.identify_archive_candidates(nodes, [], 0.3, now=NOW)
        # ceil(5 * 0.3) == 2
        assert candidates == [nodes[0].id, nodes[1].id]

    def test_error_nodes_evicted_first(self):
        concept = _node("c", frequency=1)
        err = _node("e", node_type=NodeType.ERROR, frequency=5)
        assert CompressionEngine.identify_archive_candidates([concept, err], [], 0.5, now=NOW) == [err.id]

    def test_fraction_of_three_selects_one(self):
        nodes = [_node(f"n{i}", frequency=i + 1) for i in range(3)]
        # ceil(3 * 0.33) == 1
        assert CompressionEngine.identify_archive_candidates(nodes, [], 0.33, now=NOW) == [nodes[0].id]

    def test_connected_node_outlives_isolated_peer(self):
        hub = _node("hub")
        leaves = [_node("leaf1"), _node("leaf2")]
        isolated = _node("isolated")
        edges = [Edge.relates(hub.id, leaf.id) for leaf in leaves]
        nodes = [hub, *leaves, isolated]

        ranked = CompressionEngine.identify_archive_candidates(nodes, edges, 1.0, now=NOW)

        assert ranked.index(isolated.id) < ranked.index(hub.id)
        assert ranked[-1] == hub.id
        assert CompressionEngine.identify_archive_candidates(nodes, edges, 0.25, now=NOW) == [isolated.id]


class TestArchive:
    def test_archive_and_restore(self):
        engine = CompressionEngine()
        a, b = _node("a"), _node("b")
        edge = Edge.relates(a.id, b.id)
        nodes = {a.id: a, b.id: b}
        edges = {edge.id: edge}

        archived_edges = engine.archive_nodes([a.id], nodes, edges)

        assert archived_edges == [edge.id]
        assert engine.archived_node_ids == [a.id]
        assert engine.get_archive_stats() == {"archived_node_count": 1, "archived_edge_count": 1}

        restored = engine.restore_nodes([a.id, "unknown"])
        assert restored == {a.id: a}
        assert engine.release_edges([a.id, b.id]) == {edge.id: edge}
        assert engine.get_archive_stats() == {"archived_node_count": 0, "archived_edge_count": 0}

    def test_release_requires_both_endpoints(self):
        engine = CompressionEngine()
        a, b = _node("a"), _node("b")
        edge = Edge.relates(a.id, b.id)
        engine.archive_nodes([a.id, b.id], {a.id: a, b.id: b}, {edge.id: edge})

        assert engine.release_edges([a.id]) == {}
        assert engine.get_archive_stats()["archived_edge_count"] == 1

    def test_clear_archives(self):
        engine = CompressionEngine()
        a = _node("a")
        engine.archive_nodes([a.id], {a.id: a}, {})
        engine.clear_archives()
        assert engine.archived_node_ids == []


class TestStoreCompression:
    def _populated(self, count=10):
        store = GraphStore("chat", compression=CompressionEngine(max_context_bytes=1000))
        nodes = [store.add_node(Node.concept(f"node number {i}").model_copy(update={"frequency": i + 1})) for i in range(count)]
        for left, right in zip(nodes, nodes[1:]):
            store.add_edge(Edge.relates(left.id, right.id))
        return store, nodes

    def test_should_compress(self):
        store, _ = self._populated()
        assert store.get_context_window_usage() == 1.0
        assert store.should_compress() is True
        assert GraphStore("empty").should_compress() is False

    def test_compress_removes_lowest_scored(self):
        store, nodes = self._populated()

        stats = store.compress(0.3)

        assert stats.original_node_count == 10
        assert stats.archived_node_count == 3
        assert stats.compressed_node_count == 7
        assert stats.compression_ratio == pytest.approx(0.7)
        assert store.get_node(nodes[0].id) is None
        assert store.get_node(nodes[-1].id) is not None
        for edge in store.get_all_edges():
            assert edge.source_id in store and edge.target_id in store

    def test_restore_archived_round_trip(self):
        store, nodes = self._populated()
        original_edges = len(store.get_all_edges())

        store.compress(0.3)
        archived = store.compression.archived_node_ids
        restored = store.restore_archived(archived)

        assert len(restored) == 3
        assert len(store.get_all_nodes()) == 10
        assert len(store.get_all_edges()) == original_edges
        assert store.compression.get_archive_stats() == {"archived_node_count": 0, "archived_edge_count": 0}

    def test_compress_empty_store(self):
        stats = GraphStore("empty").compress()
        assert stats.archived_node_count == 0
        assert stats.compression_ratio == 1.0

    def test_stats_to_dict(self):
        store, _ = self._populated(3)
        data = store.compress(0.5).to_dict()
        assert data["archived_node_count"] == 2
        assert set(data) >= {"original_node_count", "estimated_context_size"}
