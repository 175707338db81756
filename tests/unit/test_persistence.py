"""
Unit tests for PersistenceManager and the snapshot wire format.
"""

import pytest

from weave_graph.errors import SnapshotFormatError
from weave_graph.graph.hebbian import HebbianWeightEngine
from weave_graph.graph.store import GraphStore
from weave_graph.models.graph import Edge, Node
from weave_graph.storage.json_provider import JsonProvider
from weave_graph.storage.memory_provider import MemoryProvider
from weave_graph.storage.persistence import PersistenceManager, graph_key


def _populated_store(chat_id="chat-1"):
    store = GraphStore(chat_id, compression_threshold=0.6)
    a = store.add_node(Node.concept("Redis cache", "LRU"))
    b = store.add_node(Node.decision("Use Valkey"))
    store.add_edge(Edge.implements(a.id, b.id, weight=2.5))
    return store


class TestWireFormat:
    def test_serialize_uses_camel_case_and_iso(self):
        store = _populated_store()
        data = PersistenceManager.serialize(store.snapshot())

        assert set(data) == {"nodes", "edges", "metadata"}
        assert data["metadata"]["chatId"] == "chat-1"
        assert data["metadata"]["compressionThreshold"] == 0.6
        assert data["metadata"]["createdAt"].endswith("Z")
        edge = next(iter(data["edges"].values()))
        assert {"sourceId", "targetId", "weight", "createdAt", "updatedAt"} <= set(edge)

    def test_deserialize_round_trip(self):
        snapshot = _populated_store().snapshot()
        assert PersistenceManager.deserialize(PersistenceManager.serialize(snapshot)) == snapshot

    @pytest.mark.parametrize("data", [None, [], "text", 42])
    def test_non_object_rejected(self, data):
        with pytest.raises(SnapshotFormatError):
            PersistenceManager.deserialize(data)

    def test_missing_section_rejected(self):
        data = PersistenceManager.serialize(_populated_store().snapshot())
        del data["edges"]
        with pytest.raises(SnapshotFormatError, match="edges"):
            PersistenceManager.deserialize(data)

    def test_invalid_record_rejected(self):
        data = PersistenceManager.serialize(_populated_store().snapshot())
        node_id = next(iter(data["nodes"]))
        data["nodes"][node_id]["type"] = "NOT_A_TYPE"
        with pytest.raises(SnapshotFormatError):
            PersistenceManager.deserialize(data)

    def test_invalid_timestamp_rejected(self):
        data = PersistenceManager.serialize(_populated_store().snapshot())
        data["metadata"]["createdAt"] = "yesterday-ish"
        with pytest.raises(SnapshotFormatError):
            PersistenceManager.deserialize(data)

    def test_key_id_mismatch_rejected(self):
        data = PersistenceManager.serialize(_populated_store().snapshot())
        node_id, node = next(iter(data["nodes"].items()))
        data["nodes"]["other-key"] = node
        del data["nodes"][node_id]
        with pytest.raises(SnapshotFormatError, match="does not match"):
            PersistenceManager.deserialize(data)


class TestPersistenceOperations:
    @pytest.mark.asyncio
    async def test_save_and_load(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        store = _populated_store()

        await manager.save_graph(store.snapshot())

        assert await memory_provider.list() == [graph_key("chat-1")]
        loaded = await manager.load_graph("chat-1")
        assert loaded == store.snapshot()

    @pytest.mark.asyncio
    async def test_load_missing(self, memory_provider):
        assert await PersistenceManager(memory_provider).load_graph("nope") is None

    @pytest.mark.asyncio
    async def test_load_corrupt_raises(self, memory_provider):
        await memory_provider.set(graph_key("bad"), {"nodes": "oops"})
        with pytest.raises(SnapshotFormatError):
            await PersistenceManager(memory_provider).load_graph("bad")

    @pytest.mark.asyncio
    async def test_load_or_create_restores_existing(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        original = _populated_store()
        await manager.save_graph(original.snapshot())

        engine = HebbianWeightEngine()
        restored = await manager.load_or_create_graph("chat-1", compression_threshold=0.9, hebbian=engine)

        assert len(restored.get_all_nodes()) == 2
        assert restored.compression_threshold == 0.6
        assert restored.hebbian is engine

    @pytest.mark.asyncio
    async def test_load_or_create_creates_new(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        created = await manager.load_or_create_graph("fresh", compression_threshold=0.9)
        assert created.chat_id == "fresh"
        assert created.compression_threshold == 0.9
        assert created.get_all_nodes() == []
        assert await manager.graph_exists("fresh") is False

    @pytest.mark.asyncio
    async def test_exists_and_delete(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        await manager.save_graph(_populated_store().snapshot())

        assert await manager.graph_exists("chat-1") is True
        await manager.delete_graph("chat-1")
        assert await manager.graph_exists("chat-1") is False
        await manager.delete_graph("chat-1")

    @pytest.mark.asyncio
    async def test_list_sessions(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        await manager.save_graph(_populated_store("a").snapshot())
        await manager.save_graph(GraphStore("b").snapshot())
        await memory_provider.set("session:unrelated", {"x": 1})
        await memory_provider.set(graph_key("broken"), {"garbage": True})

        sessions = sorted(await manager.list_sessions(), key=lambda s: s["chat_id"])

        assert [s["chat_id"] for s in sessions] == ["a", "b"]
        assert sessions[0]["node_count"] == 2
        assert sessions[0]["edge_count"] == 1
        assert sessions[1]["node_count"] == 0

    @pytest.mark.asyncio
    async def test_chat_id_with_unsafe_characters(self, tmp_path):
        manager = PersistenceManager(data_dir=tmp_path)
        store = _populated_store("../team/chat:1")

        await manager.save_graph(store.snapshot())

        assert isinstance(manager.provider, JsonProvider)
        assert [s["chat_id"] for s in await manager.list_sessions()] == ["../team/chat:1"]
        assert [p.name for p in tmp_path.iterdir()] == ["graph~3a~~2e~~2e~~2f~team~2f~chat~3a~1.json"]

    @pytest.mark.asyncio
    async def test_provider_swap(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        other = MemoryProvider()
        manager.provider = other
        await manager.save_graph(_populated_store().snapshot())
        assert await other.list() == ["graph:chat-1"]
        assert await memory_provider.list() == []

    @pytest.mark.asyncio
    async def test_truncated_document_raises_format_error(self, tmp_path):
        (tmp_path / "graph~3a~broken.json").write_text('{"nodes": {', encoding="utf-8")
        manager = PersistenceManager(data_dir=tmp_path)

        with pytest.raises(SnapshotFormatError, match="broken"):
            await manager.load_graph("broken")
        assert await manager.graph_exists("broken") is True

    @pytest.mark.asyncio
    async def test_list_sessions_skips_truncated_document(self, tmp_path):
        manager = PersistenceManager(data_dir=tmp_path)
        await manager.save_graph(_populated_store("good").snapshot())
        (tmp_path / "graph~3a~broken.json").write_text('{"nodes": {', encoding="utf-8")

        assert [s["chat_id"] for s in await manager.list_sessions()] == ["good"]


class TestArchivePersistence:
    def _compressed_store(self):
        store = GraphStore("chat-1")
        keep = store.add_node(Node.concept("keep").clone(frequency=9))
        drop = store.add_node(Node.concept("drop"))
        store.add_edge(Edge.relates(drop.id, keep.id))
        store.compress(target_reduction=0.5)
        return store, drop

    @pytest.mark.asyncio
    async def test_archive_reloaded_with_graph(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        store, drop = self._compressed_store()
        await manager.save_graph(store.snapshot())
        await manager.save_archive(store.archive_snapshot())

        reloaded = await manager.load_or_create_graph("chat-1")

        assert [n.id for n in reloaded.restore_archived([drop.id])] == [drop.id]
        assert len(reloaded.get_all_edges()) == 1

    @pytest.mark.asyncio
    async def test_archive_not_listed_as_session(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        store, _ = self._compressed_store()
        await manager.save_graph(store.snapshot())
        await manager.save_archive(store.archive_snapshot())

        assert sorted(await memory_provider.list()) == ["graph-archive:chat-1", "graph:chat-1"]
        assert [s["chat_id"] for s in await manager.list_sessions()] == ["chat-1"]

    @pytest.mark.asyncio
    async def test_empty_archive_deletes_document(self, memory_provider):
        manager = PersistenceManager(memory_provider)
        store, drop = self._compressed_store()
        await manager.save_archive(store.archive_snapshot())

        store.restore_archived([drop.id])
        await manager.save_archive(store.archive_snapshot())

        assert await manager.load_archive("chat-1") is None

    @pytest.mark.asyncio
    async def test_invalid_archive_rejected(self, memory_provider):
        await memory_provider.set("graph-archive:chat-1", {"chatId": "someone-else"})
        with pytest.raises(SnapshotFormatError, match="does not match"):
            await PersistenceManager(memory_provider).load_archive("chat-1")

        await memory_provider.set("graph-archive:chat-1", {"nodes": []})
        with pytest.raises(SnapshotFormatError):
            await PersistenceManager(memory_provider).load_archive("chat-1")
