"""
Graph Service - session-level operations over persisted graphs.

Holds one GraphStore per chat id, wired with engines from Settings, and
persists every mutation through a PersistenceManager. Store operations are
synchronous and not re-entrant, so every call that touches a session runs
under that session's asyncio.Lock; different sessions proceed concurrently.

Results are returned as plain dicts so they can be handed to any transport
unchanged. Domain failures (unknown node, policy violation, bad enum value)
are reported as ``{"success": False, "error": ...}``; backend failures
propagate.
"""

import asyncio
import logging
from typing import Any

from ..config import Settings, settings as default_settings
from ..errors import WeaveGraphError
from ..graph.factory import create_engines, create_synaptic_linker
from ..graph.protocols import EmbeddingProvider
from ..graph.store import GraphStore
from ..models.graph import Edge, EdgeType, Node, NodeType
from ..storage.factory import create_provider
from ..storage.persistence import PersistenceManager

logger = logging.getLogger(__name__)

# Nodes listed by get_session_context
CONTEXT_TOP_NODES = 20


def _summarize_node(node: Node) -> dict[str, Any]:
    return {"node_id": node.id, "label": node.label, "type": node.type.value, "frequency": node.frequency}


class GraphService:
    """Async facade over per-session graph stores."""

    def __init__(
        self,
        persistence: PersistenceManager,
        config: Settings | None = None,
        embedding_provider: EmbeddingProvider | None = None,
    ):
        """
        Args:
            persistence: Snapshot persistence for all sessions
            config: Engine settings; module-level settings when omitted
            embedding_provider: Optional embedder; enables embedding linking
        """
        self._persistence = persistence
        self._config = config or default_settings
        self._embedding_provider = embedding_provider
        self._graphs: dict[str, GraphStore] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def create(
        cls,
        config: Settings | None = None,
        embedding_provider: EmbeddingProvider | None = None,
    ) -> "GraphService":
        """Build a service whose provider is resolved from ``config.storage``."""
        config = config or default_settings
        provider = await create_provider(settings=config.storage)
        return cls(PersistenceManager(provider), config, embedding_provider)

    @property
    def persistence(self) -> PersistenceManager:
        return self._persistence

    # ── Session plumbing ────────────────────────────────────────────────

    def _lock_for(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = self._locks[chat_id] = asyncio.Lock()
        return lock

    def _engines(self) -> dict[str, Any]:
        # Fresh engines per store: the compression archive is per-session state
        if self._embedding_provider is not None:
            return create_engines(
                self._config,
                synaptic=create_synaptic_linker(self._config, self._embedding_provider),
            )
        return create_engines(self._config)

    async def _load(self, chat_id: str) -> GraphStore:
        store = self._graphs.get(chat_id)
        if store is None:
            store = await self._persistence.load_or_create_graph(
                chat_id,
                compression_threshold=self._config.compression.threshold,
                **self._engines(),
            )
            self._graphs[chat_id] = store
        return store

    async def _save(self, store: GraphStore, archive: bool = False) -> None:
        await self._persistence.save_graph(store.snapshot())
        if archive:
            await self._persistence.save_archive(store.archive_snapshot())

    async def get_graph(self, chat_id: str) -> GraphStore:
        """Cached store for a session, loaded or created on first access."""
        async with self._lock_for(chat_id):
            return await self._load(chat_id)

    # ── Operations ──────────────────────────────────────────────────────

    async def save_node(
        self,
        chat_id: str,
        node_type: NodeType | str,
        label: str,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        node_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Add a node to a session and link it retroactively.

        Linking uses embeddings when the session's linker has a provider,
        keyword similarity otherwise. With ``node_id`` naming an existing
        node, that node is updated in place instead (no linking).

        Returns:
            Dict with success flag, the node's wire form and the number of
            synaptic edges created
        """
        try:
            node_type = NodeType(node_type)
        except ValueError:
            return {"success": False, "error": f"Unknown node type: {node_type}"}

        async with self._lock_for(chat_id):
            store = await self._load(chat_id)

            if node_id is not None and node_id in store:
                updates: dict[str, Any] = {"type": node_type, "label": label}
                if description is not None:
                    updates["description"] = description
                if metadata is not None:
                    updates["metadata"] = metadata
                node = store.update_node(node_id, **updates)
                await self._save(store)
                return {"success": True, "created": False, "node": node.to_wire(), "edges_created": 0}

            node = Node.create(node_type, label, description, metadata)
            if node_id is not None:
                node = node.clone(id=node_id)
            store.add_node(node, link=False)

            edges: list[Edge] = []
            linker = store.synaptic
            if linker is not None:
                if linker.has_embedding_provider:
                    edges = await linker.link_retroactively_embedding(node, store)
                else:
                    edges = linker.link_retroactively(node, store)

            await self._save(store)

        logger.info(f"Saved {node_type.value} node {node.id} in chat {chat_id} ({len(edges)} synaptic edges)")
        return {"success": True, "created": True, "node": node.to_wire(), "edges_created": len(edges)}

    async def add_relation(
        self,
        chat_id: str,
        source_id: str,
        target_id: str,
        edge_type: EdgeType | str,
        weight: float | None = None,
    ) -> dict[str, Any]:
        """Create a typed edge between two existing nodes."""
        try:
            edge_type = EdgeType(edge_type)
        except ValueError:
            return {"success": False, "error": f"Unknown edge type: {edge_type}"}

        async with self._lock_for(chat_id):
            store = await self._load(chat_id)
            missing = [node_id for node_id in (source_id, target_id) if node_id not in store]
            if missing:
                return {"success": False, "error": f"Node not found: {', '.join(missing)}"}

            edge = store.add_edge(Edge.create(source_id, target_id, edge_type, weight=weight))
            await self._save(store)

        return {"success": True, "edge": edge.to_wire()}

    async def query(self, chat_id: str, text: str, limit: int = 10) -> list[Node]:
        """
        Label search within a session, most frequent first.

        Edges among the results are reinforced by the Hebbian engine, so the
        session is saved afterwards.
        """
        async with self._lock_for(chat_id):
            store = await self._load(chat_id)
            results = store.query_by_label(text)[:limit]
            await self._save(store)
        return results

    async def suppress_error(
        self,
        chat_id: str,
        node_id: str,
        label: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Suppress an ERROR node and attach a correction to it."""
        async with self._lock_for(chat_id):
            store = await self._load(chat_id)
            try:
                correction = store.suppress_error(node_id, label, description)
            except WeaveGraphError as e:
                return {"success": False, "error": str(e)}
            await self._save(store)

        return {
            "success": True,
            "error_node_id": node_id,
            "correction_node_id": correction.node.id,
            "edge_id": correction.edge.id,
        }

    async def get_session_context(self, chat_id: str, include_archived: bool = False) -> dict[str, Any]:
        """
        Size, pressure and most frequently used nodes of a session.

        With ``include_archived`` the nodes compressed out of the active
        graph are listed under ``archived_nodes`` as well.
        """
        async with self._lock_for(chat_id):
            store = await self._load(chat_id)
            stats = store.get_stats()
            usage = store.get_context_window_usage()
            top = sorted(store.get_all_nodes(), key=lambda n: n.frequency, reverse=True)[:CONTEXT_TOP_NODES]
            uncorrected = store.find_uncorrected_errors()
            archived = store.get_archived_nodes()

        context = {
            "chat_id": chat_id,
            "total_nodes": stats["total_nodes"],
            "total_edges": stats["total_edges"],
            "archived_node_count": len(archived),
            "context_usage": usage,
            "should_compress": usage >= store.compression_threshold,
            "uncorrected_errors": [node.id for node in uncorrected],
            "nodes": [_summarize_node(n) for n in top],
        }
        if include_archived:
            context["archived_nodes"] = [_summarize_node(n) for n in archived]
        return context

    async def restore_archived(self, chat_id: str, node_ids: list[str]) -> dict[str, Any]:
        """Move archived nodes (and edges whose endpoints are active again) back into the graph."""
        async with self._lock_for(chat_id):
            store = await self._load(chat_id)
            restored = store.restore_archived(node_ids)
            if restored:
                await self._save(store, archive=True)

        restored_ids = [node.id for node in restored]
        missing = [node_id for node_id in node_ids if node_id not in restored_ids]
        logger.info(f"Restored {len(restored_ids)} archived nodes in chat {chat_id}")
        return {"success": True, "restored": restored_ids, "not_archived": missing}

    async def run_maintenance(self, chat_id: str) -> dict[str, Any]:
        """
        One maintenance cycle: decay every edge, prune weak ones, and
        compress when context pressure crossed the threshold.
        """
        async with self._lock_for(chat_id):
            store = await self._load(chat_id)

            decayed = pruned = 0
            hebbian = store.hebbian
            if hebbian is not None:
                decayed = hebbian.decay(store)
                pruned = hebbian.prune(store)

            compression = None
            if store.should_compress():
                compression = store.compress().to_dict()

            await self._save(store, archive=compression is not None)

        logger.info(f"Maintenance for chat {chat_id}: decayed={decayed} pruned={pruned} compressed={compression is not None}")
        return {"decayed": decayed, "pruned": pruned, "compression": compression}

    async def list_sessions(self) -> list[dict[str, Any]]:
        return await self._persistence.list_sessions()

    async def delete_session(self, chat_id: str) -> None:
        async with self._lock_for(chat_id):
            self._graphs.pop(chat_id, None)
            await self._persistence.delete_graph(chat_id)

    async def close(self) -> None:
        """Drop cached sessions and close the storage provider."""
        self._graphs.clear()
        await self._persistence.provider.close()
        logger.info("Graph service closed")
