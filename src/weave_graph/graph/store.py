"""
In-memory graph store for one chat session.

The store exclusively owns every Node and Edge record of a session. Lookups
go through derived, id-only indices that are maintained incrementally on
every mutation and can be rebuilt from the records at any time:

    label (lowercased) -> node ids
    node type          -> node ids
    edge type          -> edge ids
    source node id     -> edge ids
    target node id     -> edge ids

Edges reference nodes by id only, so deleting a node explicitly cascades to
every edge touching it on either side.

Optional engines hook into the store's public operations:

    - SynapticLinker:      add_node() links the new node retroactively
    - HebbianWeightEngine: label/type queries returning >= 2 nodes
                           strengthen the edges among the results
    - CompressionEngine:   compress() / restore_archived() move low-value
                           nodes in and out of an archive

All operations are synchronous; callers sharing one store across concurrent
call sites must serialise access themselves.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Self

from ..errors import NodeNotFoundError
from ..models.graph import (
    SNAPSHOT_VERSION,
    ArchiveSnapshot,
    Edge,
    EdgeType,
    GraphSnapshot,
    Node,
    NodeType,
    SnapshotMetadata,
)
from ..models.validators import utc_now
from .compression import CompressionEngine, CompressionStats
from .hebbian import HebbianWeightEngine
from .suppression import (
    Correction,
    CorrectedError,
    create_correction,
    find_corrected_errors,
    find_uncorrected_errors,
    suppress_node,
)
from .synaptic import SynapticLinker

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_THRESHOLD = 0.75


def _index_add(index: dict[Any, set[str]], key: Any, record_id: str) -> None:
    index.setdefault(key, set()).add(record_id)


def _index_discard(index: dict[Any, set[str]], key: Any, record_id: str) -> None:
    bucket = index.get(key)
    if bucket is None:
        return
    bucket.discard(record_id)
    if not bucket:
        del index[key]


class GraphStore:
    """Owns all nodes and edges of one chat session plus their indices."""

    def __init__(
        self,
        chat_id: str,
        compression_threshold: float = DEFAULT_COMPRESSION_THRESHOLD,
        *,
        hebbian: HebbianWeightEngine | None = None,
        synaptic: SynapticLinker | None = None,
        compression: CompressionEngine | None = None,
    ):
        self.chat_id = chat_id
        self.compression_threshold = compression_threshold
        self.version = SNAPSHOT_VERSION

        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}

        self._nodes_by_label: dict[str, set[str]] = {}
        self._nodes_by_type: dict[NodeType, set[str]] = {}
        self._edges_by_type: dict[EdgeType, set[str]] = {}
        self._edges_by_source: dict[str, set[str]] = {}
        self._edges_by_target: dict[str, set[str]] = {}

        self._hebbian = hebbian
        self._synaptic = synaptic
        self._compression = compression or CompressionEngine()

        self.created_at: datetime = utc_now()
        self.updated_at: datetime = self.created_at

    # ── Engines ─────────────────────────────────────────────────────────

    def set_hebbian_engine(self, engine: HebbianWeightEngine | None) -> None:
        """Attach (or detach with None) the engine that reinforces co-retrieved edges."""
        self._hebbian = engine

    def set_synaptic_linker(self, linker: SynapticLinker | None) -> None:
        """Attach (or detach with None) the linker run on every add_node()."""
        self._synaptic = linker

    @property
    def hebbian(self) -> HebbianWeightEngine | None:
        return self._hebbian

    @property
    def synaptic(self) -> SynapticLinker | None:
        return self._synaptic

    @property
    def compression(self) -> CompressionEngine:
        return self._compression

    # ── Index maintenance ───────────────────────────────────────────────

    def _touch(self) -> None:
        self.updated_at = utc_now()

    def _index_node(self, node: Node) -> None:
        _index_add(self._nodes_by_label, node.label.lower(), node.id)
        _index_add(self._nodes_by_type, node.type, node.id)

    def _unindex_node(self, node: Node) -> None:
        _index_discard(self._nodes_by_label, node.label.lower(), node.id)
        _index_discard(self._nodes_by_type, node.type, node.id)

    def _index_edge(self, edge: Edge) -> None:
        _index_add(self._edges_by_source, edge.source_id, edge.id)
        _index_add(self._edges_by_target, edge.target_id, edge.id)
        _index_add(self._edges_by_type, edge.type, edge.id)

    def _unindex_edge(self, edge: Edge) -> None:
        _index_discard(self._edges_by_source, edge.source_id, edge.id)
        _index_discard(self._edges_by_target, edge.target_id, edge.id)
        _index_discard(self._edges_by_type, edge.type, edge.id)

    def _put_node(self, node: Node) -> None:
        previous = self._nodes.get(node.id)
        if previous is not None:
            self._unindex_node(previous)
        self._nodes[node.id] = node
        self._index_node(node)

    def _put_edge(self, edge: Edge) -> None:
        previous = self._edges.get(edge.id)
        if previous is not None:
            self._unindex_edge(previous)
        self._edges[edge.id] = edge
        self._index_edge(edge)

    def _remove_edge(self, edge_id: str) -> Edge | None:
        edge = self._edges.pop(edge_id, None)
        if edge is not None:
            self._unindex_edge(edge)
        return edge

    def rebuild_indices(self) -> None:
        """Recompute every index from the owned records."""
        for index in (
            self._nodes_by_label,
            self._nodes_by_type,
            self._edges_by_type,
            self._edges_by_source,
            self._edges_by_target,
        ):
            index.clear()
        for node in self._nodes.values():
            self._index_node(node)
        for edge in self._edges.values():
            self._index_edge(edge)

    # ── Nodes ───────────────────────────────────────────────────────────

    def add_node(self, node: Node, link: bool = True) -> Node:
        """
        Insert a node (replacing any record with the same id).

        With a SynapticLinker attached and ``link`` left True, the node is
        then linked retroactively against every other node (keyword mode).
        """
        self._put_node(node)
        self._touch()

        if link and self._synaptic is not None:
            self._synaptic.link_retroactively(node, self)
        return node

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def update_node(self, node_id: str, **updates: Any) -> Node | None:
        """Clone-with-overrides; returns None if the id is unknown. The id itself is immutable."""
        node = self._nodes.get(node_id)
        if node is None:
            return None

        updates.pop("id", None)
        if "type" in updates:
            updates["type"] = NodeType(updates["type"])

        updated = node.clone(**updates)
        self._put_node(updated)
        self._touch()
        return updated

    def increment_frequency(self, node_id: str) -> Node | None:
        node = self._nodes.get(node_id)
        if node is None:
            return None
        updated = node.increment_frequency()
        self._put_node(updated)
        self._touch()
        return updated

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and every edge whose source or target it is."""
        node = self._nodes.pop(node_id, None)
        if node is None:
            return False

        self._unindex_node(node)

        touching = self._edges_by_source.get(node_id, set()) | self._edges_by_target.get(node_id, set())
        for edge_id in touching:
            self._remove_edge(edge_id)

        self._touch()
        return True

    # ── Edges ───────────────────────────────────────────────────────────

    def add_edge(self, edge: Edge) -> Edge:
        self._put_edge(edge)
        self._touch()
        return edge

    def get_edge(self, edge_id: str) -> Edge | None:
        return self._edges.get(edge_id)

    def update_edge(self, edge_id: str, **updates: Any) -> Edge | None:
        """Clone-with-overrides; re-indexes endpoint and type changes."""
        edge = self._edges.get(edge_id)
        if edge is None:
            return None

        updates.pop("id", None)
        if "type" in updates:
            updates["type"] = EdgeType(updates["type"])

        updated = edge.clone(**updates)
        self._put_edge(updated)
        self._touch()
        return updated

    def delete_edge(self, edge_id: str) -> bool:
        if self._remove_edge(edge_id) is None:
            return False
        self._touch()
        return True

    def get_edges_from(self, node_id: str) -> list[Edge]:
        return [self._edges[edge_id] for edge_id in self._edges_by_source.get(node_id, ())]

    def get_edges_to(self, node_id: str) -> list[Edge]:
        return [self._edges[edge_id] for edge_id in self._edges_by_target.get(node_id, ())]

    # ── Queries ─────────────────────────────────────────────────────────

    def query_by_label(self, query: str) -> list[Node]:
        """
        Case-insensitive substring search over the label index.

        Matching is done per label bucket (labels that are equal after
        lowercasing share a bucket), and results are ordered by descending
        frequency. Reinforces co-retrieved edges when a Hebbian engine is
        attached.
        """
        needle = query.lower()
        results = [
            self._nodes[node_id]
            for label, node_ids in self._nodes_by_label.items()
            if needle in label
            for node_id in node_ids
        ]
        results.sort(key=lambda node: node.frequency, reverse=True)
        self._co_activate(results)
        return results

    def query_by_type(self, node_type: NodeType | str) -> list[Node]:
        node_ids = self._nodes_by_type.get(NodeType(node_type), ())
        results = [self._nodes[node_id] for node_id in node_ids]
        self._co_activate(results)
        return results

    def query_edges_by_type(self, edge_type: EdgeType | str) -> list[Edge]:
        edge_ids = self._edges_by_type.get(EdgeType(edge_type), ())
        return [self._edges[edge_id] for edge_id in edge_ids]

    def _co_activate(self, results: list[Node]) -> None:
        if self._hebbian is not None and len(results) >= 2:
            self._hebbian.strengthen_co_activated([node.id for node in results], self)

    def get_all_nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def get_all_edges(self) -> list[Edge]:
        return list(self._edges.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_nodes": len(self._nodes),
            "total_edges": len(self._edges),
            "nodes_by_type": {t.value: len(ids) for t, ids in self._nodes_by_type.items()},
            "edges_by_type": {t.value: len(ids) for t, ids in self._edges_by_type.items()},
            "chat_id": self.chat_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    # ── Error policy ────────────────────────────────────────────────────

    def suppress_error(self, error_node_id: str, label: str, description: str | None = None) -> Correction:
        """
        Mark an ERROR node suppressed and link a new CORRECTION node to it.

        Raises:
            NodeNotFoundError: if the node id is unknown
            PolicyViolationError: if the node is not of type ERROR
        """
        node = self._nodes.get(error_node_id)
        if node is None:
            raise NodeNotFoundError(error_node_id)

        self._put_node(suppress_node(node))
        correction = create_correction(error_node_id, label, description)
        self._put_node(correction.node)
        self._put_edge(correction.edge)
        self._touch()

        logger.info(f"Suppressed error {error_node_id} with correction {correction.node.id}")
        return correction

    def find_corrected_errors(self) -> dict[str, CorrectedError]:
        return find_corrected_errors(self._nodes, self._edges)

    def find_uncorrected_errors(self) -> list[Node]:
        return find_uncorrected_errors(self._nodes, self._edges)

    # ── Context pressure ────────────────────────────────────────────────

    def get_context_window_usage(self) -> float:
        """Estimated size of the active graph as a fraction of the context budget."""
        size = self._compression.calculate_context_size(self._nodes.values(), self._edges.values())
        return self._compression.calculate_context_usage_percentage(size)

    def should_compress(self) -> bool:
        return self.get_context_window_usage() >= self.compression_threshold

    def compress(self, target_reduction: float | None = None) -> CompressionStats:
        """
        Archive the least important nodes (and their edges) out of the active graph.

        Args:
            target_reduction: Fraction of nodes to archive; defaults to the engine's setting
        """
        engine = self._compression
        original_nodes = len(self._nodes)
        original_edges = len(self._edges)
        target = engine.target_reduction if target_reduction is None else target_reduction

        candidates = engine.identify_archive_candidates(self.get_all_nodes(), self.get_all_edges(), target)
        engine.archive_nodes(candidates, self._nodes, self._edges)
        for node_id in candidates:
            self.delete_node(node_id)

        size = engine.calculate_context_size(self._nodes.values(), self._edges.values())
        stats = CompressionStats(
            original_node_count=original_nodes,
            original_edge_count=original_edges,
            compressed_node_count=len(self._nodes),
            compressed_edge_count=len(self._edges),
            archived_node_count=len(candidates),
            compression_ratio=(len(self._nodes) / original_nodes) if original_nodes else 1.0,
            estimated_context_size=size,
        )
        logger.info(
            f"Compressed graph {self.chat_id}: {original_nodes} -> {stats.compressed_node_count} nodes, "
            f"{original_edges} -> {stats.compressed_edge_count} edges"
        )
        return stats

    def restore_archived(self, node_ids: Iterable[str]) -> list[Node]:
        """Bring archived nodes back, with every archived edge whose endpoints are active again."""
        restored = self._compression.restore_nodes(node_ids)
        for node in restored.values():
            self._put_node(node)
        for edge in self._compression.release_edges(self._nodes).values():
            self._put_edge(edge)
        if restored:
            self._touch()
        return list(restored.values())

    def get_archived_nodes(self) -> list[Node]:
        return list(self._compression.archived_nodes.values())

    def archive_snapshot(self) -> ArchiveSnapshot:
        return ArchiveSnapshot(
            chat_id=self.chat_id,
            nodes=self._compression.archived_nodes,
            edges=self._compression.archived_edges,
        )

    def load_archive(self, archive: ArchiveSnapshot) -> None:
        """Hand persisted archive records back to the compression engine."""
        if archive.chat_id != self.chat_id:
            raise ValueError(f"Archive for chat {archive.chat_id!r} cannot be loaded into {self.chat_id!r}")
        self._compression.load_archive(archive.nodes.values(), archive.edges.values())

    # ── Snapshot ────────────────────────────────────────────────────────

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=dict(self._nodes),
            edges=dict(self._edges),
            metadata=SnapshotMetadata(
                chat_id=self.chat_id,
                version=self.version,
                created_at=self.created_at,
                updated_at=self.updated_at,
                compression_threshold=self.compression_threshold,
            ),
        )

    @classmethod
    def restore(
        cls,
        snapshot: GraphSnapshot,
        *,
        hebbian: HebbianWeightEngine | None = None,
        synaptic: SynapticLinker | None = None,
        compression: CompressionEngine | None = None,
    ) -> Self:
        """Rebuild a store from a snapshot. Restoring never triggers linking."""
        meta = snapshot.metadata
        store = cls(
            meta.chat_id,
            meta.compression_threshold,
            hebbian=hebbian,
            synaptic=synaptic,
            compression=compression,
        )
        for node in snapshot.nodes.values():
            store._put_node(node)
        for edge in snapshot.edges.values():
            store._put_edge(edge)

        store.version = meta.version
        store.created_at = meta.created_at
        store.updated_at = meta.updated_at
        return store

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self.rebuild_indices()
        self._touch()
