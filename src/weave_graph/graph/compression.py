"""
Context-pressure scoring and reversible archival.

Under context-size pressure the graph keeps high-value nodes active and
moves low-value ones into an archive. Importance is a composite score:

    score  = frequency
    score += 2 * connection_count          (in + out edges)
    ERROR:   score = max(0.1, score - 5)   (cheap to evict once corrected)
    stale:   score *= 0.5                  (updated > 24h ago and frequency < 3)

Candidates are the lowest-scoring ceil(n * target_reduction) nodes, worst
first: an LFU/LRU hybrid weighted by graph connectivity.

Archiving relocates records, it never deletes them.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

from ..models.graph import Edge, Node, NodeType
from ..models.validators import utc_now

logger = logging.getLogger(__name__)

# ~100KB of graph data is the assumed LLM context budget
MAX_CONTEXT_BYTES = 100_000
TARGET_REDUCTION = 0.3

NODE_BASE_BYTES = 50
EDGE_BASE_BYTES = 100
CONNECTION_WEIGHT = 2
ERROR_PENALTY = 5
ERROR_SCORE_FLOOR = 0.1
STALE_AFTER = timedelta(hours=24)
STALE_FREQUENCY = 3
STALE_FACTOR = 0.5


@dataclass(frozen=True, slots=True)
class CompressionStats:
    """Outcome of one compression pass."""

    original_node_count: int
    original_edge_count: int
    compressed_node_count: int
    compressed_edge_count: int
    archived_node_count: int
    compression_ratio: float
    estimated_context_size: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _metadata_size(metadata: Mapping[str, Any] | None) -> int:
    return len(json.dumps(metadata or {}, default=str, separators=(",", ":")))


class CompressionEngine:
    """Scores node importance and keeps a reversible archive of evicted records."""

    def __init__(self, max_context_bytes: int = MAX_CONTEXT_BYTES, target_reduction: float = TARGET_REDUCTION):
        self.max_context_bytes = max_context_bytes
        self.target_reduction = target_reduction
        self._archived_nodes: dict[str, Node] = {}
        self._archived_edges: dict[str, Edge] = {}

    # ── Size estimation ─────────────────────────────────────────────────

    @staticmethod
    def estimate_node_size(node: Node) -> int:
        """Approximate byte cost of a node; a relative signal, not storage bytes."""
        label_size = len(node.label) * 2
        description_size = len(node.description or "") * 2
        return NODE_BASE_BYTES + label_size + description_size + _metadata_size(node.metadata)

    @staticmethod
    def estimate_edge_size(edge: Edge) -> int:
        """Approximate byte cost of an edge (two ids, a type, metadata)."""
        return EDGE_BASE_BYTES + _metadata_size(edge.metadata)

    @classmethod
    def calculate_context_size(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> int:
        nodes_size = sum(cls.estimate_node_size(node) for node in nodes)
        edges_size = sum(cls.estimate_edge_size(edge) for edge in edges)
        return nodes_size + edges_size

    def calculate_context_usage_percentage(self, context_size: int) -> float:
        """Context usage as a fraction, always within [0, 1]."""
        return max(0.0, min(context_size / self.max_context_bytes, 1.0))

    # ── Importance scoring ──────────────────────────────────────────────

    @staticmethod
    def score_nodes(
        nodes: list[Node],
        edges: Iterable[Edge],
        now: datetime | None = None,
    ) -> dict[str, float]:
        """Composite importance score per node id (higher = keep)."""
        now = now or utc_now()

        connections: dict[str, int] = {}
        for edge in edges:
            connections[edge.source_id] = connections.get(edge.source_id, 0) + 1
            connections[edge.target_id] = connections.get(edge.target_id, 0) + 1

        scores: dict[str, float] = {}
        for node in nodes:
            score = float(node.frequency) + CONNECTION_WEIGHT * connections.get(node.id, 0)

            if node.type == NodeType.ERROR:
                score = max(ERROR_SCORE_FLOOR, score - ERROR_PENALTY)

            if now - node.updated_at > STALE_AFTER and node.frequency < STALE_FREQUENCY:
                score *= STALE_FACTOR

            scores[node.id] = score
        return scores

    @classmethod
    def identify_archive_candidates(
        cls,
        nodes: list[Node],
        edges: Iterable[Edge],
        target_reduction_percentage: float = TARGET_REDUCTION,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Pick the nodes that should be archived first.

        Args:
            nodes: Active nodes
            edges: Active edges (used for connection counts)
            target_reduction_percentage: Fraction of nodes to select, rounded up
            now: Reference time for the staleness penalty

        Returns:
            Node ids ordered worst-first, ``ceil(len(nodes) * target)`` long.
        """
        scores = cls.score_nodes(nodes, edges, now=now)
        # sorted() is stable: equal scores keep insertion order
        ranked = sorted(scores, key=scores.__getitem__)
        target_count = math.ceil(len(nodes) * target_reduction_percentage)
        return ranked[:target_count]

    # ── Archive ─────────────────────────────────────────────────────────

    def archive_nodes(
        self,
        node_ids: Iterable[str],
        nodes: Mapping[str, Node],
        edges: Mapping[str, Edge],
    ) -> list[str]:
        """
        Copy the named nodes, and every edge touching them, into the archive.

        Removing them from the active graph is the caller's job.

        Returns:
            Ids of the edges that were archived.
        """
        id_set = set(node_ids)
        for node_id in id_set:
            node = nodes.get(node_id)
            if node is not None:
                self._archived_nodes[node_id] = node

        archived_edges: list[str] = []
        for edge_id, edge in edges.items():
            if edge.source_id in id_set or edge.target_id in id_set:
                self._archived_edges[edge_id] = edge
                archived_edges.append(edge_id)

        logger.debug(f"Archived {len(id_set)} nodes and {len(archived_edges)} edges")
        return archived_edges

    def restore_nodes(self, node_ids: Iterable[str]) -> dict[str, Node]:
        """Remove the named nodes from the archive and return them."""
        restored: dict[str, Node] = {}
        for node_id in node_ids:
            node = self._archived_nodes.pop(node_id, None)
            if node is not None:
                restored[node_id] = node
        return restored

    def release_edges(self, active_node_ids: Iterable[str]) -> dict[str, Edge]:
        """Remove and return archived edges whose endpoints are all active."""
        active = set(active_node_ids)
        released = {
            edge_id: edge
            for edge_id, edge in self._archived_edges.items()
            if edge.source_id in active and edge.target_id in active
        }
        for edge_id in released:
            del self._archived_edges[edge_id]
        return released

    @property
    def archived_node_ids(self) -> list[str]:
        return list(self._archived_nodes)

    @property
    def archived_nodes(self) -> dict[str, Node]:
        return dict(self._archived_nodes)

    @property
    def archived_edges(self) -> dict[str, Edge]:
        return dict(self._archived_edges)

    def load_archive(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Merge previously persisted archive records into this engine."""
        for node in nodes:
            self._archived_nodes[node.id] = node
        for edge in edges:
            self._archived_edges[edge.id] = edge

    def get_archive_stats(self) -> dict[str, int]:
        return {
            "archived_node_count": len(self._archived_nodes),
            "archived_edge_count": len(self._archived_edges),
        }

    def clear_archives(self) -> None:
        self._archived_nodes.clear()
        self._archived_edges.clear()
