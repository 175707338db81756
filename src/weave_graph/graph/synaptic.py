"""
Retroactive synaptic linking.

When a node enters the graph it is compared against the entire historical
node population, not just recent nodes, and RELATES edges are wired to the
most similar ones. Two scoring modes share one selection algorithm:

    - keyword:   Jaccard similarity over tokenised label + description
    - embedding: cosine similarity over vectors from an EmbeddingProvider

Selection: drop the new node itself, keep candidates scoring >= threshold,
sort by descending score, keep the top max_connections. Edges always point
new node -> historical node and carry ``metadata.synapse = True`` so callers
can tell them apart from manually created edges.
"""

import asyncio
import logging
from typing import Any

from ..models.graph import Edge, EdgeType, Node
from ..utils.similarity import cosine_similarity, jaccard_similarity, tokenize
from .protocols import EmbeddingProvider, SynapticGraph

logger = logging.getLogger(__name__)

# Linking defaults (overridden by SynapticSettings via graph.factory)
SYNAPTIC_THRESHOLD = 0.72
MAX_CONNECTIONS = 20

MODE_KEYWORD = "keyword"
MODE_EMBEDDING = "embedding"


class SynapticLinker:
    """
    Creates similarity-driven edges between a new node and historical nodes.

    The embedding provider is optional; without one, the embedding path
    falls back to keyword scoring.
    """

    def __init__(
        self,
        threshold: float = SYNAPTIC_THRESHOLD,
        max_connections: int = MAX_CONNECTIONS,
        embedding_provider: EmbeddingProvider | None = None,
    ):
        """
        Args:
            threshold: Minimum similarity required to create an edge
            max_connections: Maximum edges created per new node
            embedding_provider: Optional async embedder for semantic linking
        """
        self._threshold = threshold
        self._max_connections = max_connections
        self._embedding_provider = embedding_provider

    @property
    def config(self) -> dict[str, Any]:
        """Resolved configuration."""
        return {
            "threshold": self._threshold,
            "max_connections": self._max_connections,
            "has_embeddings": self.has_embedding_provider,
        }

    @property
    def has_embedding_provider(self) -> bool:
        return self._embedding_provider is not None

    def link_retroactively(self, new_node: Node, graph: SynapticGraph) -> list[Edge]:
        """
        Link ``new_node`` to historical nodes by Jaccard keyword similarity.

        The new node should already be in the graph so the created edges
        reference a valid source id.

        Returns:
            The synaptic edges created and added to the graph.
        """
        existing = [n for n in graph.get_all_nodes() if n.id != new_node.id]
        if not existing:
            return []

        new_tokens = tokenize(new_node.text)
        if not new_tokens:
            return []

        scored = [(node, jaccard_similarity(new_tokens, tokenize(node.text))) for node in existing]
        return self._wire(new_node, scored, graph, MODE_KEYWORD)

    async def link_retroactively_embedding(self, new_node: Node, graph: SynapticGraph) -> list[Edge]:
        """
        Link ``new_node`` to historical nodes by embedding cosine similarity.

        All embeddings (new node plus every candidate) are requested
        concurrently and awaited as one batch before scoring. Provider errors
        propagate; the graph is untouched until every embedding arrived.

        Falls back to ``link_retroactively`` when no provider is configured.
        """
        if self._embedding_provider is None:
            return self.link_retroactively(new_node, graph)

        existing = [n for n in graph.get_all_nodes() if n.id != new_node.id]
        if not existing:
            return []

        new_text = new_node.text
        if not new_text.strip():
            return []

        provider = self._embedding_provider
        new_vector, *existing_vectors = await asyncio.gather(
            provider.embed(new_text),
            *(provider.embed(node.text) for node in existing),
        )

        scored = [(node, cosine_similarity(new_vector, vector)) for node, vector in zip(existing, existing_vectors)]
        return self._wire(new_node, scored, graph, MODE_EMBEDDING)

    def _select(self, scored: list[tuple[Node, float]]) -> list[tuple[Node, float]]:
        """Keep candidates >= threshold, highest score first, at most max_connections."""
        candidates = [(node, score) for node, score in scored if score >= self._threshold]
        candidates.sort(key=lambda pair: pair[1], reverse=True)
        return candidates[: self._max_connections]

    def _wire(
        self,
        new_node: Node,
        scored: list[tuple[Node, float]],
        graph: SynapticGraph,
        mode: str,
    ) -> list[Edge]:
        created: list[Edge] = []
        for node, score in self._select(scored):
            edge = Edge.create(
                new_node.id,
                node.id,
                EdgeType.RELATES,
                weight=score,
                metadata={"synapse": True, "similarity": score, "mode": mode},
            )
            graph.add_edge(edge)
            created.append(edge)

        if created:
            logger.debug(f"Synaptic linking ({mode}) created {len(created)} edges from node {new_node.id}")
        return created
