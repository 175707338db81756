"""
Hebbian learning and temporal decay for graph edges.

Three operations model usage-driven plasticity:

    - strengthen: edges between co-retrieved nodes gain a fixed increment,
                  capped at max_weight ("fire together, wire together")
    - decay:      every edge weight is multiplied by decay_rate per cycle
    - prune:      edges whose weight fell strictly below a threshold are deleted

Unlike the graph store's queries, these operations walk the whole edge set;
callers run decay/prune once per maintenance cycle, not per request.
"""

import logging
from typing import Any

from ..models.graph import Edge
from .protocols import HebbianGraph

logger = logging.getLogger(__name__)

# Hebbian defaults (overridden by HebbianSettings via graph.factory)
HEBBIAN_STRENGTH = 0.1
DECAY_RATE = 0.99
PRUNE_THRESHOLD = 0.05
MAX_WEIGHT = 5.0


class HebbianWeightEngine:
    """
    Strengthens, decays and prunes edge weights through a HebbianGraph.

    Weight updates are additive on strengthen (w + strength, capped at
    max_weight) and multiplicative on decay (w * decay_rate). An absent
    weight is read as the 1.0 baseline.
    """

    def __init__(
        self,
        hebbian_strength: float = HEBBIAN_STRENGTH,
        decay_rate: float = DECAY_RATE,
        prune_threshold: float = PRUNE_THRESHOLD,
        max_weight: float = MAX_WEIGHT,
    ):
        """
        Args:
            hebbian_strength: Amount added to an edge weight per co-activation
            decay_rate: Multiplicative factor applied to every weight per decay cycle
            prune_threshold: Edges with weight strictly below this are pruned
            max_weight: Ceiling applied when strengthening
        """
        self._hebbian_strength = hebbian_strength
        self._decay_rate = decay_rate
        self._prune_threshold = prune_threshold
        self._max_weight = max_weight

    @property
    def config(self) -> dict[str, Any]:
        """Resolved configuration."""
        return {
            "hebbian_strength": self._hebbian_strength,
            "decay_rate": self._decay_rate,
            "prune_threshold": self._prune_threshold,
            "max_weight": self._max_weight,
        }

    # ── Strengthening ───────────────────────────────────────────────────

    def strengthen(self, edge_id: str, graph: HebbianGraph) -> Edge | None:
        """
        Strengthen a single edge by ``hebbian_strength``, capped at ``max_weight``.

        Returns:
            The updated edge, or None if the edge id is unknown.
        """
        edge = graph.get_edge(edge_id)
        if edge is None:
            return None

        new_weight = min(edge.effective_weight + self._hebbian_strength, self._max_weight)
        return graph.update_edge(edge_id, weight=new_weight)

    def strengthen_co_activated(self, node_ids: list[str], graph: HebbianGraph) -> list[str]:
        """
        Strengthen every edge whose source AND target are both in ``node_ids``.

        Called by the graph store after a query returns two or more nodes.
        Each qualifying edge is strengthened exactly once.

        Returns:
            Ids of the strengthened edges.
        """
        if len(node_ids) < 2:
            return []

        node_set = set(node_ids)
        strengthened: list[str] = []

        # Walk outgoing edges per node; each edge has exactly one source, so no duplicates
        for node_id in dict.fromkeys(node_ids):
            for edge in graph.get_edges_from(node_id):
                if edge.target_id in node_set:
                    self.strengthen(edge.id, graph)
                    strengthened.append(edge.id)

        if strengthened:
            logger.debug(f"Hebbian strengthened {len(strengthened)} edges across {len(node_set)} co-activated nodes")
        return strengthened

    # ── Decay / prune ───────────────────────────────────────────────────

    def decay(self, graph: HebbianGraph) -> int:
        """
        Multiply every edge weight by ``decay_rate``.

        Returns:
            Number of edges decayed.
        """
        count = 0
        for edge in graph.get_all_edges():
            graph.update_edge(edge.id, weight=edge.effective_weight * self._decay_rate)
            count += 1
        return count

    def prune(self, graph: HebbianGraph, min_weight: float | None = None) -> int:
        """
        Delete every edge whose weight is strictly below the threshold.

        An edge exactly at the threshold survives.

        Args:
            graph: Graph to prune
            min_weight: Overrides ``prune_threshold`` for this call

        Returns:
            Number of edges deleted.
        """
        threshold = self._prune_threshold if min_weight is None else min_weight
        to_delete = [edge.id for edge in graph.get_all_edges() if edge.effective_weight < threshold]

        for edge_id in to_delete:
            graph.delete_edge(edge_id)

        if to_delete:
            logger.info(f"Pruned {len(to_delete)} edges below weight {threshold}")
        return len(to_delete)
