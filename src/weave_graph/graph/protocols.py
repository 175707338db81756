"""
Structural collaborator contracts.

The engines depend on a handful of GraphStore methods, never the whole
class, so they can be driven by a minimal fake store in tests and the store
module does not need to import them back.
"""

from typing import Any, Protocol, runtime_checkable

from ..models.graph import Edge, Node


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn text into a dense vector."""

    async def embed(self, text: str) -> list[float]: ...


class SynapticGraph(Protocol):
    """What SynapticLinker needs from a graph."""

    def get_all_nodes(self) -> list[Node]: ...

    def add_edge(self, edge: Edge) -> Edge: ...


class HebbianGraph(Protocol):
    """What HebbianWeightEngine needs from a graph."""

    def get_edge(self, edge_id: str) -> Edge | None: ...

    def update_edge(self, edge_id: str, **updates: Any) -> Edge | None: ...

    def get_all_edges(self) -> list[Edge]: ...

    def get_edges_from(self, node_id: str) -> list[Edge]: ...

    def delete_edge(self, edge_id: str) -> bool: ...
