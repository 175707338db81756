"""Session-scoped knowledge graph with synaptic linking, Hebbian weights and context compression."""

__version__ = "0.1.0"

from .graph import GraphStore
from .models import Edge, EdgeType, GraphSnapshot, Node, NodeType
from .storage import PersistenceManager

__all__ = [
    "Edge",
    "EdgeType",
    "GraphSnapshot",
    "GraphStore",
    "Node",
    "NodeType",
    "PersistenceManager",
]
