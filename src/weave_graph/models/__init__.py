"""Graph data models."""

from .graph import ArchiveSnapshot, Edge, EdgeType, GraphSnapshot, Node, NodeType, SnapshotMetadata

__all__ = [
    "ArchiveSnapshot",
    "Edge",
    "EdgeType",
    "GraphSnapshot",
    "Node",
    "NodeType",
    "SnapshotMetadata",
]
