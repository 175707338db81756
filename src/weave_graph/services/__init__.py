"""Service layer for session-level graph operations."""

from .graph_service import GraphService

__all__ = ["GraphService"]
