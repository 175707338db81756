"""Exception hierarchy for the weave graph.

Lookups of unknown ids never raise; they return ``None``, ``False`` or an
empty list. The exceptions below are reserved for operations that cannot
proceed: policy violations, destructive operations addressing a missing
target, closed persistence backends and corrupt snapshots.
"""


class WeaveGraphError(Exception):
    """Base exception for graph operations."""


class NodeNotFoundError(WeaveGraphError):
    """Raised when an operation requires a node id that is not in the graph."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class PolicyViolationError(WeaveGraphError):
    """Raised when an operation is not allowed for the given node."""


class ProviderClosedError(WeaveGraphError):
    """Raised when a persistence provider is used after ``close()``."""

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] provider has been closed and is no longer usable")


class UnknownProviderError(WeaveGraphError):
    """Raised when the registry cannot resolve a provider name."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        message = f"Unknown provider type '{name}'"
        if self.available:
            message += f" (available: {', '.join(sorted(self.available))})"
        super().__init__(message)


class SnapshotFormatError(WeaveGraphError):
    """Raised when a persisted snapshot cannot be deserialized."""


class CorruptDocumentError(WeaveGraphError):
    """Raised by a provider when a stored document cannot be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Stored document {key!r} is not valid JSON: {reason}")
