"""Graph data models.

Nodes and edges are Pydantic v2 models. Python code uses snake_case field
names; the persisted wire form uses camelCase aliases (``sourceId``,
``createdAt``, ``chatId`` ...) with ISO-8601 timestamps, and both spellings
are accepted on input.

Records are treated as values: mutation goes through ``clone()``, which
returns a copy with ``updated_at`` bumped.
"""

import uuid
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .validators import CompressionThreshold, NonNegativeInt, RecordId, UtcDatetime, utc_now

SNAPSHOT_VERSION = "0.1.0"


def _new_id() -> str:
    return str(uuid.uuid4())


class NodeType(str, Enum):
    """Kinds of vertices stored in the graph."""

    CONCEPT = "CONCEPT"
    DECISION = "DECISION"
    MILESTONE = "MILESTONE"
    ERROR = "ERROR"
    CORRECTION = "CORRECTION"
    CODE_ENTITY = "CODE_ENTITY"


class EdgeType(str, Enum):
    """Semantic relationship kinds between two nodes."""

    RELATES = "RELATES"
    CAUSES = "CAUSES"
    CORRECTS = "CORRECTS"
    IMPLEMENTS = "IMPLEMENTS"
    DEPENDS_ON = "DEPENDS_ON"
    BLOCKS = "BLOCKS"


class _GraphModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def clone(self, **updates: Any) -> Self:
        """
        Copy with overrides; ``updated_at`` is bumped unless given explicitly.

        The merged fields are validated, so a bad override raises
        ValidationError and leaves the original untouched.
        """
        changes: dict[str, Any] = {"updated_at": utc_now()}
        changes.update(updates)
        return self.model_validate({**self.model_dump(), **changes})

    def to_wire(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys and ISO timestamps."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


class Node(_GraphModel):
    """A typed vertex: a concept, decision, milestone, error, correction or code entity."""

    id: RecordId = Field(default_factory=_new_id)
    type: NodeType
    label: str
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    # Access-count hint; only grows through increment_frequency()
    frequency: NonNegativeInt = 1
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        node_type: NodeType,
        label: str,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Node":
        return cls(type=node_type, label=label, description=description, metadata=metadata or {})

    @classmethod
    def concept(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.CONCEPT, label, description)

    @classmethod
    def decision(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.DECISION, label, description)

    @classmethod
    def milestone(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.MILESTONE, label, description)

    @classmethod
    def error(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.ERROR, label, description)

    @classmethod
    def correction(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.CORRECTION, label, description)

    @classmethod
    def code_entity(cls, label: str, description: str | None = None) -> "Node":
        return cls.create(NodeType.CODE_ENTITY, label, description)

    def increment_frequency(self) -> "Node":
        return self.clone(frequency=self.frequency + 1)

    @property
    def text(self) -> str:
        """Label plus description, the fingerprint used for similarity."""
        return " ".join([self.label, self.description or ""]).strip()


# ---------------------------------------------------------------------------
# Edge
# ---------------------------------------------------------------------------


class Edge(_GraphModel):
    """A typed, weighted relationship. Endpoints are referenced by id only."""

    id: RecordId = Field(default_factory=_new_id)
    source_id: RecordId
    target_id: RecordId
    type: EdgeType
    # None means "absent" and is read as 1.0 by the weight engines
    weight: float | None = 1.0
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        source_id: str,
        target_id: str,
        edge_type: EdgeType,
        weight: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Edge":
        return cls(
            source_id=source_id,
            target_id=target_id,
            type=edge_type,
            weight=1.0 if weight is None else weight,
            metadata=metadata or {},
        )

    @classmethod
    def relates(cls, source_id: str, target_id: str, weight: float | None = None) -> "Edge":
        return cls.create(source_id, target_id, EdgeType.RELATES, weight)

    @classmethod
    def causes(cls, source_id: str, target_id: str, weight: float | None = None) -> "Edge":
        return cls.create(source_id, target_id, EdgeType.CAUSES, weight)

    @classmethod
    def corrects(cls, correction_id: str, error_id: str, weight: float | None = None) -> "Edge":
        """CORRECTION → ERROR."""
        return cls.create(correction_id, error_id, EdgeType.CORRECTS, weight)

    @classmethod
    def implements(cls, code_entity_id: str, decision_id: str, weight: float | None = None) -> "Edge":
        """CODE_ENTITY → DECISION."""
        return cls.create(code_entity_id, decision_id, EdgeType.IMPLEMENTS, weight)

    @classmethod
    def depends_on(cls, source_id: str, target_id: str, weight: float | None = None) -> "Edge":
        return cls.create(source_id, target_id, EdgeType.DEPENDS_ON, weight)

    @classmethod
    def blocks(cls, blocker_id: str, blocked_id: str, weight: float | None = None) -> "Edge":
        return cls.create(blocker_id, blocked_id, EdgeType.BLOCKS, weight)

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else self.weight

    def reinforce(self, factor: float = 1.1) -> "Edge":
        """Multiply the weight by ``factor``."""
        return self.clone(weight=self.effective_weight * factor)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class SnapshotMetadata(_GraphModel):
    """Session-level metadata stored alongside the graph records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    chat_id: str
    version: str = SNAPSHOT_VERSION
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)
    compression_threshold: CompressionThreshold = 0.75


class GraphSnapshot(_GraphModel):
    """Complete, serialisable state of one session's graph."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: dict[str, Edge] = Field(default_factory=dict)
    metadata: SnapshotMetadata

    @property
    def chat_id(self) -> str:
        return self.metadata.chat_id


class ArchiveSnapshot(_GraphModel):
    """Nodes and edges a session has compressed out of its active graph."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    chat_id: str
    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: dict[str, Edge] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges
