"""Error suppression policy: marking ERROR nodes and materialising corrections."""

from collections.abc import Mapping
from typing import NamedTuple

from ..errors import PolicyViolationError
from ..models.graph import Edge, EdgeType, Node, NodeType
from ..models.validators import to_iso, utc_now


class Correction(NamedTuple):
    """A CORRECTION node and the CORRECTS edge linking it to its error."""

    node: Node
    edge: Edge


class CorrectedError(NamedTuple):
    error: Node
    corrections: list[Node]


def suppress_node(node: Node) -> Node:
    """
    Return a copy of an ERROR node flagged as suppressed.

    Raises:
        PolicyViolationError: if the node is not of type ERROR
    """
    if node.type != NodeType.ERROR:
        raise PolicyViolationError(f"Only ERROR nodes can be suppressed (node {node.id} is {node.type.value})")
    return node.clone(
        metadata={
            **node.metadata,
            "suppressed": True,
            "suppressed_at": to_iso(utc_now()),
        }
    )


def is_suppressed(node: Node) -> bool:
    return bool(node.metadata.get("suppressed", False))


def create_correction(error_node_id: str, label: str, description: str | None = None) -> Correction:
    """Build a CORRECTION node and a CORRECTS edge (correction -> error)."""
    correction = Node.correction(label, description)
    return Correction(node=correction, edge=Edge.corrects(correction.id, error_node_id))


def find_corrected_errors(nodes: Mapping[str, Node], edges: Mapping[str, Edge]) -> dict[str, CorrectedError]:
    """ERROR nodes targeted by at least one CORRECTS edge, with their corrections."""
    corrected: dict[str, CorrectedError] = {}
    for edge in edges.values():
        if edge.type != EdgeType.CORRECTS:
            continue
        correction = nodes.get(edge.source_id)
        error = nodes.get(edge.target_id)
        if correction is None or error is None or error.type != NodeType.ERROR:
            continue
        corrected.setdefault(error.id, CorrectedError(error=error, corrections=[])).corrections.append(correction)
    return corrected


def find_uncorrected_errors(nodes: Mapping[str, Node], edges: Mapping[str, Edge]) -> list[Node]:
    """ERROR nodes that no CORRECTS edge points at."""
    corrected_ids = {edge.target_id for edge in edges.values() if edge.type == EdgeType.CORRECTS}
    return [node for node in nodes.values() if node.type == NodeType.ERROR and node.id not in corrected_ids]
