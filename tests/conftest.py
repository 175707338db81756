import os
import sys

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

import pytest  # noqa: E402

from weave_graph.graph.store import GraphStore  # noqa: E402
from weave_graph.models.graph import Node  # noqa: E402
from weave_graph.storage.memory_provider import MemoryProvider  # noqa: E402


@pytest.fixture
def store():
    """Empty store with no engines attached."""
    return GraphStore("test-chat")


@pytest.fixture
def memory_provider():
    return MemoryProvider()


@pytest.fixture
def make_node():
    """Factory for concept nodes with optional field overrides."""

    def _make(label: str = "node", description: str | None = None, **overrides) -> Node:
        node = Node.concept(label, description)
        if overrides:
            node = node.model_copy(update=overrides)
        return node

    return _make
