"""In-memory knowledge graph: store, linking, plasticity, compression and error policy."""

from .compression import CompressionEngine, CompressionStats
from .factory import create_engines, create_graph_store
from .hebbian import HebbianWeightEngine
from .protocols import EmbeddingProvider
from .store import GraphStore
from .suppression import Correction, CorrectedError
from .synaptic import SynapticLinker

__all__ = [
    "CompressionEngine",
    "CompressionStats",
    "Correction",
    "CorrectedError",
    "EmbeddingProvider",
    "GraphStore",
    "HebbianWeightEngine",
    "SynapticLinker",
    "create_engines",
    "create_graph_store",
]
