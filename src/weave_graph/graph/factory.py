"""
Factory for creating the graph engines from configuration.

Maps a Settings object onto HebbianWeightEngine / SynapticLinker /
CompressionEngine constructor arguments. The Hebbian engine is None when
disabled (WEAVE_HEBBIAN_ENABLED=false).
"""

import logging
from typing import Any

from ..config import Settings, settings as default_settings
from ..utils.embeddings import SentenceTransformerEmbedder
from .compression import CompressionEngine
from .hebbian import HebbianWeightEngine
from .protocols import EmbeddingProvider
from .store import GraphStore
from .synaptic import SynapticLinker

logger = logging.getLogger(__name__)


def create_hebbian_engine(config: Settings | None = None) -> HebbianWeightEngine | None:
    hebbian = (config or default_settings).hebbian
    if not hebbian.enabled:
        logger.info("Hebbian learning disabled (WEAVE_HEBBIAN_ENABLED=false)")
        return None

    return HebbianWeightEngine(
        hebbian_strength=hebbian.strength,
        decay_rate=hebbian.decay_rate,
        prune_threshold=hebbian.prune_threshold,
        max_weight=hebbian.max_weight,
    )


def create_synaptic_linker(
    config: Settings | None = None,
    embedding_provider: EmbeddingProvider | None = None,
) -> SynapticLinker:
    """
    Create a linker from settings.

    An explicit ``embedding_provider`` wins; otherwise a sentence-transformers
    embedder is created when ``use_embeddings`` is set.
    """
    synaptic = (config or default_settings).synaptic

    if embedding_provider is None and synaptic.use_embeddings:
        embedding_provider = SentenceTransformerEmbedder(model_name=synaptic.embedding_model)

    return SynapticLinker(
        threshold=synaptic.threshold,
        max_connections=synaptic.max_connections,
        embedding_provider=embedding_provider,
    )


def create_compression_engine(config: Settings | None = None) -> CompressionEngine:
    compression = (config or default_settings).compression
    return CompressionEngine(
        max_context_bytes=compression.max_context_bytes,
        target_reduction=compression.target_reduction,
    )


def create_engines(config: Settings | None = None, **overrides: Any) -> dict[str, Any]:
    """
    Build the keyword arguments GraphStore / GraphStore.restore accept.

    ``overrides`` (hebbian=, synaptic=, compression=) replace individual
    engines, e.g. to inject a linker with a custom embedding provider.
    """
    engines: dict[str, Any] = {
        "hebbian": create_hebbian_engine(config),
        "synaptic": create_synaptic_linker(config),
        "compression": create_compression_engine(config),
    }
    engines.update(overrides)
    return engines


def create_graph_store(chat_id: str, config: Settings | None = None, **overrides: Any) -> GraphStore:
    """Create an empty, fully wired store for a chat session."""
    config = config or default_settings
    store = GraphStore(
        chat_id,
        compression_threshold=config.compression.threshold,
        **create_engines(config, **overrides),
    )
    logger.debug(f"Created graph store for chat {chat_id}")
    return store
