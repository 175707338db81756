"""
Sentence-transformers embedding provider for semantic synaptic linking.

Satisfies the ``EmbeddingProvider`` protocol consumed by ``SynapticLinker``.
The model is loaded lazily on first use and ``encode`` runs in the default
executor so concurrent ``embed`` calls do not block the event loop.
"""

import asyncio
import logging
import threading

try:
    from sentence_transformers import SentenceTransformer

    SENTENCE_TRANSFORMERS_AVAILABLE = True
except ImportError:
    SENTENCE_TRANSFORMERS_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"


class SentenceTransformerEmbedder:
    """Async embedding provider backed by a local sentence-transformers model."""

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, device: str | None = None):
        """
        Args:
            model_name: Hugging Face model id or local path
            device: Torch device override ("cpu", "cuda", ...); auto-detected when None

        Raises:
            RuntimeError: if sentence-transformers is not installed
        """
        if not SENTENCE_TRANSFORMERS_AVAILABLE:
            raise RuntimeError(
                "sentence-transformers is not installed; install the 'embeddings' extra to use embedding linking"
            )
        self.model_name = model_name
        self.device = device
        self._model: "SentenceTransformer | None" = None
        self._load_lock = threading.Lock()

    def _get_model(self) -> "SentenceTransformer":
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    logger.info(f"Loading embedding model: {self.model_name}")
                    self._model = SentenceTransformer(self.model_name, device=self.device)
        return self._model

    def _encode(self, text: str) -> list[float]:
        vector = self._get_model().encode(text, convert_to_numpy=True, show_progress_bar=False)
        return [float(x) for x in vector]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._encode, text)
