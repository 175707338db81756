"""Stateless helpers: similarity kernel and embedding providers."""

from .similarity import STOP_WORDS, cosine_similarity, jaccard_similarity, tokenize

__all__ = [
    "STOP_WORDS",
    "cosine_similarity",
    "jaccard_similarity",
    "tokenize",
]
