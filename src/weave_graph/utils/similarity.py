"""
Tokenization and similarity kernel.

Pure functions with no state, shared by the synaptic linker and anything
else that needs to compare node texts:

    - tokenize():           text -> normalised token set
    - jaccard_similarity(): |A ∩ B| / |A ∪ B| over token sets
    - cosine_similarity():  dense-vector cosine for embedding mode

Degenerate inputs (empty sets, empty or zero-magnitude vectors) score 0.0
rather than producing NaN or raising.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "shall", "can", "need", "dare", "ought",
        "for", "and", "nor", "but", "or", "yet", "so", "in", "on", "at",
        "to", "of", "by", "up", "as", "if", "it", "its", "with", "this",
        "that", "from", "not", "no", "vs", "via", "than", "then", "use",
        "using", "used",
    }
)  # fmt: skip

MIN_TOKEN_LENGTH = 2

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_SEPARATORS = re.compile(r"[\s\-_/\\.,;:()\[\]{}'\"!?@#$%^&*+=<>|~`]+")


def tokenize(text: str) -> set[str]:
    """
    Tokenize text into a normalised set of meaningful tokens.

    - camelCase / PascalCase boundaries are split before lowercasing
    - whitespace and common punctuation act as separators
    - tokens shorter than 2 chars and stop-words are dropped

    Examples:
        tokenize("TypeScript generics") -> {"type", "script", "generics"}
        tokenize("useContextManager")   -> {"context", "manager"}
        tokenize("HTTPServer")          -> {"http", "server"}
    """
    expanded = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    expanded = _ACRONYM_BOUNDARY.sub(r"\1 \2", expanded)

    return {
        token
        for token in _SEPARATORS.split(expanded.lower())
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS
    }


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """Jaccard coefficient of two token sets; 0.0 when both are empty."""
    if not a and not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two dense vectors, in [-1, 1].

    Returns 0.0 when either vector is empty or has zero magnitude.

    Raises:
        ValueError: if both vectors are non-empty but differ in dimension.
    """
    if len(a) == 0 or len(b) == 0:
        return 0.0
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} vs {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(sum(x * x for x in a))
    mag_b = math.sqrt(sum(y * y for y in b))
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    return dot / (mag_a * mag_b)
