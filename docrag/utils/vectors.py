"""Vector serialization and similarity helpers.

Embeddings are stored as JSON text (``"[0.12, -0.03, ...]"``) in the
relational store so that vectors of any dimension fit one column.  Chunks
embedded before and after a provider switch may therefore carry vectors of
different lengths; :func:`cosine_similarity` scores such pairs as ``0.0``
instead of raising.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence


def serialize_vector(vector: Sequence[float]) -> str:
    """Encode *vector* as compact JSON text for storage."""
    return json.dumps([float(v) for v in vector], separators=(",", ":"))


def deserialize_vector(value: str | None) -> list[float]:
    """Decode a stored vector.  Empty or malformed text yields ``[]``."""
    if not value:
        return []
    try:
        data = json.loads(value)
    except (TypeError, ValueError):
        return []
    if not isinstance(data, list):
        return []
    try:
        return [float(v) for v in data]
    except (TypeError, ValueError):
        return []


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*.

    Defined as ``dot(a, b) / (|a| * |b|)``.  Returns ``0.0`` when either
    vector is empty or has zero magnitude, and when the dimensions differ.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Clamp float drift so self-similarity is never reported as 1.0000000002.
    return max(-1.0, min(1.0, similarity))
