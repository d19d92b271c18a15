"""Cosine similarity between embedding vectors."""

import math
from typing import Optional, Sequence


def cosine_similarity(
    a: Optional[Sequence[float]], b: Optional[Sequence[float]]
) -> float:
    """Cosine similarity of two equal-length vectors.

    A missing or empty vector, or one with zero norm, has similarity 0.
    """
    if not a or not b:
        return 0.0
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
