"""
Vector similarity and rounding helpers for the scoring engine.
"""

import math
from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length

    Examples:
        >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
        1.0
        >>> cosine_similarity([1.0, 0.0], [0.0, 0.0])
        0.0
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round with halves going up (2.5 -> 3), unlike Python's banker's round().

    Examples:
        >>> round_half_up(84.5)
        85.0
        >>> round_half_up(0.125, 2)
        0.13
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_score(value: float) -> int:
    """Round a 0-100 score to an int, halves up."""
    return int(round_half_up(value))
