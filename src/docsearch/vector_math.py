"""Vector normalization and cosine similarity."""

from typing import Sequence, Union

import numpy as np


VectorLike = Union[Sequence[float], np.ndarray]


class DimensionMismatchError(ValueError):
    """Raised when two vectors of different lengths are compared."""


def normalize(vector: VectorLike) -> np.ndarray:
    """L2-normalize a vector.

    A zero vector is returned as an unchanged copy.

    Args:
        vector: Input vector

    Returns:
        New numpy array with unit length (or the zero vector)
    """
    arr = np.array(vector, dtype=np.float32)
    norm = np.linalg.norm(arr.astype(np.float64))
    if norm == 0.0:
        return arr
    return (arr / norm).astype(np.float32)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 if either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vectors must have the same dimension ({len(a)} != {len(b)})"
        )

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))
