"""
Embedding distance helpers.

Distances are compared directly against the matching thresholds; the derived
similarity percentage is only for display and logging.
"""
import math
from typing import Sequence, Union

import numpy as np

EmbeddingLike = Union[np.ndarray, Sequence[float]]


class DimensionMismatch(ValueError):
    """Raised when an embedding is malformed or two embeddings differ in length."""


def as_embedding(values: EmbeddingLike) -> np.ndarray:
    """Return ``values`` as a read-only 1-D float array."""
    try:
        embedding = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise DimensionMismatch(f"Embedding is not a numeric sequence: {e}") from e

    if embedding.ndim != 1 or embedding.size == 0:
        raise DimensionMismatch(f"Expected a non-empty 1-D embedding, got shape {embedding.shape}")

    if not np.all(np.isfinite(embedding)):
        raise DimensionMismatch("Embedding contains NaN or infinite values")

    embedding.setflags(write=False)
    return embedding


def euclidean_distance(a: EmbeddingLike, b: EmbeddingLike) -> float:
    """Euclidean distance between two embeddings of equal length."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if a.ndim != 1 or b.ndim != 1:
        raise DimensionMismatch(f"Expected 1-D embeddings, got shapes {a.shape} and {b.shape}")

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(f"Embedding lengths differ: {a.shape[0]} != {b.shape[0]}")

    return float(np.linalg.norm(a - b))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, like JavaScript's Math.round."""
    return int(math.floor(value + 0.5))


def similarity_percent(distance: float) -> int:
    """Display similarity in [0, 100] for a distance."""
    return max(0, min(100, round_half_up((1.0 - distance) * 100)))
