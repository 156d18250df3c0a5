from typing import Sequence

import numpy as np


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Cosine similarity of ``query`` against each vector, clipped to [-1, 1].

    Formula: cos(θ) = (A · B) / (||A|| ||B||). A zero-magnitude operand scores 0.0.
    """
    if len(vectors) == 0:
        return np.zeros(0, dtype=np.float64)

    matrix = np.asarray(vectors, dtype=np.float64)
    query_vector = np.asarray(query, dtype=np.float64)

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
    dots = matrix @ query_vector
    with np.errstate(divide="ignore", invalid="ignore"):
        similarities = np.where(norms > 0, dots / norms, 0.0)
    return np.clip(similarities, -1.0, 1.0)
