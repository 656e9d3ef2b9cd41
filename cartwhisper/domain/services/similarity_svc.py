"""Pairwise cosine similarity over a run's embedding vectors."""

import logging
import time
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from cartwhisper.domain.models.product import SimilarityEntry
from cartwhisper.domain.services.constants import SIMILARITY_DECIMALS, SIMILARITY_TOP_N

logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero norm."""
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def similarity_matrix(matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity for every row pair; rows with zero norm score 0 against everything."""
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0, 1.0, norms)
    unit = matrix / safe[:, None]
    scores = unit @ unit.T
    zero = norms == 0
    scores[zero, :] = 0.0
    scores[:, zero] = 0.0
    return np.clip(scores, -1.0, 1.0)


def rank(
    vectors: Mapping[str, Sequence[float]],
    top_n: int = SIMILARITY_TOP_N,
    titles: Optional[Mapping[str, str]] = None,
) -> Dict[str, List[SimilarityEntry]]:
    """
    For each product, the `top_n` other products by cosine similarity.

    Scores are rounded before sorting; the sort is stable, so equal scores
    keep the input (insertion) order of `vectors`. A product is never
    ranked against itself.
    """
    ids = list(vectors.keys())
    titles = titles or {}
    if not ids:
        return {}

    t0 = time.perf_counter()
    matrix = np.vstack([np.asarray(vectors[pid], dtype=np.float64) for pid in ids])
    scores = np.round(similarity_matrix(matrix), SIMILARITY_DECIMALS)

    ranked: Dict[str, List[SimilarityEntry]] = {}
    for i, pid in enumerate(ids):
        row = [(j, float(scores[i, j])) for j in range(len(ids)) if j != i]
        row.sort(key=lambda item: item[1], reverse=True)
        ranked[pid] = [
            SimilarityEntry(product_id=ids[j], title=titles.get(ids[j], ""), similarity=score)
            for j, score in row[:top_n]
        ]

    logger.info(
        f"[rank] products={len(ids)} pairs={len(ids) * (len(ids) - 1)} top_n={top_n} "
        f"time_ms={(time.perf_counter() - t0) * 1000:.1f}"
    )
    return ranked
