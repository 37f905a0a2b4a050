"""
Retrieval Search - Rank stored documents against a query embedding.

Implements:
- Cosine similarity scoring
- Brute-force top-K over the full corpus
- Deterministic ordering with an ascending-id tie-break
"""

import logging
import math
from typing import Iterable, List, Sequence

from ..contracts.documents import Document, SearchResult

logger = logging.getLogger(__name__)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Never raises: vectors of different length, empty vectors, zero vectors
    and vectors holding NaN or inf all score 0.0.

    Args:
        vec_a: First vector
        vec_b: Second vector

    Returns:
        Cosine similarity score between -1 and 1
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0

    dot_product = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vec_a, vec_b):
        dot_product += a * b
        norm_a += a * a
        norm_b += b * b

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = dot_product / (math.sqrt(norm_a) * math.sqrt(norm_b))
    if not math.isfinite(similarity):
        return 0.0
    # Clamp rounding drift so identical vectors score exactly within [-1, 1]
    return max(-1.0, min(1.0, similarity))


def rank_documents(
    query_embedding: Sequence[float],
    documents: Iterable[Document],
    limit: int = 0,
) -> List[SearchResult]:
    """
    Score every document against the query and return the best matches.

    Args:
        query_embedding: Embedding vector for the query
        documents: Candidate documents (the whole corpus)
        limit: Maximum number of results; ``<= 0`` returns all

    Returns:
        SearchResults sorted by similarity descending, then id ascending
    """
    results = [
        SearchResult(document=doc, similarity=cosine_similarity(query_embedding, doc.embedding))
        for doc in documents
    ]

    results.sort(key=lambda r: (-r.similarity, r.document.id))

    if limit > 0:
        results = results[:limit]

    logger.debug(f"Ranked corpus, returning {len(results)} results (limit={limit})")
    return results
