"""Cosine-similarity search over one document's chunks.

Handles:
- Cosine similarity with a zero-magnitude guard
- Exclusion of chunks whose embedding failed or has another dimension
- Deterministic top-k ranking
- Context formatting for the answer prompt
"""
from typing import List, Optional, Sequence
import numpy as np
import structlog

from docqa.rag.models import KnowledgeBaseEntry, SearchResult

logger = structlog.get_logger()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude or the dimensions differ.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def search(
    query_vector: Sequence[float],
    entry: KnowledgeBaseEntry,
    k: int,
) -> List[SearchResult]:
    """Rank a document's chunks against a query vector.

    Args:
        query_vector: Embedded query
        entry: Knowledge base entry to search
        k: Maximum number of results

    Returns:
        Up to k results, highest similarity first; equal scores are ordered
        by chunk index
    """
    if k <= 0:
        return []

    dimension = len(query_vector)
    processed = entry.processed_chunks
    candidates = [c for c in processed if len(c.embedding) == dimension]

    if len(candidates) < len(processed):
        logger.warning(
            "chunk_dimension_mismatch",
            filename=entry.filename,
            query_dimension=dimension,
            mismatched=len(processed) - len(candidates),
        )

    excluded = len(entry.chunks) - len(candidates)

    results = [
        SearchResult(
            text=chunk.text,
            similarity=cosine_similarity(query_vector, chunk.embedding),
            chunk_index=chunk.chunk_index,
            metadata={
                "chunk_index": chunk.chunk_index,
                "total_chunks": entry.metadata.total_chunks,
                "processed_at": entry.metadata.processed_at,
            },
        )
        for chunk in candidates
    ]

    results.sort(key=lambda r: (-r.similarity, r.chunk_index))
    results = results[:k]

    logger.info(
        "chunk_search_completed",
        filename=entry.filename,
        candidates=len(candidates),
        excluded=excluded,
        results_returned=len(results),
        top_similarity=results[0].similarity if results else None,
    )

    return results


def format_context(
    results: List[SearchResult],
    numbered: bool = True,
    max_chars: Optional[int] = None,
) -> str:
    """Join result texts, in rank order, into a prompt context.

    Args:
        results: Ranked search results
        numbered: Prefix each excerpt with "Context N:"
        max_chars: Truncate the joined context to this length

    Returns:
        Context string (empty if there are no results)
    """
    parts = []
    for i, result in enumerate(results, 1):
        text = result.text.strip()
        parts.append(f"Context {i}: {text}" if numbered else text)

    context = "\n\n".join(parts)

    if max_chars is not None:
        context = context[:max_chars]

    return context
