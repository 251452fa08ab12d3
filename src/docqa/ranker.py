"""
ranker.py — Cosine similarity and top-K selection
==================================================

Query time, after the query has been embedded:

  1. Score every stored chunk against the query vector (full scan)
  2. Sort by score, highest first
  3. Keep the top K

Cosine similarity:
  cos(a, b) = (a · b) / (|a| |b|)

  It measures the angle between vectors and ignores their length, so a
  long chunk and a short chunk about the same thing score alike. Range
  is [-1, 1]; for normalized sentence embeddings it is usually [0, 1].

Two conventions worth knowing:
  - A zero vector has no direction. Its similarity to anything is 0,
    not NaN, so the entry still sorts (low) instead of poisoning the sort.
  - Equal scores keep insertion order. Same store, same query, same
    answer every time.

Usage:
  from docqa.ranker import rank
  results = rank(query_vec, store.all(), top_k=3)
  for r in results:
      print(r.rank, r.score, r.indexed_chunk.text_preview)
"""

from dataclasses import dataclass

import numpy as np

from docqa.errors import ConfigurationError, EmptyIndexError, ValidationError
from docqa.vector_store import IndexedChunk

DEFAULT_TOP_K = 3


@dataclass(frozen=True)
class RetrievalResult:
    """One stored chunk scored against one query."""
    indexed_chunk: IndexedChunk
    score: float
    rank: int

    def __repr__(self):
        return (f"RetrievalResult(rank={self.rank}, score={self.score:.4f}, "
                f"chunk_id={self.indexed_chunk.chunk_id})")


def cosine_similarity(a, b) -> float:
    """Cosine similarity between two vectors; 0.0 if either has zero norm."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.ndim != 1 or b.ndim != 1:
        raise ValidationError(f"Vectors must be 1-D, got shapes {a.shape} and {b.shape}")
    if a.shape[0] != b.shape[0]:
        raise ValidationError(f"Vectors must have the same length: {a.shape[0]} != {b.shape[0]}")

    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        raise ValidationError("Vectors must contain only finite values")

    # scale by the largest component so squaring cannot overflow
    scale_a = np.max(np.abs(a)) if a.size else 0.0
    scale_b = np.max(np.abs(b)) if b.size else 0.0
    if scale_a == 0 or scale_b == 0:
        return 0.0
    a = a / scale_a
    b = b / scale_b

    similarity = np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b))
    return float(np.clip(similarity, -1.0, 1.0))


def validate_top_k(top_k) -> int:
    if isinstance(top_k, bool) or not isinstance(top_k, (int, np.integer)) or top_k < 1:
        raise ConfigurationError(f"top_k must be a positive integer, got {top_k!r}")
    return int(top_k)


def rank(query_embedding, indexed_chunks: list[IndexedChunk], top_k: int = DEFAULT_TOP_K,
         require_results: bool = False) -> list[RetrievalResult]:
    """
    Rank stored chunks by cosine similarity to the query.

    Returns min(top_k, len(indexed_chunks)) results, best first. An empty
    input gives [] unless require_results is set, in which case it raises
    EmptyIndexError.
    """
    top_k = validate_top_k(top_k)
    indexed_chunks = list(indexed_chunks)

    query = np.asarray(query_embedding, dtype=np.float64)
    if query.ndim != 1 or query.size == 0 or not np.all(np.isfinite(query)):
        raise ValidationError("Query embedding must be a non-empty 1-D vector of finite numbers")

    if not indexed_chunks:
        if require_results:
            raise EmptyIndexError("No chunks indexed; load a document before querying")
        return []

    scored = []
    for position, entry in enumerate(indexed_chunks):
        try:
            score = cosine_similarity(query, entry.embedding)
        except ValidationError as exc:
            raise ValidationError(f"Cannot score chunk {entry.chunk_id} (position {position}): {exc}") from exc
        scored.append((entry, score))

    # sorted() is stable, reverse=True included: ties keep insertion order
    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)

    return [
        RetrievalResult(indexed_chunk=entry, score=score, rank=i)
        for i, (entry, score) in enumerate(scored[:top_k], 1)
    ]
