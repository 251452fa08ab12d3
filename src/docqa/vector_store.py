"""
vector_store.py — In-memory store of chunks and their vectors
==============================================================

One document, a few hundred chunks. At that scale an ordered Python
list scanned end to end is fast enough and has no approximation error,
so that is what this is: no index structure, no persistence.

What this module does:
  1. Pair each chunk with its embedding (1:1, created together)
  2. Number entries 0, 1, 2, ... in insertion order
  3. Hand the whole ordered list to the ranker for a full scan
  4. Forget everything on clear() when a new document replaces the old one

If a future document set outgrows the full scan, an approximate index
can sit behind the same append()/all() contract without the ranker or
the session noticing.

Usage:
  from docqa.vector_store import VectorStore
  store = VectorStore()
  entry = store.append(chunk, vector)
  for entry in store.all(): ...
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone

import numpy as np

from docqa.chunkers import Chunk
from docqa.embedder import validate_embedding
from docqa.errors import ValidationError

PREVIEW_CHARS = 100


def make_preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


@dataclass(frozen=True, eq=False)
class IndexedChunk:
    """A chunk, its embedding, and metadata derived when it was stored."""
    chunk: Chunk
    embedding: np.ndarray
    word_count: int
    char_count: int
    text_preview: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunk_id(self) -> int:
        return self.chunk.chunk_id

    @property
    def sequence_index(self) -> int:
        return self.chunk.sequence_index

    @property
    def text(self) -> str:
        return self.chunk.text

    @property
    def source_label(self) -> str:
        return self.chunk.source_label

    def __repr__(self):
        return (f"IndexedChunk(id={self.chunk_id}, dim={self.embedding.shape[0]}, "
                f"words={self.word_count}, preview={self.text_preview[:40]!r})")


class VectorStore:
    """
    Append-only, insertion-ordered list of IndexedChunk.

    RULES:
      - append() assigns the id; ids are contiguous from 0
      - every embedding has the same dimension (set by `dim` or the first append)
      - no per-entry delete; clear() drops everything and resets the counter
      - one store per session, no locking
    """

    def __init__(self, dim: int | None = None):
        self._configured_dim = dim
        self.dim = dim
        self._entries: list[IndexedChunk] = []

    def append(self, chunk: Chunk, embedding) -> IndexedChunk:
        """Store one (chunk, embedding) pair and return the stored record."""
        vector = self._check_vector(embedding)
        entry = self._make_entry(chunk, vector, len(self._entries))
        self._entries.append(entry)
        if self.dim is None:
            self.dim = vector.shape[0]
        return entry

    def extend(self, pairs) -> list[IndexedChunk]:
        """
        Append several pairs. All vectors are checked before any is stored,
        so a bad vector leaves the store untouched.
        """
        pairs = list(pairs)
        dim = self.dim
        checked = []
        for chunk, embedding in pairs:
            vector = validate_embedding(embedding, dim)
            dim = vector.shape[0]
            checked.append((chunk, vector))

        return [self.append(chunk, vector) for chunk, vector in checked]

    def all(self) -> list[IndexedChunk]:
        """Every entry in insertion order (a copy; the store itself is not exposed)."""
        return list(self._entries)

    def clear(self):
        self._entries = []
        self.dim = self._configured_dim

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _check_vector(self, embedding) -> np.ndarray:
        try:
            vector = validate_embedding(embedding, self.dim)
        except ValidationError as exc:
            raise ValidationError(f"Cannot store entry {len(self._entries)}: {exc}") from exc
        vector = vector.copy()
        vector.setflags(write=False)
        return vector

    @staticmethod
    def _make_entry(chunk: Chunk, vector: np.ndarray, index: int) -> IndexedChunk:
        if chunk.chunk_id != index or chunk.sequence_index != index:
            chunk = dataclasses.replace(chunk, chunk_id=index, sequence_index=index)
        return IndexedChunk(
            chunk=chunk,
            embedding=vector,
            word_count=chunk.word_count,
            char_count=chunk.char_count,
            text_preview=make_preview(chunk.text),
        )

    # ==================== DIAGNOSTICS ====================

    def stats(self) -> dict:
        """Return store statistics."""
        sources = sorted({e.source_label for e in self._entries})
        return {
            "num_chunks": len(self._entries),
            "dim": self.dim,
            "total_words": sum(e.word_count for e in self._entries),
            "total_chars": sum(e.char_count for e in self._entries),
            "sources": sources,
        }
