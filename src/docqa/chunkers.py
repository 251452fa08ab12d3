"""
chunkers.py — Word-window chunking with overlap
================================================

The chunk is the atomic unit of retrieval. Whatever we hand to the LLM
as context is a list of chunks, so their size decides both what the
model sees and how precise the ranking can be:

  - Too small → chunks lack context, similarity scores get noisy
  - Too large → one chunk mixes several topics, relevant text gets diluted
  - No overlap → a sentence cut at a boundary is lost to both neighbours

Strategy:
  Split on whitespace into words, slide a window of `chunk_size_words`
  forward by `chunk_size_words - overlap_words` each step. Windows that
  end up tiny (the tail of a document, a stray page number) are dropped
  before any ids are assigned, so surviving chunks are numbered 0..n-1
  with no gaps.

Presets:
  default  — 500 words, 50 overlap (general documents)
  compact  — 200 words, no overlap (low token budget)
  large    — 1500 words, no overlap (long documents, few calls)

Usage:
  from docqa.chunkers import WordWindowChunker
  chunker = WordWindowChunker(chunk_size_words=500, overlap_words=50)
  chunks = chunker.chunk(text, source_label="report.pdf")
"""

from dataclasses import dataclass

from docqa.errors import ConfigurationError
from docqa.normalizer import normalize


CHUNK_PRESETS = {
    "default": {"chunk_size_words": 500, "overlap_words": 50},
    "compact": {"chunk_size_words": 200, "overlap_words": 0},
    "large":   {"chunk_size_words": 1500, "overlap_words": 0},
}

DEFAULT_MIN_CHUNK_WORDS = 5


@dataclass(frozen=True)
class Chunk:
    """A single chunk of normalized text, numbered within its document."""
    chunk_id: int
    text: str
    source_label: str
    sequence_index: int

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    def __repr__(self):
        preview = self.text[:60]
        return (f"Chunk(id={self.chunk_id}, source={self.source_label!r}, "
                f"words={self.word_count}, text={preview!r}...)")


def _validate_window(chunk_size_words: int, overlap_words: int):
    for name, value in (("chunk_size_words", chunk_size_words), ("overlap_words", overlap_words)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if chunk_size_words < 1:
        raise ConfigurationError(f"chunk_size_words must be >= 1, got {chunk_size_words}")
    if overlap_words < 0:
        raise ConfigurationError(f"overlap_words must be >= 0, got {overlap_words}")
    if overlap_words >= chunk_size_words:
        raise ConfigurationError(
            f"overlap_words ({overlap_words}) must be less than "
            f"chunk_size_words ({chunk_size_words}), otherwise the window never advances"
        )


def chunk_words(text: str, chunk_size_words: int, overlap_words: int) -> list[str]:
    """
    Slide a word window over `text` and return the joined windows.

    No filtering happens here: the last window may be a single word.
    For N words and stride = chunk_size_words - overlap_words, the result
    has ceil(N / stride) entries (0 for empty text).
    """
    _validate_window(chunk_size_words, overlap_words)

    words = text.split()
    stride = chunk_size_words - overlap_words
    return [
        " ".join(words[start:start + chunk_size_words])
        for start in range(0, len(words), stride)
    ]


class WordWindowChunker:
    """
    Normalize, window, filter, number.

    HOW IT WORKS:
      1. normalize() the raw text (whitespace runs → single space)
      2. chunk_words() produces overlapping windows
      3. Windows with word count <= min_chunk_words are discarded
      4. Survivors get sequence_index/chunk_id 0, 1, 2, ... in order

    The filter runs BEFORE numbering, so a dropped window never leaves
    a hole in the ids.
    """

    def __init__(self, chunk_size_words: int = 500, overlap_words: int = 50,
                 min_chunk_words: int = DEFAULT_MIN_CHUNK_WORDS):
        _validate_window(chunk_size_words, overlap_words)
        if isinstance(min_chunk_words, bool) or not isinstance(min_chunk_words, int) or min_chunk_words < 0:
            raise ConfigurationError(f"min_chunk_words must be a non-negative integer, got {min_chunk_words!r}")
        self.chunk_size_words = chunk_size_words
        self.overlap_words = overlap_words
        self.min_chunk_words = min_chunk_words

    @classmethod
    def from_preset(cls, name: str, min_chunk_words: int = DEFAULT_MIN_CHUNK_WORDS) -> "WordWindowChunker":
        if name not in CHUNK_PRESETS:
            raise ConfigurationError(
                f"Unknown chunk preset: {name!r}. Use one of: {', '.join(CHUNK_PRESETS)}"
            )
        return cls(min_chunk_words=min_chunk_words, **CHUNK_PRESETS[name])

    @property
    def stride(self) -> int:
        return self.chunk_size_words - self.overlap_words

    def chunk(self, text: str, source_label: str = "document") -> list[Chunk]:
        windows = chunk_words(normalize(text), self.chunk_size_words, self.overlap_words)
        kept = [w for w in windows if len(w.split()) > self.min_chunk_words]

        return [
            Chunk(chunk_id=i, text=window, source_label=source_label, sequence_index=i)
            for i, window in enumerate(kept)
        ]

    def __repr__(self):
        return (f"WordWindowChunker(size={self.chunk_size_words}, "
                f"overlap={self.overlap_words}, min_words={self.min_chunk_words})")


# ==================== STATS ====================

def chunk_stats(chunks: list[Chunk]) -> dict:
    """Compute statistics about a set of chunks."""
    if not chunks:
        return {"count": 0}

    sizes = [c.char_count for c in chunks]
    words = [c.word_count for c in chunks]

    return {
        "count": len(chunks),
        "total_chars": sum(sizes),
        "total_words": sum(words),
        "avg_chars": round(sum(sizes) / len(sizes)),
        "avg_words": round(sum(words) / len(words)),
        "min_words": min(words),
        "max_words": max(words),
        "min_chars": min(sizes),
        "max_chars": max(sizes),
    }
