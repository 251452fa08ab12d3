import numpy as np
import pytest

from docqa.chunkers import Chunk
from docqa.errors import ValidationError
from docqa.vector_store import IndexedChunk, VectorStore, make_preview


def _chunk(text: str, idx: int = 0, source: str = "doc.txt") -> Chunk:
    return Chunk(chunk_id=idx, text=text, source_label=source, sequence_index=idx)


def test_append_assigns_contiguous_ids_in_insertion_order():
    store = VectorStore()
    first = store.append(_chunk("first chunk", idx=7), [1.0, 0.0])
    second = store.append(_chunk("second chunk", idx=7), [0.0, 1.0])

    assert (first.chunk_id, first.sequence_index) == (0, 0)
    assert (second.chunk_id, second.sequence_index) == (1, 1)
    assert [e.text for e in store.all()] == ["first chunk", "second chunk"]
    assert len(store) == 2


def test_append_derives_metadata():
    text = "word " * 30
    entry = store_one(text.strip())
    assert isinstance(entry, IndexedChunk)
    assert entry.word_count == 30
    assert entry.char_count == len(text.strip())
    assert entry.text_preview.endswith("...")
    assert len(entry.text_preview) == 103
    assert entry.created_at.tzinfo is not None


def store_one(text):
    return VectorStore().append(_chunk(text), [0.5, 0.5])


def test_preview_is_untouched_for_short_text():
    assert make_preview("short text") == "short text"
    assert make_preview("x" * 100) == "x" * 100
    assert make_preview("x" * 101) == "x" * 100 + "..."


def test_dimension_fixed_by_first_append():
    store = VectorStore()
    store.append(_chunk("a b c"), [1.0, 2.0, 3.0])
    with pytest.raises(ValidationError, match="expected 3, got 2"):
        store.append(_chunk("d e f"), [1.0, 2.0])
    assert len(store) == 1


def test_non_finite_embedding_is_refused():
    with pytest.raises(ValidationError):
        VectorStore().append(_chunk("a"), [np.nan, 1.0])


def test_stored_embedding_is_read_only_copy():
    source = np.array([1.0, 2.0])
    entry = VectorStore().append(_chunk("a"), source)
    source[0] = 99.0
    assert entry.embedding[0] == 1.0
    with pytest.raises(ValueError):
        entry.embedding[0] = 5.0


def test_all_returns_a_copy():
    store = VectorStore()
    store.append(_chunk("a"), [1.0])
    entries = store.all()
    entries.clear()
    assert len(store) == 1


def test_extend_is_all_or_nothing():
    store = VectorStore()
    pairs = [(_chunk("a"), [1.0, 0.0]), (_chunk("b"), [0.0, 1.0]), (_chunk("c"), [1.0])]
    with pytest.raises(ValidationError):
        store.extend(pairs)
    assert store.is_empty


def test_clear_resets_counter_and_dimension():
    store = VectorStore()
    store.append(_chunk("a"), [1.0, 0.0])
    store.append(_chunk("b"), [0.0, 1.0])

    store.clear()
    assert store.is_empty
    assert store.dim is None

    entry = store.append(_chunk("c"), [1.0, 2.0, 3.0])
    assert entry.chunk_id == 0


def test_clear_keeps_configured_dimension():
    store = VectorStore(dim=2)
    store.append(_chunk("a"), [1.0, 0.0])
    store.clear()
    assert store.dim == 2
    with pytest.raises(ValidationError):
        store.append(_chunk("b"), [1.0, 0.0, 0.0])


def test_stats():
    store = VectorStore()
    store.append(_chunk("one two", source="a.pdf"), [1.0, 0.0])
    store.append(_chunk("three", source="a.pdf"), [0.0, 1.0])
    stats = store.stats()
    assert stats["num_chunks"] == 2
    assert stats["dim"] == 2
    assert stats["total_words"] == 3
    assert stats["sources"] == ["a.pdf"]
