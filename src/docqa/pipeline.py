"""
pipeline.py — One document, many questions
===========================================

DocumentSession wires the pieces together and owns their state:

  Ingestion:  raw text → normalize → chunk → embed (batched) → store
  Query:      question → normalize → embed → rank → synthesize

Ingestion is all-or-nothing. Every chunk is embedded before anything
touches the store, so a provider failure halfway through leaves the
session empty rather than half-indexed. Loading a new document clears
the previous one first.

A session is single-writer: run one ingestion or query at a time. A
process serving several users should build one session per user.

Usage:
  from docqa.pipeline import DocumentSession
  session = DocumentSession.from_config(load_config())
  session.load_file("handbook.pdf")
  result = session.ask("How many vacation days do new hires get?")
"""

import logging
from pathlib import Path

from docqa.chunkers import WordWindowChunker, chunk_stats
from docqa.config import DocQAConfig
from docqa.document_loader import load_document
from docqa.embedder import EmbeddingGateway, create_provider
from docqa.errors import EmptyIndexError
from docqa.generator import AnswerSynthesizer, CompletionBackend, RAGAnswer, create_backend_from_preset
from docqa.normalizer import normalize
from docqa.ranker import RetrievalResult, rank, validate_top_k
from docqa.vector_store import IndexedChunk, VectorStore

logger = logging.getLogger(__name__)


class DocumentSession:
    """Owns one chunker, one gateway, one store and one synthesizer."""

    def __init__(self, gateway: EmbeddingGateway, synthesizer: AnswerSynthesizer,
                 chunker: WordWindowChunker | None = None, top_k: int = 3):
        self.gateway = gateway
        self.synthesizer = synthesizer
        self.chunker = chunker or WordWindowChunker()
        self.top_k = validate_top_k(top_k)
        self.store = VectorStore(dim=gateway.dim)
        self.source_label: str | None = None

    @classmethod
    def from_config(cls, config: DocQAConfig, backend: CompletionBackend | None = None) -> "DocumentSession":
        """Build a session from config. Models are not loaded until first use."""
        provider = create_provider(
            config.embedding_provider, config.embedding_model,
            base_url=config.embedding_base_url, timeout=config.request_timeout,
        )
        gateway = EmbeddingGateway(provider, dim=config.embedding_dim, batch_size=config.embed_batch_size)
        if backend is None:
            backend = create_backend_from_preset(
                config.llm_preset,
                max_tokens=config.max_output_tokens,
                temperature=config.temperature,
                timeout=config.request_timeout,
            )
        chunker = WordWindowChunker(config.chunk_size_words, config.overlap_words, config.min_chunk_words)
        return cls(gateway, AnswerSynthesizer(backend), chunker=chunker, top_k=config.top_k)

    # ==================== INGESTION ====================

    def load_text(self, text: str, source_label: str = "document") -> list[IndexedChunk]:
        """Replace the current index with one built from `text`."""
        self.clear()

        chunks = self.chunker.chunk(text, source_label=source_label)
        logger.info("%s: %d chunks (%r)", source_label, len(chunks), self.chunker)
        if not chunks:
            self.source_label = source_label
            return []

        vectors = self.gateway.embed_batch([c.text for c in chunks])
        entries = self.store.extend(zip(chunks, vectors))
        self.source_label = source_label
        logger.info("%s: indexed %d chunks (%s dims)", source_label, len(entries), self.store.dim)
        return entries

    def load_file(self, filepath: str | Path) -> list[IndexedChunk]:
        doc = load_document(filepath)
        return self.load_text(doc.text, source_label=doc.source_label)

    def clear(self):
        self.store.clear()
        self.source_label = None

    # ==================== QUERY ====================

    def retrieve(self, query: str, top_k: int | None = None,
                 require_results: bool = False) -> list[RetrievalResult]:
        """Embed the normalized query and rank the whole store against it."""
        top_k = self.top_k if top_k is None else validate_top_k(top_k)
        if self.store.is_empty:
            if require_results:
                raise EmptyIndexError("No chunks indexed; load a document before querying")
            return []

        query_vec = self.gateway.embed(normalize(query))
        results = rank(query_vec, self.store.all(), top_k=top_k, require_results=require_results)
        for r in results:
            logger.debug("#%d score=%.4f chunk=%d %r", r.rank, r.score,
                         r.indexed_chunk.chunk_id, r.indexed_chunk.text_preview[:60])
        return results

    def ask(self, query: str, top_k: int | None = None) -> RAGAnswer:
        """Retrieve, then answer. An empty index still produces an answer."""
        results = self.retrieve(query, top_k=top_k)
        return self.synthesizer.synthesize(query.strip(), results)

    # ==================== DIAGNOSTICS ====================

    def stats(self) -> dict:
        return {
            "source": self.source_label,
            "chunker": repr(self.chunker),
            "embedding": self.gateway.provider.name,
            "chunks": chunk_stats([e.chunk for e in self.store.all()]),
            "store": self.store.stats(),
        }
