"""
docqa — Ask questions about one document
========================================
Retrieval-augmented question answering over a single uploaded document.

Modules:
  1. normalizer       — whitespace normalization
  2. chunkers         — overlapping word-window chunking
  3. embedder         — embedding providers + batched, validated gateway
  4. vector_store     — in-memory chunk/vector store
  5. ranker           — cosine similarity, top-K
  6. generator        — grounding prompt, LLM backends, source attribution
  7. pipeline         — DocumentSession: ingest once, ask many times
  8. document_loader  — PDF / text extraction
  9. config           — defaults, YAML file, DOCQA_* environment overrides

Usage:
  docqa-ask handbook.pdf "What is the notice period?"
"""

from docqa.chunkers import Chunk, WordWindowChunker, chunk_words
from docqa.config import DocQAConfig, load_config
from docqa.embedder import EmbeddingGateway, EmbeddingProvider
from docqa.errors import ConfigurationError, DocQAError, EmptyIndexError, ProviderError, ValidationError
from docqa.generator import AnswerSynthesizer, CompletionBackend, RAGAnswer, SourceRef
from docqa.normalizer import normalize
from docqa.pipeline import DocumentSession
from docqa.ranker import RetrievalResult, cosine_similarity, rank
from docqa.vector_store import IndexedChunk, VectorStore

__version__ = "0.1.0"
