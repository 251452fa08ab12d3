"""
embedder.py — Turn chunks and queries into validated vectors
=============================================================

Retrieval works by finding chunks whose vectors are "close" to the
query vector. The embedding model decides what "close" means, and it
is an external service as far as the engine is concerned: a local
sentence-transformers model, a llama.cpp server, a hosted API.

This module has two layers:

  1. Providers: thin adapters around a concrete model.
     SentenceTransformerProvider  — local model (default all-MiniLM-L6-v2)
     OpenAIEmbeddingProvider      — any OpenAI-compatible /v1/embeddings endpoint

  2. EmbeddingGateway, the only thing the rest of the engine talks to.
     - Loads the provider once, on first use
     - Splits large inputs into batches (default 32), in order
     - Checks every vector: 1-D, numeric, finite, expected dimension
     - Wraps provider failures in ProviderError with batch context

Why validate at all:
  A model server that returns a truncated vector or a NaN does not
  fail loudly. Cosine similarity on a NaN is NaN, sorting puts it
  anywhere, and you get plausible-looking but wrong context. We refuse
  the vector instead.

Usage:
  from docqa.embedder import EmbeddingGateway, SentenceTransformerProvider
  gateway = EmbeddingGateway(SentenceTransformerProvider())
  vectors = gateway.embed_batch([c.text for c in chunks])
  query_vec = gateway.embed("What is the refund policy?")
"""

import logging
import os
from abc import ABC, abstractmethod

import numpy as np

from docqa.errors import ConfigurationError, DocQAError, ProviderError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 32


# ==================== PROVIDERS ====================

class EmbeddingProvider(ABC):
    """
    Abstract base for embedding models.

    A provider does one thing: texts in, one vector per text out, same
    order. It may need a slow one-time setup (downloading weights,
    opening a client) which happens in initialize().
    """

    @abstractmethod
    def initialize(self):
        ...

    @abstractmethod
    def embed_texts(self, texts: list[str]):
        """Return one vector per text (list of lists or a 2-D array)."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def dim(self) -> int | None:
        """Declared dimensionality, or None if unknown until the first call."""
        return None


class SentenceTransformerProvider(EmbeddingProvider):
    """
    Local embeddings via sentence-transformers.

    all-MiniLM-L6-v2 gives 384-dim vectors and runs fine on CPU. We ask
    for L2-normalized output, so cosine similarity and dot product agree.
    The model is loaded on initialize(), not in the constructor, so
    building a session is cheap until the first document arrives.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", normalize: bool = True,
                 device: str | None = None):
        self.model_name = model_name
        self.normalize = normalize
        self.device = device
        self.model = None
        self._dim = None

    @property
    def name(self) -> str:
        return f"sentence-transformers/{self.model_name}"

    @property
    def dim(self) -> int | None:
        return self._dim

    def initialize(self):
        if self.model is not None:
            return
        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model %s", self.model_name)
        self.model = SentenceTransformer(self.model_name, device=self.device)
        self._dim = self.model.get_sentence_embedding_dimension()
        logger.info("Embedding model ready (%s dims)", self._dim)

    def embed_texts(self, texts: list[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            batch_size=len(texts),
            normalize_embeddings=self.normalize,
            show_progress_bar=False,
            convert_to_numpy=True,
        )


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Any server that speaks POST /v1/embeddings.

    Covers the hosted OpenAI API and local servers that mimic it
    (llama.cpp, Docker Model Runner, vLLM, Ollama). For a local server
    pass base_url; the API key may then be any placeholder string.
    """

    def __init__(self, model: str = "text-embedding-3-small", base_url: str | None = None,
                 api_key: str | None = None, dim: int | None = None, timeout: float = 60.0):
        self.model = model
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.client = None
        self._dim = dim

    @property
    def name(self) -> str:
        return f"openai-compatible/{self.model}"

    @property
    def dim(self) -> int | None:
        return self._dim

    def initialize(self):
        if self.client is not None:
            return
        import openai

        api_key = self.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            if not self.base_url:
                raise ConfigurationError(
                    "No API key for the embeddings endpoint. Set OPENAI_API_KEY "
                    "or pass base_url for a local server."
                )
            api_key = "local"

        kwargs = {"api_key": api_key, "timeout": self.timeout}
        if self.base_url:
            kwargs["base_url"] = self.base_url
        self.client = openai.OpenAI(**kwargs)

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        response = self.client.embeddings.create(model=self.model, input=texts)
        data = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in data]


def create_provider(provider: str, model: str, base_url: str | None = None,
                    timeout: float = 60.0) -> EmbeddingProvider:
    """Factory — create an embedding provider from its config name."""
    if provider == "sentence-transformers":
        return SentenceTransformerProvider(model_name=model)
    elif provider == "openai":
        return OpenAIEmbeddingProvider(model=model, base_url=base_url, timeout=timeout)
    else:
        raise ConfigurationError(
            f"Unknown embedding provider: {provider!r}. Use: sentence-transformers, openai"
        )


# ==================== VALIDATION ====================

def validate_embedding(vector, expected_dim: int | None = None) -> np.ndarray:
    """
    Check one vector and return it as a 1-D float64 array.

    Raises ValidationError for anything that is not a flat sequence of
    finite real numbers of length expected_dim.
    """
    if isinstance(vector, (str, bytes)):
        raise ValidationError(f"Embedding must be a sequence of numbers, got {type(vector).__name__}")

    try:
        arr = np.asarray(vector)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Embedding is not a flat sequence of numbers: {exc}") from exc
    if arr.dtype.kind not in "iuf":
        raise ValidationError(f"Embedding contains non-numeric values (dtype {arr.dtype})")
    if arr.ndim != 1:
        raise ValidationError(f"Embedding must be 1-D, got shape {arr.shape}")
    if arr.size == 0:
        raise ValidationError("Embedding is empty")

    arr = arr.astype(np.float64)
    if not np.all(np.isfinite(arr)):
        bad = int(np.count_nonzero(~np.isfinite(arr)))
        raise ValidationError(f"Embedding contains {bad} non-finite value(s) (NaN or inf)")
    if expected_dim is not None and arr.shape[0] != expected_dim:
        raise ValidationError(
            f"Embedding dimension mismatch: expected {expected_dim}, got {arr.shape[0]}"
        )
    return arr


# ==================== GATEWAY ====================

class EmbeddingGateway:
    """
    Ordered, validated, batched access to one embedding provider.

    The gateway instance owns the provider's loaded state. Two sessions
    that must not share a model simply build two gateways.

    DIMENSION:
      Fixed once per gateway. Taken from `dim` if given, else from the
      provider's declared dim after initialize(), else from the first
      vector that passes validation. Every later vector must match.

    FAILURE:
      Batches run one after another. The first failure (provider
      exception or invalid vector) stops everything and raises; nothing
      from earlier batches is returned.
    """

    def __init__(self, provider: EmbeddingProvider, dim: int | None = None,
                 batch_size: int = DEFAULT_BATCH_SIZE):
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
        self.provider = provider
        self.batch_size = batch_size
        self._dim = dim
        self._initialized = False

    @property
    def dim(self) -> int | None:
        return self._dim

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self):
        """Load the provider. Safe to call repeatedly; only the first call does work."""
        if self._initialized:
            return

        try:
            self.provider.initialize()
        except DocQAError:
            raise
        except Exception as exc:
            raise ProviderError(f"Could not initialize embedding provider {self.provider.name}: {exc}") from exc

        declared = self.provider.dim
        if declared is not None:
            if self._dim is not None and self._dim != declared:
                raise ValidationError(
                    f"Configured dimension {self._dim} does not match "
                    f"{self.provider.name} ({declared} dims)"
                )
            self._dim = declared
        self._initialized = True

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text (typically a query)."""
        self.initialize()
        preview = text[:50]
        return self._call_provider([text], f"query {preview!r}")[0]

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Embed texts in order, batch by batch. Fail-fast on the first error."""
        texts = list(texts)
        if not texts:
            return []

        self.initialize()
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        logger.info("Embedding %d texts in %d batch(es) of up to %d",
                    len(texts), total_batches, self.batch_size)

        vectors = []
        for batch_no, start in enumerate(range(0, len(texts), self.batch_size), 1):
            batch = texts[start:start + self.batch_size]
            context = f"batch {batch_no}/{total_batches} (items {start}-{start + len(batch) - 1})"
            vectors.extend(self._call_provider(batch, context))
            logger.debug("Completed %s", context)

        return vectors

    def _call_provider(self, texts: list[str], context: str) -> list[np.ndarray]:
        try:
            raw = self.provider.embed_texts(texts)
        except DocQAError:
            raise
        except Exception as exc:
            raise ProviderError(f"Embedding failed for {context}: {exc}") from exc

        try:
            got = len(raw)
        except TypeError:
            raise ValidationError(
                f"Embedding provider returned {type(raw).__name__}, not a list of vectors ({context})"
            ) from None
        if got != len(texts):
            raise ValidationError(
                f"Embedding provider returned {got} vectors for {len(texts)} texts ({context})"
            )

        validated = []
        for offset, vector in enumerate(raw):
            try:
                arr = validate_embedding(vector, self._dim)
            except ValidationError as exc:
                raise ValidationError(f"{exc} ({context}, item {offset})") from exc
            if self._dim is None:
                self._dim = arr.shape[0]
            validated.append(arr)
        return validated

    def __repr__(self):
        return (f"EmbeddingGateway(provider={self.provider.name!r}, dim={self._dim}, "
                f"batch_size={self.batch_size})")
