"""Shared fakes: scripted embedding providers and completion backends."""

import pytest

from docqa.embedder import EmbeddingGateway, EmbeddingProvider
from docqa.generator import AnswerSynthesizer, CompletionBackend


class KeywordEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic provider for tests: one dimension per vocabulary word,
    value = how many times the word occurs in the text.
    """

    def __init__(self, vocabulary: list[str]):
        self.vocabulary = vocabulary
        self.init_calls = 0
        self.calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "fake/keywords"

    @property
    def dim(self) -> int:
        return len(self.vocabulary)

    def initialize(self):
        self.init_calls += 1

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            words = text.lower().split()
            vectors.append([float(words.count(term)) for term in self.vocabulary])
        return vectors


class ScriptedEmbeddingProvider(EmbeddingProvider):
    """Returns pre-scripted vectors in call order; records every batch it sees."""

    def __init__(self, vectors: list, dim: int | None = None, fail_on_call: int | None = None):
        self.vectors = list(vectors)
        self._dim = dim
        self.fail_on_call = fail_on_call
        self.batches: list[list[str]] = []

    @property
    def name(self) -> str:
        return "fake/scripted"

    @property
    def dim(self) -> int | None:
        return self._dim

    def initialize(self):
        pass

    def embed_texts(self, texts: list[str]):
        self.batches.append(list(texts))
        if self.fail_on_call is not None and len(self.batches) == self.fail_on_call:
            raise ConnectionError("embedding server unavailable")
        out, self.vectors = self.vectors[:len(texts)], self.vectors[len(texts):]
        return out


class FakeBackend(CompletionBackend):
    """Records prompts and returns a canned answer."""

    def __init__(self, answer: str = "It is 42 [Source 1].", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []
        self.model = "fake-model"
        self.last_usage = {"input_tokens": 10, "output_tokens": 5}

    @property
    def name(self) -> str:
        return "fake"

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


VOCABULARY = ["cats", "dogs", "refund", "policy", "shipping"]


@pytest.fixture
def keyword_provider():
    return KeywordEmbeddingProvider(VOCABULARY)


@pytest.fixture
def gateway(keyword_provider):
    return EmbeddingGateway(keyword_provider, batch_size=2)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def synthesizer(backend):
    return AnswerSynthesizer(backend)
