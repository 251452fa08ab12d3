import pytest

from conftest import FakeBackend
from docqa.chunkers import Chunk
from docqa.errors import ConfigurationError, ProviderError
from docqa.generator import (
    NO_CONTEXT_PLACEHOLDER,
    PRESETS,
    AnswerSynthesizer,
    CompletionBackend,
    OpenAIBackend,
    build_context_block,
    build_prompt,
    create_backend,
    create_backend_from_preset,
    list_presets,
)
from docqa.ranker import rank
from docqa.vector_store import VectorStore


@pytest.fixture
def retrieved():
    store = VectorStore()
    texts = [
        "Refunds are issued within 14 days of the return being received.",
        "Shipping is free for orders over fifty dollars.",
        "Our cats and dogs policy allows pets in the office on Fridays.",
    ]
    for i, text in enumerate(texts):
        store.append(Chunk(chunk_id=i, text=text, source_label="faq.pdf", sequence_index=i),
                     [1.0, float(i)])
    return rank([1.0, 0.0], store.all(), top_k=2)


def test_context_block_labels_sources_in_ranked_order(retrieved):
    block = build_context_block(retrieved)
    first, second = block.split("\n\n")

    assert first.startswith("[Source 1] (Similarity: 1.0000)\nRefunds are issued")
    assert second.startswith("[Source 2] (Similarity: 0.7071)\nShipping is free")


def test_empty_context_uses_placeholder():
    assert build_context_block([]) == NO_CONTEXT_PLACEHOLDER == "No relevant context found."


def test_prompt_contains_instructions_context_and_literal_query():
    prompt = build_prompt("What's the  refund window?", "[Source 1] (Similarity: 0.9000)\nRefunds...")
    assert "ONLY the provided context" in prompt
    assert "say so" in prompt
    assert "[Source 1]" in prompt
    assert "concise" in prompt
    assert "Question: What's the  refund window?" in prompt
    assert prompt.index("Context:") < prompt.index("Question:")


def test_synthesize_calls_backend_once_and_attributes_sources(retrieved, backend, synthesizer):
    result = synthesizer.synthesize("How long do refunds take?", retrieved)

    assert len(backend.prompts) == 1
    assert "Refunds are issued within 14 days" in backend.prompts[0]
    assert result.answer == "It is 42 [Source 1]."
    assert result.query == "How long do refunds take?"
    assert result.model == "fake-model"
    assert result.provider == "fake"
    assert result.usage == {"input_tokens": 10, "output_tokens": 5}
    assert not result.no_context

    assert [s.reference for s in result.sources] == ["[Source 1]", "[Source 2]"]
    assert [s.chunk_id for s in result.sources] == [0, 1]
    assert [s.sequence_index for s in result.sources] == [0, 1]
    assert all(s.source_label == "faq.pdf" for s in result.sources)
    assert result.sources[0].score == pytest.approx(1.0)
    assert result.sources[1].text_preview.startswith("Shipping is free")


def test_sources_do_not_depend_on_answer_text(retrieved):
    backend = FakeBackend(answer="I cite nothing at all.")
    result = AnswerSynthesizer(backend).synthesize("q", retrieved)
    assert len(result.sources) == 2


def test_no_context_still_calls_backend():
    backend = FakeBackend(answer="I don't know based on the document.")
    result = AnswerSynthesizer(backend).synthesize("What is the capital of Peru?", [])

    assert len(backend.prompts) == 1
    assert NO_CONTEXT_PLACEHOLDER in backend.prompts[0]
    assert result.answer == "I don't know based on the document."
    assert result.sources == []
    assert result.no_context
    assert result.context_length == len(NO_CONTEXT_PLACEHOLDER)


def test_backend_failure_is_wrapped_and_not_retried(retrieved):
    backend = FakeBackend(error=TimeoutError("read timed out"))
    with pytest.raises(ProviderError, match="read timed out") as excinfo:
        AnswerSynthesizer(backend).synthesize("q", retrieved)
    assert isinstance(excinfo.value.__cause__, TimeoutError)
    assert len(backend.prompts) == 1


def test_summary_mentions_sources(retrieved, synthesizer):
    summary = synthesizer.synthesize("q", retrieved).summary()
    assert "Sources: 2" in summary
    assert "Tokens: 10 in, 5 out" in summary


# ==================== backends ====================

def test_unknown_provider_and_preset():
    with pytest.raises(ConfigurationError):
        create_backend("cohere", "command-r")
    with pytest.raises(ConfigurationError, match="Unknown preset"):
        create_backend_from_preset("gpt-9")


def test_openrouter_preset_reads_openrouter_key(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    backend = create_backend_from_preset("gpt-oss")
    assert backend.name == "openrouter"
    assert backend.model == PRESETS["gpt-oss"]["model"]


def test_missing_api_key(monkeypatch):
    for var in ("OPENROUTER_API_KEY", "OPENAI_API_KEY", "DEEPSEEK_API_KEY", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    with pytest.raises(ConfigurationError, match="No API key"):
        create_backend_from_preset("gpt-oss")
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
        create_backend_from_preset("claude")


def test_ollama_needs_no_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    backend = create_backend_from_preset("llama3")
    assert backend.name == "ollama"


def test_list_presets():
    listing = list_presets()
    for name in PRESETS:
        assert name in listing


def test_backend_without_usage_reporting(retrieved):
    class Quiet(CompletionBackend):
        model = "quiet-model"

        @property
        def name(self) -> str:
            return "quiet"

        def complete(self, prompt: str) -> str:
            return "Fine."

    first, second = Quiet(), Quiet()
    result = AnswerSynthesizer(first).synthesize("What is the refund policy?", retrieved)

    assert result.usage == {}
    assert first.last_usage is None and second.last_usage is None


@pytest.mark.parametrize("base_url, expected", [
    ("https://openrouter.ai/api/v1", "openrouter"),
    ("https://api.deepseek.com/v1", "deepseek"),
    ("https://api.together.xyz/v1", "openai"),
    (None, "openai"),
])
def test_openai_compatible_backend_name(base_url, expected):
    backend = OpenAIBackend("some-model", max_tokens=10, temperature=0.0, base_url=base_url, api_key="sk-test")
    assert backend.name == expected
