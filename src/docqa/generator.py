"""
generator.py — Grounded answer generation with source attribution
==================================================================

This is where the RAG loop closes:
  Question → Retrieved chunks → Grounding prompt → LLM → Answer + sources

Provider-agnostic:
  Supports any LLM through a small adapter:
  - OpenAI-compatible APIs (OpenRouter, OpenAI, DeepSeek, local vLLM)
  - Anthropic Claude (native SDK)
  - Ollama (local models, no API key needed)

  All of them implement complete(prompt) -> text. Nothing else in the
  engine knows which one is in use.

Attribution is structural:
  The sources list is built from what was retrieved, in ranked order,
  not parsed out of the answer. If the model never writes [Source 2],
  Source 2 is still reported, because it was in front of the model.

No context is still a question:
  With zero retrieved chunks we do NOT short-circuit. The model gets a
  "No relevant context found." placeholder and can say it doesn't know.

API keys:
  export OPENROUTER_API_KEY="sk-or-..."     # default preset
  export OPENAI_API_KEY="sk-..."
  export ANTHROPIC_API_KEY="sk-ant-..."

Usage:
  from docqa.generator import AnswerSynthesizer, create_backend_from_preset
  synth = AnswerSynthesizer(create_backend_from_preset("gpt-oss"))
  result = synth.synthesize("What is the refund policy?", retrieved)
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from docqa.errors import ConfigurationError, DocQAError, ProviderError
from docqa.ranker import RetrievalResult

logger = logging.getLogger(__name__)

NO_CONTEXT_PLACEHOLDER = "No relevant context found."


# ==================== DATA STRUCTURES ====================

@dataclass(frozen=True)
class SourceRef:
    """Links an answer back to one retrieved chunk."""
    reference: str
    chunk_id: int
    sequence_index: int
    source_label: str
    score: float
    text_preview: str


@dataclass
class RAGAnswer:
    """Full response with answer, sources, and diagnostics."""
    query: str
    answer: str
    sources: list[SourceRef] = field(default_factory=list)
    model: str = ""
    provider: str = ""
    context_length: int = 0
    no_context: bool = False
    usage: dict = field(default_factory=dict)

    def summary(self) -> str:
        lines = [
            f"Query: {self.query!r}",
            f"Provider: {self.provider} | Model: {self.model}",
            f"Sources: {len(self.sources)} | Context: {self.context_length:,} chars",
        ]
        if self.no_context:
            lines.append("No relevant context was retrieved")
        if self.usage:
            inp = self.usage.get("input_tokens", "?")
            out = self.usage.get("output_tokens", "?")
            lines.append(f"Tokens: {inp} in, {out} out")
        return "\n".join(lines)


# ==================== PROMPT ====================

def build_context_block(retrieved: list[RetrievalResult]) -> str:
    """Format retrieved chunks into labelled [Source i] blocks, best first."""
    if not retrieved:
        return NO_CONTEXT_PLACEHOLDER

    blocks = []
    for i, result in enumerate(retrieved, 1):
        blocks.append(f"[Source {i}] (Similarity: {result.score:.4f})\n{result.indexed_chunk.text}")
    return "\n\n".join(blocks)


def build_prompt(query: str, context_block: str) -> str:
    """Role instructions, then context, then the question (recency bias)."""
    return f"""You are a helpful assistant that answers questions based on the provided context from a document.

Instructions:
- Answer the question using ONLY the provided context.
- If the context doesn't contain enough information to answer the question, say so.
- Cite the sources you use with their labels, e.g. [Source 1].
- Be concise.

Context:
{context_block}

Question: {query}

Answer:"""


def build_sources(retrieved: list[RetrievalResult]) -> list[SourceRef]:
    return [
        SourceRef(
            reference=f"[Source {i}]",
            chunk_id=r.indexed_chunk.chunk_id,
            sequence_index=r.indexed_chunk.sequence_index,
            source_label=r.indexed_chunk.source_label,
            score=r.score,
            text_preview=r.indexed_chunk.text_preview,
        )
        for i, r in enumerate(retrieved, 1)
    ]


# ==================== LLM BACKENDS ====================

class CompletionBackend(ABC):
    """
    Abstract base for LLM providers.

    Every backend implements complete(): prompt in, text out. Token
    usage from the last call, when the provider reports it, is left in
    last_usage.
    """

    model: str = ""
    last_usage: dict | None = None

    @abstractmethod
    def complete(self, prompt: str) -> str:
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...


class OpenAIBackend(CompletionBackend):
    """
    OpenAI-compatible chat API: OpenRouter, OpenAI, DeepSeek, vLLM, etc.

    Any provider that speaks /v1/chat/completions works here:
      - OpenRouter:  https://openrouter.ai/api/v1
      - OpenAI:      https://api.openai.com/v1
      - DeepSeek:    https://api.deepseek.com/v1
      - Local vLLM:  http://localhost:8000/v1
    """

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 base_url: str | None = None, api_key: str | None = None,
                 timeout: float = 60.0):
        import openai

        if api_key is None:
            if base_url and "openrouter" in base_url:
                api_key = os.environ.get("OPENROUTER_API_KEY")
            elif base_url and "deepseek" in base_url:
                api_key = os.environ.get("DEEPSEEK_API_KEY")
            if not api_key:
                api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "No API key found. Set one of:\n"
                "  export OPENROUTER_API_KEY=...\n"
                "  export OPENAI_API_KEY=...\n"
                "  export DEEPSEEK_API_KEY=..."
            )

        kwargs = {"api_key": api_key, "timeout": timeout}
        if base_url:
            kwargs["base_url"] = base_url
        self.client = openai.OpenAI(**kwargs)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.last_usage = {}
        self._base_url = base_url or "openai"

    @property
    def name(self) -> str:
        for keyword in ["openrouter", "deepseek"]:
            if keyword in self._base_url:
                return keyword
        return "openai"

    def complete(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.choices or response.choices[0].message is None:
            raise ProviderError("Invalid completion response: missing message data")
        self.last_usage = {}
        if response.usage:
            self.last_usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return (response.choices[0].message.content or "").strip()


class ClaudeBackend(CompletionBackend):
    """Anthropic Claude via native SDK."""

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 api_key: str | None = None, timeout: float = 60.0):
        import anthropic

        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not set.\n  export ANTHROPIC_API_KEY=sk-ant-...")
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.last_usage = {}

    @property
    def name(self) -> str:
        return "claude"

    def complete(self, prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        self.last_usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        return "".join(block.text for block in response.content if block.type == "text").strip()


class OllamaBackend(OpenAIBackend):
    """
    Ollama for local models — no API key, no cost, full privacy.

    ollama pull llama3.1
    Then it just works at localhost:11434.
    """

    def __init__(self, model: str, max_tokens: int, temperature: float,
                 host: str = "http://localhost:11434", timeout: float = 60.0):
        # Ollama ignores the key but the SDK requires one
        super().__init__(model, max_tokens, temperature,
                         base_url=f"{host}/v1", api_key="ollama", timeout=timeout)

    @property
    def name(self) -> str:
        return "ollama"


# ==================== PRESETS ====================

PRESETS = {
    # --- OpenRouter ---
    "gpt-oss":      {"provider": "openai",  "model": "openai/gpt-oss-20b:free",
                     "base_url": "https://openrouter.ai/api/v1"},
    "longcat":      {"provider": "openai",  "model": "meituan/longcat-flash-chat:free",
                     "base_url": "https://openrouter.ai/api/v1"},

    # --- OpenAI ---
    "gpt4o-mini":   {"provider": "openai",  "model": "gpt-4o-mini"},

    # --- Anthropic ---
    "claude":       {"provider": "claude",  "model": "claude-sonnet-4-20250514"},
    "claude-haiku": {"provider": "claude",  "model": "claude-haiku-4-5-20251001"},

    # --- Local (Ollama) ---
    "llama3":       {"provider": "ollama",  "model": "llama3.1"},
    "mistral":      {"provider": "ollama",  "model": "mistral"},
}


def list_presets() -> str:
    """List available model presets."""
    lines = ["Available presets:"]
    for name, cfg in PRESETS.items():
        url = cfg.get("base_url", "")
        extra = f"  ({url})" if url else ""
        lines.append(f"  {name:<16} {cfg['provider']:<8} {cfg['model']}{extra}")
    return "\n".join(lines)


def create_backend(
    provider: str,
    model: str,
    max_tokens: int = 1000,
    temperature: float = 0.1,
    base_url: str | None = None,
    api_key: str | None = None,
    timeout: float = 60.0,
) -> CompletionBackend:
    """Factory — create the right backend from provider string."""
    if provider == "openai":
        return OpenAIBackend(model, max_tokens, temperature, base_url, api_key, timeout)
    elif provider == "claude":
        return ClaudeBackend(model, max_tokens, temperature, api_key, timeout)
    elif provider == "ollama":
        return OllamaBackend(model, max_tokens, temperature, timeout=timeout)
    else:
        raise ConfigurationError(f"Unknown provider: {provider!r}. Use: openai, claude, ollama")


def create_backend_from_preset(preset: str, **kwargs) -> CompletionBackend:
    if preset not in PRESETS:
        raise ConfigurationError(f"Unknown preset: {preset!r}\n{list_presets()}")
    cfg = PRESETS[preset]
    return create_backend(cfg["provider"], cfg["model"], base_url=cfg.get("base_url"), **kwargs)


# ==================== SYNTHESIZER ====================

class AnswerSynthesizer:
    """
    Turn a query and its ranked chunks into an answer with sources.

    One completion call per synthesize(), no retries. The backend is
    injected, so tests can hand in a scripted fake.
    """

    def __init__(self, backend: CompletionBackend):
        self.backend = backend

    def synthesize(self, query: str, retrieved: list[RetrievalResult]) -> RAGAnswer:
        retrieved = list(retrieved)
        context_block = build_context_block(retrieved)
        prompt = build_prompt(query, context_block)

        logger.info("Calling %s/%s with %d source(s), %d context chars",
                    self.backend.name, self.backend.model, len(retrieved), len(context_block))
        try:
            answer = self.backend.complete(prompt)
        except DocQAError:
            raise
        except Exception as exc:
            raise ProviderError(
                f"Completion failed ({self.backend.name}/{self.backend.model}) "
                f"for query {query[:50]!r}: {exc}"
            ) from exc

        return RAGAnswer(
            query=query,
            answer=answer,
            sources=build_sources(retrieved),
            model=self.backend.model,
            provider=self.backend.name,
            context_length=len(context_block),
            no_context=not retrieved,
            usage=dict(self.backend.last_usage or {}),
        )


# ==================== DISPLAY ====================

def print_answer(resp: RAGAnswer):
    """Pretty-print an answer with its sources and diagnostics."""
    print(f"\n{'='*70}")
    print(f"  ANSWER")
    print(f"{'='*70}")
    print(f"\n{resp.answer}")

    print(f"\n{'─'*70}")
    print(f"  SOURCES")
    print(f"{'─'*70}")
    if not resp.sources:
        print("  (none: no relevant context was retrieved)")
    for s in resp.sources:
        print(f"  {s.reference} chunk {s.chunk_id} of {s.source_label}  score={s.score:.4f}")
        print(f"      {s.text_preview}")

    print(f"\n  {resp.summary()}")
