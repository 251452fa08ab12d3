"""
config.py — Settings for a document session
============================================

Defaults live on DocQAConfig. Two optional layers override them, in
this order:

  1. A YAML file (`docqa.yaml`), flat keys matching the field names.
     String values may reference the environment as ${VAR}.
  2. Environment variables DOCQA_<FIELD>, e.g. DOCQA_TOP_K=5,
     DOCQA_EMBEDDING_PROVIDER=openai.

Example docqa.yaml:

  chunk_preset: compact
  top_k: 5
  embedding_provider: openai
  embedding_model: ai/embeddinggemma:latest
  embedding_base_url: ${EMBEDDINGS_URL}
  llm_preset: claude

CHUNK PRESETS:
  chunk_preset fills in chunk_size_words and overlap_words. Giving a
  preset together with a different explicit size or overlap is a
  conflict and raises ConfigurationError, whichever layer each came from.

API keys are never read from here; backends pick them up from the
environment themselves.
"""

import os
from pathlib import Path

import yaml
from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from docqa.chunkers import CHUNK_PRESETS
from docqa.errors import ConfigurationError

ENV_PREFIX = "DOCQA_"

_PRESET_FIELDS = ("chunk_size_words", "overlap_words")


def _expand_env(obj):
    """Recursively expand ${VAR} references in string values."""
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj


def load_yaml(path: str | Path) -> dict:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed config file {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level")
    return _expand_env(raw)


class YamlFileSource(PydanticBaseSettingsSource):
    """Values from a docqa.yaml file, below the environment in priority."""

    def __init__(self, settings_cls: type[BaseSettings], path: str | Path | None):
        super().__init__(settings_cls)
        self.values = load_yaml(path) if path is not None else {}

    def get_field_value(self, field, field_name: str):
        return self.values.get(field_name), field_name, False

    def __call__(self) -> dict:
        return dict(self.values)


def _describe(exc: ValidationError) -> str:
    """One readable line per pydantic error."""
    lines = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err["loc"])
        if err["type"] == "extra_forbidden":
            lines.append(f"Unknown config key {name!r}")
        elif not name:
            lines.append(err["msg"].removeprefix("Value error, "))
        else:
            lines.append(f"Invalid value for {name}: {err['input']!r} ({err['msg']})")
    return "; ".join(lines)


class DocQAConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="forbid",
        env_ignore_empty=True,
    )

    # chunking
    chunk_size_words: int = 500
    overlap_words: int = 50
    min_chunk_words: int = 5
    chunk_preset: str | None = None

    # retrieval
    top_k: int = Field(default=3, gt=0)

    # embeddings
    embedding_provider: str = "sentence-transformers"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_base_url: str | None = None
    embedding_dim: int | None = None
    embed_batch_size: int = Field(default=32, gt=0)

    # generation
    llm_preset: str = "gpt-oss"
    max_output_tokens: int = 1000
    temperature: float = 0.1
    request_timeout: float = 60.0

    log_level: str = "WARNING"

    # where the YAML layer came from, if any
    config_file: Path | None = Field(default=None, exclude=True)

    def __init__(self, **values):
        try:
            super().__init__(**values)
        except ValidationError as exc:
            raise ConfigurationError(_describe(exc)) from exc

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings,
                                   dotenv_settings, file_secret_settings):
        path = init_settings.init_kwargs.get("config_file")
        return init_settings, env_settings, YamlFileSource(settings_cls, path)

    @model_validator(mode="before")
    @classmethod
    def _apply_chunk_preset(cls, data):
        if not isinstance(data, dict) or data.get("chunk_preset") in (None, ""):
            return data

        name = data["chunk_preset"]
        if name not in CHUNK_PRESETS:
            raise ValueError(f"Unknown chunk_preset {name!r}. Use one of: {', '.join(CHUNK_PRESETS)}")

        data = dict(data)
        for key in _PRESET_FIELDS:
            wanted = CHUNK_PRESETS[name][key]
            given = data.get(key)
            if given is not None and str(given).strip() != str(wanted):
                raise ValueError(
                    f"chunk_preset {name!r} sets {key}={wanted}, which conflicts with {key}={given!r}"
                )
            data[key] = wanted
        return data

    def replace(self, **changes) -> "DocQAConfig":
        """Copy with changes applied. A new chunk_preset replaces the old window."""
        values = self.model_dump()
        if "chunk_preset" in changes:
            for key in _PRESET_FIELDS:
                if key not in changes:
                    values.pop(key)
        values.update(changes)
        return DocQAConfig(**values)


def load_config(path: str | Path | None = None) -> DocQAConfig:
    """Build a config from defaults, an optional YAML file, then DOCQA_* variables."""
    return DocQAConfig(config_file=path)
