"""
errors.py — Exception types raised by the retrieval engine
==========================================================

Every error the engine raises derives from DocQAError, so callers (the
CLI, a web handler) can catch one type at the top level.

  ConfigurationError  — bad chunking params, bad top_k, unknown preset
  ValidationError     — embedding shape/value problems, vector length mismatch
  ProviderError       — embedding or completion call failed upstream
  EmptyIndexError     — caller demanded results from an empty store
"""


class DocQAError(Exception):
    """Base class for all docqa errors."""


class ConfigurationError(DocQAError, ValueError):
    """Invalid configuration value (chunk sizes, top_k, presets, config files)."""


class ValidationError(DocQAError, ValueError):
    """An embedding or vector failed a shape or value check."""


class ProviderError(DocQAError, RuntimeError):
    """
    An external provider (embedding model, LLM API) failed.

    The message carries what we were doing when it failed (which batch,
    which query); the upstream exception is chained as __cause__.
    """


class EmptyIndexError(DocQAError):
    """Ranking was asked to produce results but the store has no entries."""
