"""
normalizer.py — Canonical plain-text form for chunks and queries
=================================================================

PDF extraction leaves text full of hard line breaks, double spaces and
tab runs. None of that carries meaning for retrieval, and it makes word
counting unreliable. Everything that enters the chunker or the embedder
goes through normalize() first.
"""

import re

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize(raw_text: str) -> str:
    """Collapse every whitespace run (newlines included) to one space and trim."""
    return _WHITESPACE_RUN.sub(" ", raw_text).strip()
