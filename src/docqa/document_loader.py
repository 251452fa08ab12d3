"""
document_loader.py — Get plain text out of an uploaded document
================================================================

The engine only needs "plain text for document X". This module is the
thin adapter that provides it:

  .pdf            → PyMuPDF, page by page
  .txt .md .text  → read as UTF-8

PDF extraction leaves artifacts that survive whitespace normalization
and hurt retrieval: words hyphenated across line breaks ("algo-\nrithm"),
ligature glyphs ("ﬁ" instead of "fi"), bare page numbers at the top or
bottom of a page. Only the first and last two lines of each page are
checked for page numbers, so numbers inside tables survive.
Those get fixed here. Whitespace itself is left alone; the normalizer
owns that.

Errors (missing file, corrupt PDF) propagate unchanged.

Usage:
  from docqa.document_loader import get_document_text
  text = get_document_text("contracts/lease.pdf")
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".text"}

_LIGATURES = {
    'ﬁ': 'fi', 'ﬂ': 'fl', 'ﬀ': 'ff', 'ﬃ': 'ffi', 'ﬄ': 'ffl',
    '’': "'", '‘': "'", '“': '"', '”': '"',
    '–': '-', '—': '--',
}

_PAGE_NUMBER_LINE = re.compile(r'^\s*(?:page\s+)?\d+(?:\s+of\s+\d+)?\s*$', re.IGNORECASE)


@dataclass
class LoadedDocument:
    """Raw text of one document plus where it came from."""
    source_label: str
    text: str
    page_count: int = 1

    def __repr__(self):
        return f"LoadedDocument(source={self.source_label!r}, pages={self.page_count}, chars={len(self.text)})"


def clean_extracted_text(text: str) -> str:
    """Fix common PDF extraction artifacts."""
    # "algo-\nrithm" → "algorithm"
    text = re.sub(r'(\w)-\n(\w)', r'\1\2', text)

    for old, new in _LIGATURES.items():
        text = text.replace(old, new)
    return text.strip()


def strip_page_numbers(page_text: str) -> str:
    """Drop page-number lines among the first and last two non-empty lines of one page."""
    lines = page_text.split('\n')
    filled = [i for i, line in enumerate(lines) if line.strip()]
    edges = set(filled[:2] + filled[-2:])
    return '\n'.join(
        line for i, line in enumerate(lines)
        if not (i in edges and _PAGE_NUMBER_LINE.match(line))
    )


def load_pdf(filepath: Path) -> LoadedDocument:
    import fitz  # PyMuPDF

    with fitz.open(str(filepath)) as doc:
        page_texts = [page.get_text("text") for page in doc]

    text = clean_extracted_text('\n\n'.join(strip_page_numbers(t) for t in page_texts))
    logger.info("Extracted %d chars from %d page(s) of %s", len(text), len(page_texts), filepath.name)
    return LoadedDocument(source_label=filepath.name, text=text, page_count=len(page_texts))


def load_document(filepath: str | Path) -> LoadedDocument:
    """Load a .pdf or plain text file. Raises FileNotFoundError if it doesn't exist."""
    filepath = Path(filepath)
    if not filepath.is_file():
        raise FileNotFoundError(f"Document not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix == ".pdf":
        return load_pdf(filepath)
    if suffix in TEXT_SUFFIXES:
        return LoadedDocument(source_label=filepath.name, text=filepath.read_text(encoding="utf-8"))
    raise ValueError(
        f"Unsupported document type {suffix or '(none)'!r} for {filepath.name}. "
        f"Use .pdf or one of: {', '.join(sorted(TEXT_SUFFIXES))}"
    )


def get_document_text(filepath: str | Path) -> str:
    return load_document(filepath).text
