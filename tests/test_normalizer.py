import pytest

from docqa.normalizer import normalize


@pytest.mark.parametrize("raw, expected", [
    ("", ""),
    ("   ", ""),
    ("hello", "hello"),
    ("  hello   world  ", "hello world"),
    ("line one\nline two\r\n\nline three", "line one line two line three"),
    ("tabs\t\tand nbsp", "tabs and nbsp"),
])
def test_normalize_collapses_whitespace(raw, expected):
    assert normalize(raw) == expected


def test_normalize_is_idempotent():
    raw = "  The quick\n\nbrown   fox\tjumps.  "
    once = normalize(raw)
    assert normalize(once) == once
