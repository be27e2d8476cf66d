from __future__ import annotations

"""
Text cleaning for catalog fields.

Tool names and descriptions arrive from hand-edited JSON/CSV files or a
remote feed and occasionally carry stray markup, non-breaking spaces or
decomposed unicode.  Everything shown in the directory goes through
:func:`basic_clean` once, at load time, so search and display work on
the same text.
"""

import re
import unicodedata

from bs4 import BeautifulSoup

from .config import MAX_INPUT_CHARS


def clamp_text_length(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    """Hard cap on field size."""
    if not isinstance(text, str):
        text = str(text)
    return text[:max_chars]


def strip_html(raw: str) -> str:
    """
    Drop tags with BeautifulSoup and tidy the spacing they leave behind.
    Unparseable input is returned as-is.
    """
    if not raw:
        return ""
    if "<" not in raw:
        return raw

    try:
        soup = BeautifulSoup(raw, "lxml")
        text = normalize_whitespace(soup.get_text(" ", strip=True))
        return re.sub(r"\s+([.,!?;:，。！？；：])", r"\1", text)
    except Exception:
        return raw


def normalize_unicode(text: str) -> str:
    if not text:
        return ""
    return unicodedata.normalize("NFC", text)


def normalize_whitespace(text: str) -> str:
    """Collapse unicode whitespace runs into single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def basic_clean(text) -> str:
    """
    clamp -> strip HTML -> NFC -> whitespace.

    ``None`` and NaN-like values become an empty string.
    """
    if text is None:
        return ""
    if isinstance(text, float) and text != text:
        return ""
    text = clamp_text_length(str(text))
    text = strip_html(text)
    text = normalize_unicode(text)
    return normalize_whitespace(text)


if __name__ == "__main__":
    sample = "ChatGPT&nbsp;<b>官方</b> 网页版 ,  OpenAI 出品<br>"
    print("RAW:", sample)
    print("CLEAN:", basic_clean(sample))
