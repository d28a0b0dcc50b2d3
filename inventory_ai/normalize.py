from __future__ import annotations

"""
Text normalisation helpers shared across matching, detection and enrichment.

Public helpers:

* basic_clean(text) -> str
    Strips HTML, normalises unicode and whitespace. Used on user input and on
    snippets coming back from enrichment sources.

* normalize_key(text) -> str
    Lowercased, trimmed, length-capped form used for cache and dedup lookups.

* title_case(text) -> str
    Display name with each word capitalised ("antique piano" -> "Antique Piano").
"""

import re
import unicodedata

from bs4 import BeautifulSoup

from . import config

MAX_INPUT_CHARS: int = config.MAX_INPUT_CHARS
NORMALIZED_KEY_MAX_CHARS: int = config.NORMALIZED_KEY_MAX_CHARS

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def strip_html(text: str | None) -> str:
    if not text:
        return ""
    if "<" not in text:
        return text
    try:
        soup = BeautifulSoup(text, "html.parser")
        return soup.get_text(" ", strip=True)
    except Exception:
        # malformed markup: crude strip
        return _TAG_RE.sub(" ", text)


def _normalise_unicode(text: str) -> str:
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2013", "-").replace("\u2014", "-")
    return text


def clamp_text_length(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    return text[:max_chars] if len(text) > max_chars else text


def basic_clean(text: str | None) -> str:
    """Light-weight clean for user text and source snippets.

    * strips HTML
    * normalises unicode and whitespace
    * truncates excessively long inputs
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    text = clamp_text_length(text)
    text = strip_html(text)
    text = _normalise_unicode(text)
    return _WS_RE.sub(" ", text).strip()


def normalize_key(text: str | None) -> str:
    """Cache/dedup key: lowercased, trimmed, capped at 100 chars."""
    if not text:
        return ""
    return str(text).strip().lower()[:NORMALIZED_KEY_MAX_CHARS]


def title_case(text: str | None) -> str:
    words = _WS_RE.split((text or "").strip())
    return " ".join(w[:1].upper() + w[1:].lower() for w in words if w)
