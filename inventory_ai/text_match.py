from __future__ import annotations

"""
Known-item matching: find catalog keywords inside free text and read the
quantity written just before each hit ("3 dining chairs" -> 3).
"""

import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .catalog import VocabularyEntry
from .config import QUANTITY_LOOKBACK_CHARS, CatalogItem

_TRAILING_INT_RE = re.compile(r"(\d+)\s*$")


@dataclass(frozen=True)
class CatalogMatch:
    item: CatalogItem
    quantity: int
    start: int
    end: int
    matched_text: str


def extract_quantity(text: str, match_start: int, lookback: int = QUANTITY_LOOKBACK_CHARS) -> int:
    """
    Integer literal ending right before ``match_start`` (within ``lookback``
    chars, trailing whitespace allowed); 1 when there is none.
    """
    before = text[max(0, match_start - lookback):match_start]
    m = _TRAILING_INT_RE.search(before)
    if not m:
        return 1
    qty = int(m.group(1))
    return qty if qty > 0 else 1


def _overlaps(start: int, end: int, claimed: Sequence[Tuple[int, int]]) -> bool:
    return any(start < c_end and c_start < end for c_start, c_end in claimed)


def find_catalog_matches(text: str, vocabulary: Sequence[VocabularyEntry]) -> List[CatalogMatch]:
    """
    Scan ``text`` case-insensitively for every vocabulary keyword.

    * the first vocabulary entry to claim a span wins it; later entries only
      count on text outside already-claimed spans
    * results are deduplicated by catalog id, first occurrence wins
    * output is in text order
    """
    if not text or not text.strip():
        return []

    lower = text.lower()
    claimed: List[Tuple[int, int]] = []
    seen_ids: set[int] = set()
    matches: List[CatalogMatch] = []

    for entry in vocabulary:
        kw = entry.keyword
        if not kw:
            continue
        pos = lower.find(kw)
        while pos != -1 and _overlaps(pos, pos + len(kw), claimed):
            pos = lower.find(kw, pos + 1)
        if pos == -1:
            continue

        end = pos + len(kw)
        claimed.append((pos, end))
        if entry.item.id in seen_ids:
            continue
        seen_ids.add(entry.item.id)
        matches.append(
            CatalogMatch(
                item=entry.item,
                quantity=extract_quantity(text, pos),
                start=pos,
                end=end,
                matched_text=text[pos:end],
            )
        )

    matches.sort(key=lambda m: m.start)
    return matches
