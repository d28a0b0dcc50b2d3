from __future__ import annotations

"""
Deterministic, rule-based item estimates.

Used when generative extraction is unavailable or returns something invalid,
and (when PREFER_KNOWN_PATTERNS is on) as the first resolver for a handful of
well-known heavy items. Always returns a valid ItemRecord.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import DEFAULT_CATEGORY, VARIABLE_DIMENSIONS, ItemRecord
from .normalize import title_case

KNOWN_ITEM_CONFIDENCE = 0.75
GENERIC_CONFIDENCE = 0.6
DEFAULT_WEIGHT_KG = 25.0
FALLBACK_NAME = "Unknown Item"


@dataclass(frozen=True)
class KnownItem:
    key: str
    weight_kg: float
    dimensions: str
    category: str


# Ordered: more specific variants before their generic form.
KNOWN_ITEMS: List[KnownItem] = [
    KnownItem("grand piano", 300, "150x150x100cm", "musical"),
    KnownItem("upright piano", 220, "150x60x125cm", "musical"),
    KnownItem("piano", 180, "150x60x110cm", "musical"),
    KnownItem("treadmill", 90, "200x90x140cm", "fitness"),
    KnownItem("exercise bike", 40, "120x60x140cm", "fitness"),
    KnownItem("rowing machine", 35, "220x55x50cm", "fitness"),
    KnownItem("pool table", 300, "250x140x80cm", "recreation"),
    KnownItem("hot tub", 400, "220x220x90cm", "outdoor"),
    KnownItem("garden shed", 150, "240x180x210cm", "outdoor"),
    KnownItem("safe", 150, "60x50x80cm", "misc"),
    KnownItem("fish tank", 35, "120x40x50cm", "misc"),
    KnownItem("aquarium", 35, "120x40x50cm", "misc"),
]

# (keyword, category, base weight kg); first hit wins
GENERIC_KEYWORDS: List[Tuple[str, str, float]] = [
    ("table", "tables", 30.0),
    ("chair", "seating", 8.0),
    ("bed", "bedroom", 45.0),
]

SIZE_MULTIPLIERS: List[Tuple[Tuple[str, ...], float]] = [
    (("large", "big"), 1.5),
    (("small", "mini"), 0.7),
]


def _clean(phrase: str | None) -> str:
    return " ".join((phrase or "").lower().split())


def _display_name(phrase: str | None) -> str:
    return title_case(phrase) or FALLBACK_NAME


def lookup_known_item(phrase: str | None) -> Optional[KnownItem]:
    """
    First table entry whose key appears in the phrase, or whose key starts
    with the phrase's words ("rowing" -> "rowing machine"). A bare head noun
    such as "table" or "tub" does not pick a specific known item.
    """
    p = _clean(phrase)
    if not p:
        return None
    words = p.split()
    for known in KNOWN_ITEMS:
        if known.key in p:
            return known
        if known.key.split()[: len(words)] == words:
            return known
    return None


def known_item_estimate(phrase: str | None) -> Optional[ItemRecord]:
    known = lookup_known_item(phrase)
    if known is None:
        return None
    return ItemRecord(
        name=_display_name(phrase),
        weight_kg=known.weight_kg,
        dimensions=known.dimensions,
        category=known.category,
        confidence=KNOWN_ITEM_CONFIDENCE,
        reasoning=f"Matched known item pattern '{known.key}'",
        origin="ai-generated",
    )


def _size_multiplier(words: List[str]) -> Tuple[float, Optional[str]]:
    for descriptors, factor in SIZE_MULTIPLIERS:
        for d in descriptors:
            if d in words:
                return factor, d
    return 1.0, None


def estimate_item(phrase: str | None) -> ItemRecord:
    """
    Heuristic estimate for any phrase, including empty or garbage input.

    1. known multi-word items (fixed weight/dimensions/category, conf 0.75)
    2. coarse category from table/chair/bed, else 25 kg "misc"
    3. large/big x1.5, small/mini x0.7
    4. generic path gets conf 0.6 and "variable" dimensions
    """
    known = known_item_estimate(phrase)
    if known is not None:
        return known

    p = _clean(phrase)
    category, weight, basis = DEFAULT_CATEGORY, DEFAULT_WEIGHT_KG, "default weight"
    for kw, cat, base in GENERIC_KEYWORDS:
        if kw in p:
            category, weight, basis = cat, base, f"'{kw}' keyword"
            break

    factor, descriptor = _size_multiplier(p.split())
    weight = round(weight * factor, 1)
    reasoning = f"Heuristic estimate from {basis}"
    if descriptor:
        reasoning += f", scaled x{factor} for '{descriptor}'"

    return ItemRecord(
        name=_display_name(phrase),
        weight_kg=weight,
        dimensions=VARIABLE_DIMENSIONS,
        category=category,
        confidence=GENERIC_CONFIDENCE,
        reasoning=reasoning,
        origin="ai-generated",
    )
