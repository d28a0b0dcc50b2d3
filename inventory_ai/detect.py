from __future__ import annotations

"""
Unknown-item detection.

Candidate phrases are found by an ordered list of declarative matchers. Each
matcher looks at one word position and returns zero-or-one hit spanning one
or more words; a matcher scans the text left to right without overlapping its
own hits (the same way a global regex search would). Results from all
matchers are collected in matcher order, deduplicated, and filtered against
the phrases already known to the caller (catalog names and basket names).
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .normalize import normalize_key

# (a) [descriptor] noun <category-noun>
CATEGORY_NOUNS = frozenset(
    {"piano", "guitar", "instrument", "tank", "bike", "machine", "equipment", "shed", "table", "rack"}
)
# (b) <descriptor> noun
DESCRIPTORS = frozenset({"antique", "vintage", "old", "new", "exercise", "fitness", "garden", "pool"})
# (c) word{4,} <unit-word>
UNIT_WORDS = frozenset({"stand", "unit", "system", "set"})
UNIT_HEAD_MIN_CHARS = 4

_WORD_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class Word:
    text: str
    start: int
    end: int
    # True when only whitespace separates this word from the next one
    joined_to_next: bool

    @property
    def lower(self) -> str:
        return self.text.lower()


@dataclass(frozen=True)
class Candidate:
    phrase: str
    normalized_key: str


@dataclass(frozen=True)
class Hit:
    first: int
    last: int  # inclusive word index


Matcher = Callable[[Sequence[Word], int], Optional[Hit]]


def tokenize(text: str) -> List[Word]:
    spans = [(m.group(0), m.start(), m.end()) for m in _WORD_RE.finditer(text or "")]
    words: List[Word] = []
    for idx, (w, s, e) in enumerate(spans):
        joined = False
        if idx + 1 < len(spans):
            gap = text[e:spans[idx + 1][1]]
            joined = bool(gap) and gap.isspace()
        words.append(Word(text=w, start=s, end=e, joined_to_next=joined))
    return words


def _chain(words: Sequence[Word], i: int, n: int) -> bool:
    """True when words[i .. i+n-1] exist and are whitespace-joined."""
    if i + n > len(words):
        return False
    return all(words[j].joined_to_next for j in range(i, i + n - 1))


def match_category_noun(words: Sequence[Word], i: int) -> Optional[Hit]:
    """``[word] word <category-noun>``, preferring the three-word form."""
    if _chain(words, i, 3) and words[i + 2].lower in CATEGORY_NOUNS:
        return Hit(i, i + 2)
    if _chain(words, i, 2) and words[i + 1].lower in CATEGORY_NOUNS:
        return Hit(i, i + 1)
    return None


def match_descriptor(words: Sequence[Word], i: int) -> Optional[Hit]:
    """``<size/age/domain descriptor> word``."""
    if _chain(words, i, 2) and words[i].lower in DESCRIPTORS:
        return Hit(i, i + 1)
    return None


def match_unit_suffix(words: Sequence[Word], i: int) -> Optional[Hit]:
    """``word{4,} <unit-word>``."""
    if _chain(words, i, 2) and len(words[i].text) >= UNIT_HEAD_MIN_CHARS and words[i + 1].lower in UNIT_WORDS:
        return Hit(i, i + 1)
    return None


DEFAULT_MATCHERS: List[Matcher] = [match_category_noun, match_descriptor, match_unit_suffix]


def scan(text: str, words: Sequence[Word], matcher: Matcher) -> List[str]:
    """Run one matcher across the text, skipping past each hit."""
    phrases: List[str] = []
    i = 0
    while i < len(words):
        hit = matcher(words, i)
        if hit is None:
            i += 1
            continue
        phrases.append(text[words[hit.first].start:words[hit.last].end].strip())
        i = hit.last + 1
    return phrases


def is_known(phrase: str, known: Iterable[str]) -> bool:
    """Case-insensitive substring test in both directions."""
    p = phrase.lower()
    for k in known:
        k = (k or "").lower()
        if not k:
            continue
        if p in k or k in p:
            return True
    return False


def find_unknown_items(
    text: str,
    known: Iterable[str] = (),
    matchers: Sequence[Matcher] = DEFAULT_MATCHERS,
) -> List[Candidate]:
    """
    Candidate item phrases not covered by ``known``.

    Matchers run in order; all hits are collected first-seen, exact
    duplicates and known phrases are dropped.
    """
    if not text or not text.strip():
        return []

    known = [k for k in known if k]
    words = tokenize(text)
    seen: set[str] = set()
    out: List[Candidate] = []
    for matcher in matchers:
        for phrase in scan(text, words, matcher):
            if not phrase or phrase in seen:
                continue
            seen.add(phrase)
            if is_known(phrase, known):
                continue
            out.append(Candidate(phrase=phrase, normalized_key=normalize_key(phrase)))
    return out
