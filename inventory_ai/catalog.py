from __future__ import annotations

"""
Base catalog loading and keyword vocabulary.

The catalog is a small CSV snapshot (id, name, weight, category) read once at
startup with pandas and mapped into immutable ``CatalogItem`` records. The
vocabulary used by the text matcher is derived from it.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from .config import CATALOG_PATH, CATEGORIES, DEFAULT_CATEGORY, SEARCH_KEYWORDS, CatalogItem
from .normalize import basic_clean


# ---------------------------
# Column detection / standardization
# ---------------------------

COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "id": ["id", "ID", "item_id", "Item ID"],
    "name": ["name", "Name", "Item", "Item Name", "item_name"],
    "weight": ["weight", "Weight", "weight_kg", "Weight (kg)"],
    "category": ["category", "Category", "group", "Group"],
}


def _standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    col_map: Dict[str, str] = {}
    lower_to_original = {str(c).lower(): c for c in df.columns}

    for canon, candidates in COLUMN_CANDIDATES.items():
        for candidate in candidates:
            if candidate in df.columns:
                col_map[candidate] = canon
                break
            if candidate.lower() in lower_to_original:
                col_map[lower_to_original[candidate.lower()]] = canon
                break

    df_std = df.rename(columns=col_map)
    missing = [c for c in ("name", "weight") if c not in df_std.columns]
    if missing:
        raise KeyError(f"Catalog is missing required columns: {missing}")
    return df_std


# ---------------------------
# Field parsing helpers
# ---------------------------

def _coerce_float(val, default: float = 0.0) -> float:
    try:
        if val is None:
            return default
        if isinstance(val, (int, float, np.integer, np.floating)):
            return default if pd.isna(val) else float(val)
        s = str(val).strip().lower().replace("kg", "").strip()
        return float(s) if s else default
    except Exception:
        return default


def _canonical_category(val) -> str:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return DEFAULT_CATEGORY
    v = str(val).strip().lower()
    return v if v in CATEGORIES else DEFAULT_CATEGORY


def normalize_catalog_df(df_raw: pd.DataFrame) -> pd.DataFrame:
    """
    Canonical catalog frame: id (int), name (str), weight (float > 0), category.

    Rows without a name or a positive weight are dropped; duplicate ids keep
    the first row.
    """
    df = _standardize_columns(df_raw.copy())

    df["name"] = df["name"].fillna("").astype(str).apply(basic_clean)
    df["weight"] = df["weight"].apply(_coerce_float)
    df["category"] = df.get("category", DEFAULT_CATEGORY)
    df["category"] = df["category"].apply(_canonical_category)

    if "id" not in df.columns:
        df["id"] = range(1, len(df) + 1)
    df["id"] = df["id"].apply(lambda v: int(_coerce_float(v, default=-1)))

    bad = (df["name"] == "") | (df["weight"] <= 0) | (df["id"] < 0)
    if bad.any():
        logger.warning("Dropping {} invalid catalog rows", int(bad.sum()))
    df = df[~bad].drop_duplicates(subset=["id"]).reset_index(drop=True)
    return df[["id", "name", "weight", "category"]]


def catalog_from_df(df: pd.DataFrame) -> List[CatalogItem]:
    return [
        CatalogItem(id=int(row.id), name=row.name, weight_kg=float(row.weight), category=row.category)
        for row in df.itertuples(index=False)
    ]


def load_catalog(path: Optional[Path] = None) -> List[CatalogItem]:
    """Load the base catalog snapshot into immutable records."""
    path = Path(path or CATALOG_PATH)
    logger.info("Loading base catalog from {}", path)
    df = normalize_catalog_df(pd.read_csv(path))
    items = catalog_from_df(df)
    logger.info("Loaded base catalog with {} items", len(items))
    return items


# ---------------------------
# Keyword vocabulary
# ---------------------------

@dataclass(frozen=True)
class VocabularyEntry:
    keyword: str
    item: CatalogItem


def build_vocabulary(
    catalog: Sequence[CatalogItem],
    keywords: Iterable[str] = SEARCH_KEYWORDS,
) -> List[VocabularyEntry]:
    """
    Ordered keyword vocabulary for the text matcher.

    Full catalog names come first (catalog order), then each generic keyword
    bound to the first catalog item whose name contains it. Keywords that bind
    to nothing are dropped.
    """
    vocab: List[VocabularyEntry] = []
    seen: set[Tuple[str, int]] = set()

    for item in catalog:
        key = (item.name.lower(), item.id)
        if key not in seen:
            seen.add(key)
            vocab.append(VocabularyEntry(keyword=item.name.lower(), item=item))

    for kw in keywords:
        kw = kw.strip().lower()
        if not kw:
            continue
        bound = next((i for i in catalog if kw in i.name.lower()), None)
        if bound is None:
            logger.debug("Keyword '{}' matches no catalog item; skipped", kw)
            continue
        if (kw, bound.id) not in seen:
            seen.add((kw, bound.id))
            vocab.append(VocabularyEntry(keyword=kw, item=bound))

    return vocab
