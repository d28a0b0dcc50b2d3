from __future__ import annotations

import os
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------
# Paths
# ---------------------------

PACKAGE_ROOT = Path(__file__).resolve().parent

DATA_DIR = PACKAGE_ROOT / "data"
CATALOG_PATH = Path(os.getenv("CATALOG_PATH", str(DATA_DIR / "base_catalog.csv")))


# ---------------------------
# Runtime environment
# ---------------------------

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE") or None


# ---------------------------
# Rate limiting & caching
# ---------------------------

RATE_LIMIT_POINTS = int(os.getenv("RATE_LIMIT_POINTS", "10"))
RATE_LIMIT_WINDOW_SECONDS = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", str(24 * 60 * 60)))


# ---------------------------
# Enrichment sources / HTTP hardening
# ---------------------------

SOURCE_TIMEOUT_SECONDS = float(os.getenv("SOURCE_TIMEOUT_SECONDS", "5.0"))

WIKIPEDIA_API_URL = os.getenv("WIKIPEDIA_API_URL", "https://en.wikipedia.org/w/api.php")
DUCKDUCKGO_API_URL = os.getenv("DUCKDUCKGO_API_URL", "https://api.duckduckgo.com/")
WIKIDATA_API_URL = os.getenv("WIKIDATA_API_URL", "https://www.wikidata.org/w/api.php")

DEFAULT_SOURCES = "wikipedia,duckduckgo,wikidata"
ENABLED_SOURCES: List[str] = [
    s.strip().lower()
    for s in os.getenv("ENABLED_SOURCES", DEFAULT_SOURCES).split(",")
    if s.strip()
]

SOURCE_MAX_SNIPPETS = 3
SOURCE_MAX_CHARS = 1_500  # per-source text cap fed into extraction

HTTP_USER_AGENT = os.getenv(
    "HTTP_USER_AGENT",
    "inventory-ai/1.0 (+https://example.com; contact=moving@placeholder.com)",
)


# ---------------------------
# Structured extraction (generative model)
# ---------------------------

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or None
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None

EXTRACTION_MODEL = os.getenv("EXTRACTION_MODEL", "gpt-4o-mini")
EXTRACTION_TEMPERATURE = float(os.getenv("EXTRACTION_TEMPERATURE", "0.2"))
EXTRACTION_MAX_TOKENS = int(os.getenv("EXTRACTION_MAX_TOKENS", "400"))
EXTRACTION_TIMEOUT_SECONDS = float(os.getenv("EXTRACTION_TIMEOUT_SECONDS", "20"))

# Curated heuristic patterns (piano, hot tub, ...) resolve before any upstream call.
PREFER_KNOWN_PATTERNS = _env_bool("PREFER_KNOWN_PATTERNS", True)


# ---------------------------
# Text processing
# ---------------------------

ITEM_NAME_MIN_CHARS = 2
ITEM_NAME_MAX_CHARS = 100
NORMALIZED_KEY_MAX_CHARS = 100
MAX_INPUT_CHARS = 5_000  # free-text parse cap

QUANTITY_LOOKBACK_CHARS = 10
DEBOUNCE_SECONDS = float(os.getenv("DEBOUNCE_SECONDS", "1.0"))

# Generic keywords bound to the first catalog item whose name contains them.
SEARCH_KEYWORDS: List[str] = ["bed", "sofa", "chair", "table", "box", "tv", "wardrobe", "desk"]


# ---------------------------
# Categories
# ---------------------------

CATEGORIES: Tuple[str, ...] = (
    "seating",
    "tables",
    "bedroom",
    "storage",
    "musical",
    "fitness",
    "appliances",
    "electronics",
    "outdoor",
    "recreation",
    "kitchen",
    "office",
    "misc",
)
DEFAULT_CATEGORY = "misc"

VARIABLE_DIMENSIONS = "variable"

_DIMENSIONS_RE = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*[x\u00d7*]\s*(\d+(?:\.\d+)?)\s*[x\u00d7*]\s*(\d+(?:\.\d+)?)\s*(?:cm)?\s*$",
    re.IGNORECASE,
)


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_dimensions(length: float, width: float, height: float) -> str:
    """Render an L x W x H triple (cm) as the canonical ``150x60x110cm`` string."""
    return f"{_fmt_number(length)}x{_fmt_number(width)}x{_fmt_number(height)}cm"


def parse_dimensions(value: str) -> Optional[Tuple[float, float, float]]:
    m = _DIMENSIONS_RE.match(value or "")
    if not m:
        return None
    return float(m.group(1)), float(m.group(2)), float(m.group(3))


def _coerce_dimensions(value: Any) -> str:
    if value is None:
        return VARIABLE_DIMENSIONS
    if isinstance(value, dict):
        dims = None
        for keys in (("length_cm", "width_cm", "height_cm"), ("length", "width", "height")):
            if all(k in value for k in keys):
                try:
                    dims = tuple(float(value[k]) for k in keys)
                except (TypeError, ValueError) as e:
                    raise ValueError(f"non-numeric dimensions: {value!r}") from e
                break
        if dims is None:
            raise ValueError(f"unrecognised dimensions object: {value!r}")
        if not all(math.isfinite(d) and d > 0 for d in dims):
            raise ValueError("dimensions must be positive and finite")
        return format_dimensions(*dims)
    s = str(value).strip()
    if s.lower() == VARIABLE_DIMENSIONS:
        return VARIABLE_DIMENSIONS
    dims = parse_dimensions(s)
    if dims is None:
        raise ValueError(f"dimensions must be 'LxWxHcm' or 'variable', got {s!r}")
    if not all(math.isfinite(d) and d > 0 for d in dims):
        raise ValueError("dimensions must be positive and finite")
    return format_dimensions(*dims)


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class CatalogItem(BaseModel):
    """
    Fixed base-catalog entry. Loaded once at startup, read-only afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    name: str = Field(min_length=1)
    weight_kg: float = Field(
        gt=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("weight_kg", "weight"),
        serialization_alias="weight",
    )
    category: str
    origin: Literal["catalog"] = "catalog"

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CATEGORIES:
            raise ValueError(f"unknown category {v!r}")
        return v

    def to_api(self) -> Dict[str, Any]:
        """Browser-facing shape of GET /api/inventory/base."""
        return {
            "id": self.id,
            "name": self.name,
            "weight": self.weight_kg,
            "category": self.category,
            "type": "base",
        }


class ItemRecord(BaseModel):
    """
    Canonical structured record for one household item.

    Serialises ``weight_kg`` as ``weight`` and ``origin`` as ``type`` so the
    browser client can merge it with catalog entries.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    weight_kg: float = Field(
        gt=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("weight_kg", "weight"),
        serialization_alias="weight",
    )
    dimensions: str = VARIABLE_DIMENSIONS
    category: str
    confidence: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    reasoning: str = ""
    origin: Literal["catalog", "ai-generated"] = Field(
        default="ai-generated",
        validation_alias=AliasChoices("origin", "type"),
        serialization_alias="type",
    )

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must be non-empty")
        return v

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CATEGORIES:
            raise ValueError(f"unknown category {v!r}")
        return v

    @field_validator("dimensions", mode="before")
    @classmethod
    def _canonical_dimensions(cls, v: Any) -> str:
        return _coerce_dimensions(v)

    def dimension_tuple(self) -> Optional[Tuple[float, float, float]]:
        """Structured (length, width, height) in cm, or None when variable."""
        return parse_dimensions(self.dimensions)


class SourceResult(BaseModel):
    """One enrichment source's contribution, tagged by source identity."""

    model_config = ConfigDict(frozen=True)

    source: str
    payload: Dict[str, Any]


class EnrichmentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    sources: List[SourceResult] = Field(default_factory=list)
    timestamp: str


class AnalyzeRequest(BaseModel):
    """
    Request body for POST /api/inventory/analyze.
    Length rules are enforced by the resolver so they map to a 400.
    """

    itemName: Optional[str] = None


class AnalyzeResponse(BaseModel):
    """
    Response body for POST /api/inventory/analyze.
    """

    item: ItemRecord
    sources: List[SourceResult] = Field(default_factory=list)
    timestamp: str


class ParseRequest(BaseModel):
    text: Optional[str] = None
    basket: List[str] = Field(default_factory=list)


class MatchedItem(BaseModel):
    item: CatalogItem
    quantity: int = Field(ge=1)
    start: int
    end: int
    matched_text: str


class ResolvedItem(BaseModel):
    original_text: str
    item: ItemRecord
    sources: List[SourceResult] = Field(default_factory=list)


class ParseResponse(BaseModel):
    """
    Response body for POST /api/inventory/parse.
    """

    matches: List[MatchedItem] = Field(default_factory=list)
    items: List[ResolvedItem] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    timestamp: str


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    retryAfter: Optional[int] = None
