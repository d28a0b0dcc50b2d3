from __future__ import annotations

"""
Structured extraction: turn enrichment snippets plus the user's phrase into an
ItemRecord using a generative model.

The model is asked for a single JSON object. Its raw output is never trusted:
it is parsed, then validated against ItemRecord (non-empty name, positive
weight, known category, confidence in [0, 1]). Anything else becomes an
``ExtractionFailed`` result and the caller falls back to heuristics.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from openai import AsyncOpenAI
from pydantic import ValidationError

from . import config
from .config import CATEGORIES, EnrichmentResult, ItemRecord
from .errors import ExtractionError, ExtractionParseError, ExtractionValidationError

_FENCED_JSON_RE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)

SYSTEM_PROMPT = (
    "You estimate physical properties of household items for a removals company. "
    "Reply with ONLY a JSON object, no prose, with exactly these keys: "
    '"name" (string, short display name), '
    '"weight_kg" (number > 0, typical weight of one item in kilograms), '
    '"dimensions" (string "LxWxHcm" with typical length, width and height in centimetres, '
    'or "variable" when the size varies too much), '
    f'"category" (one of: {", ".join(CATEGORIES)}), '
    '"confidence" (number between 0 and 1), '
    '"reasoning" (one short sentence).'
)


@dataclass(frozen=True)
class ValidExtraction:
    record: ItemRecord
    raw: str = ""


@dataclass(frozen=True)
class ExtractionFailed:
    reason: str
    error: Optional[ExtractionError] = None


ExtractionResult = Union[ValidExtraction, ExtractionFailed]


def render_context(enrichment: Optional[EnrichmentResult]) -> str:
    """Flatten source payloads into a compact grounding block for the prompt."""
    if enrichment is None or not enrichment.sources:
        return "No reference material was found."
    blocks: List[str] = []
    for src in enrichment.sources:
        lines: List[str] = []
        for key, value in src.payload.items():
            if not value or key == "url":
                continue
            if isinstance(value, list):
                for v in value:
                    if isinstance(v, dict):
                        lines.append("- " + " | ".join(str(x) for x in v.values() if x))
                    else:
                        lines.append(f"- {v}")
            else:
                lines.append(f"{key}: {value}")
        if lines:
            blocks.append(f"[{src.source}]\n" + "\n".join(lines))
    return "\n\n".join(blocks) or "No reference material was found."


def build_messages(phrase: str, enrichment: Optional[EnrichmentResult]) -> List[Dict[str, str]]:
    user = (
        f'Item described by the customer: "{phrase}"\n\n'
        f"Reference material:\n{render_context(enrichment)}\n\n"
        "Return the JSON object now."
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]


def parse_extraction(raw: str | None) -> ItemRecord:
    """
    Parse then validate raw model output.

    Raises ExtractionParseError for non-JSON / non-object output and
    ExtractionValidationError when the object breaks the ItemRecord schema.
    Out-of-range values are rejected, never clamped.
    """
    text = (raw or "").strip()
    fenced = _FENCED_JSON_RE.match(text)
    if fenced:
        text = fenced.group(1)
    if not text:
        raise ExtractionParseError("empty model output")

    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"model output is not JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ExtractionParseError(f"expected a JSON object, got {type(data).__name__}")

    # producer is fixed here, whatever the model claims
    data = {k: v for k, v in data.items() if k not in {"origin", "type"}}
    try:
        return ItemRecord.model_validate({**data, "origin": "ai-generated"})
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "?" for err in e.errors())
        raise ExtractionValidationError(f"invalid fields: {fields}") from e


class StructuredExtractor:
    """Generative-model extractor. Unavailable (always fails) without credentials."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = config.EXTRACTION_MODEL,
        temperature: float = config.EXTRACTION_TEMPERATURE,
        max_tokens: int = config.EXTRACTION_MAX_TOKENS,
        api_key: Optional[str] = config.OPENAI_API_KEY,
        base_url: Optional[str] = config.OPENAI_BASE_URL,
        timeout: float = config.EXTRACTION_TIMEOUT_SECONDS,
    ):
        if client is None and api_key:
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=1)
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def available(self) -> bool:
        return self.client is not None

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    async def extract(self, phrase: str, enrichment: Optional[EnrichmentResult]) -> ExtractionResult:
        if not self.available:
            return ExtractionFailed("extractor unavailable: no model credentials configured")

        try:
            raw = await self._complete(build_messages(phrase, enrichment))
        except Exception as e:
            logger.warning("Extraction request for '{}' failed: {}", phrase, e)
            return ExtractionFailed(f"model request failed: {type(e).__name__}")

        try:
            record = parse_extraction(raw)
        except ExtractionError as e:
            logger.warning("Extraction output for '{}' rejected: {}", phrase, e.message)
            return ExtractionFailed(e.message, error=e)

        logger.info("Extracted '{}' -> {} ({} kg, conf {:.2f})", phrase, record.name, record.weight_kg, record.confidence)
        return ValidExtraction(record=record, raw=raw)
