"""
Error taxonomy for the item resolution pipeline.

Client-caused errors (invalid input, rate limiting) are terminal and mapped
straight to HTTP responses. Upstream and extraction errors are absorbed
inside the pipeline and only ever show up in logs.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base class for every error raised by ``inventory_ai``."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class InvalidInputError(InventoryError):
    status_code = 400
    error = "Invalid item name"


class RateLimitExceeded(InventoryError):
    status_code = 429
    error = "Too many requests"

    def __init__(self, retry_after: int, client_id: Optional[str] = None):
        super().__init__(f"retry in {retry_after}s", client_id=client_id)
        self.retry_after = retry_after
        self.client_id = client_id

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "retryAfter": self.retry_after}


class UpstreamError(InventoryError):
    """An enrichment source failed. Never fatal to the aggregate."""

    status_code = 502
    error = "Upstream source failed"

    def __init__(self, source: str, message: str = ""):
        super().__init__(message or f"{source} failed", source=source)
        self.source = source


class UpstreamTimeout(UpstreamError):
    error = "Upstream source timed out"


class UpstreamFailure(UpstreamError):
    pass


class ExtractionError(InventoryError):
    """Generative extraction produced nothing usable; triggers the heuristic fallback."""

    error = "Extraction failed"


class ExtractionParseError(ExtractionError):
    error = "Extraction output is not valid JSON"


class ExtractionValidationError(ExtractionError):
    error = "Extraction output failed validation"


class InternalError(InventoryError):
    status_code = 500
    error = "Analysis failed"
