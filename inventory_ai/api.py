from __future__ import annotations

"""
FastAPI application for the moving-inventory item resolver.

Routes:
- GET  /api/inventory/base     base catalog
- POST /api/inventory/analyze  resolve one unknown item
- POST /api/inventory/parse    resolve a whole free-text description
- GET  /health
"""

from functools import lru_cache
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from . import config
from .config import AnalyzeRequest, AnalyzeResponse, ErrorResponse, HealthResponse, ParseRequest, ParseResponse
from .enrichment import utc_timestamp
from .errors import InternalError, InventoryError, RateLimitExceeded
from .logging_setup import configure_logging
from .pipeline import ItemResolver


ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

@lru_cache(maxsize=1)
def get_resolver() -> ItemResolver:
    return ItemResolver()


def client_id_for(request: Request) -> str:
    return request.client.host if request.client else "unknown"


app = FastAPI(title="Inventory AI", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event() -> None:
    configure_logging()
    logger.info("Starting app warmup...")
    resolver = get_resolver()
    logger.info(
        "Resolver ready: {} catalog items, {} enrichment sources, extractor {}",
        len(resolver.catalog),
        len(resolver.aggregator.sources),
        "on" if resolver.extractor.available else "off (heuristics only)",
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if get_resolver.cache_info().currsize:
        await get_resolver().aclose()
        get_resolver.cache_clear()


# -----------------------
# Error mapping
# -----------------------

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "message": "; ".join(e.get("msg", "") for e in exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on {} {}: {}", request.method, request.url.path, exc)
    err = InternalError()
    detail = str(exc) if config.ENVIRONMENT == "development" else "Internal server error"
    return JSONResponse(status_code=err.status_code, content={"error": err.error, "message": detail})


# -----------------------
# Routes
# -----------------------

@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="OK", timestamp=utc_timestamp())


@app.get("/api/inventory/base")
def base_inventory(resolver: ItemResolver = Depends(get_resolver)) -> List[Dict[str, Any]]:
    return [item.to_api() for item in resolver.catalog]


@app.post("/api/inventory/analyze", response_model=AnalyzeResponse, responses=ERROR_RESPONSES)
async def analyze(
    req: AnalyzeRequest,
    request: Request,
    resolver: ItemResolver = Depends(get_resolver),
) -> AnalyzeResponse:
    return await resolver.analyze(req.itemName, client_id_for(request))


@app.post("/api/inventory/parse", response_model=ParseResponse, responses=ERROR_RESPONSES)
async def parse(
    req: ParseRequest,
    request: Request,
    resolver: ItemResolver = Depends(get_resolver),
) -> ParseResponse:
    return await resolver.parse_text(req.text, basket=req.basket, client_id=client_id_for(request))
