"""
Review Scout - FastAPI application.

Thin HTTP boundary over the acquisition pipeline and the scoring engine:
validates caller input, runs the core, shapes the JSON envelope.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from reviewscout.analysis.analyzer import ReviewAnalyzer
from reviewscout.analysis.selector import ReviewSelector
from reviewscout.config import get_settings
from reviewscout.errors import (
    InvalidLocatorError,
    InvalidRequestError,
    InvalidReviewInputError,
    ReviewScoutError,
)
from reviewscout.observability import DiagnosticSink
from reviewscout.observability.log_config import configure_logging
from reviewscout.tools.fetcher import TieredReviewFetcher

logger = structlog.get_logger()

TOP_REVIEWS = 5


@asynccontextmanager
async def lifespan(app: FastAPI):
    # `uvicorn reviewscout.api:app` skips the CLI; `reviewscout serve` has already configured logging
    if not structlog.is_configured():
        configure_logging()
    logger.info("api_ready")
    yield


app = FastAPI(
    title="Review Scout",
    description="Acquires listing reviews with tiered fallback and selects the most useful ones",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AcquireRequest(BaseModel):
    """Body for the acquisition endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    airbnb_url: Any = Field(default=None, alias="airbnbUrl")
    max_reviews: Optional[int] = Field(default=None, alias="maxReviews", ge=1)


class AnalyzeRequest(BaseModel):
    """Body for scoring-only analysis. reviews is validated by the analyzer."""

    model_config = ConfigDict(populate_by_name=True)

    reviews: Any = None
    max_reviews: Optional[int] = Field(default=None, alias="maxReviews", ge=0)
    property_name: Optional[str] = Field(default=None, alias="propertyName")


def get_fetcher() -> TieredReviewFetcher:
    return TieredReviewFetcher()


def get_analyzer() -> ReviewAnalyzer:
    return ReviewAnalyzer()


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def _require_listing_url(locator: Any) -> str:
    """Boundary check; the /rooms/<digits> check happens in the core."""
    host = get_settings().scraper.source_host
    if not isinstance(locator, str) or not locator:
        raise InvalidLocatorError(locator)
    if host not in locator:
        raise InvalidLocatorError(locator)
    return locator


@app.exception_handler(InvalidLocatorError)
async def _invalid_locator(request: Request, exc: InvalidLocatorError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, error=str(exc))
    return _error(400, str(exc))


@app.exception_handler(InvalidReviewInputError)
async def _invalid_reviews(request: Request, exc: InvalidReviewInputError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, error=str(exc))
    return _error(400, str(exc))


@app.exception_handler(InvalidRequestError)
async def _invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, error=str(exc))
    return _error(400, str(exc))


@app.exception_handler(ReviewScoutError)
async def _internal(request: Request, exc: ReviewScoutError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc))
    return _error(500, str(exc) or "Internal server error")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}


@app.post("/api/analyze")
async def analyze(body: AnalyzeRequest, analyzer: ReviewAnalyzer = Depends(get_analyzer)):
    """Select the top reviews from a caller-supplied list (1-50 entries)."""
    if not isinstance(body.reviews, list) or not body.reviews:
        raise InvalidReviewInputError("Reviews array is required and must not be empty")
    result = analyzer.analyze(body.reviews, max_reviews=body.max_reviews, property_name=body.property_name)
    return result.to_payload()


@app.post("/api/scrape-reviews")
async def scrape_reviews(body: AcquireRequest, fetcher: TieredReviewFetcher = Depends(get_fetcher)):
    """Acquire reviews for one listing, falling back through the tiers."""
    locator = _require_listing_url(body.airbnb_url)
    result = await fetcher.acquire(locator, max_reviews=body.max_reviews)
    return result.to_payload()


@app.post("/api/scrape-and-analyze")
async def scrape_and_analyze(body: AcquireRequest, fetcher: TieredReviewFetcher = Depends(get_fetcher)):
    """Acquire, then keep the top five reviews."""
    locator = _require_listing_url(body.airbnb_url)
    result = await fetcher.acquire(locator, max_reviews=body.max_reviews)
    if result.empty:
        return _error(404, "No reviews found for this listing")
    top = ReviewSelector().select(result.review_texts, TOP_REVIEWS)
    payload: dict[str, Any] = {
        "listingId": result.listing_id,
        "propertyName": result.metadata.title,
        "location": result.metadata.location,
        "allReviews": result.review_texts,
        "topReviews": top,
        "totalReviews": result.review_count,
        "topReviewsCount": len(top),
        "analyzedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "tier": result.tier.value,
    }
    if result.diagnostic:
        payload["diagnostic"] = result.diagnostic
    return payload


@app.post("/api/debug-scraping")
async def debug_scraping(body: AcquireRequest, fetcher: TieredReviewFetcher = Depends(get_fetcher)):
    """Acquisition plus the log records it produced."""
    locator = _require_listing_url(body.airbnb_url)
    sink = DiagnosticSink()
    result = await fetcher.acquire(locator, max_reviews=body.max_reviews, sink=sink)
    return {
        **result.to_payload(),
        "logs": [{"type": r["level"], "event": r["event"]} for r in sink.records],
        "logLines": sink.lines(),
    }
