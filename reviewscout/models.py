"""
Core data models for the listing review scout.

These Pydantic models are the values that flow from the acquisition tiers
through the assembler and the scoring engine out to the boundary.

Design principles:
  - Every review carries provenance (tier, source_url)
  - Values are immutable once built; each request owns its own graph
  - Boundary payloads use the camelCase envelope the callers expect
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

UTC = timezone.utc

UNKNOWN_TITLE = "Unknown Property"
UNKNOWN_LOCATION = "Unknown Location"


def _now_utc() -> datetime:
    return datetime.now(UTC)


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


class AcquisitionTier(str, Enum):
    """Acquisition strategies, highest fidelity first."""

    RENDERED = "rendered"
    PARSED = "parsed"
    SYNTHETIC = "synthetic"


class ListingReference(BaseModel):
    """Validated listing identifier plus the locator it came from."""

    model_config = ConfigDict(frozen=True)

    listing_id: str = Field(pattern=r"^\d+$")
    locator: str

    @property
    def numeric_id(self) -> int:
        return int(self.listing_id)


class RawReview(BaseModel):
    """A single accepted piece of review text and where it came from."""

    model_config = ConfigDict(frozen=True)

    text: str
    tier: AcquisitionTier
    source_url: str = ""


class ScoreBreakdown(BaseModel):
    """Per-rule contribution to a review score."""

    model_config = ConfigDict(frozen=True)

    length: int
    length_score: int
    positive_keywords: list[str] = Field(default_factory=list)
    positive_score: int = 0
    detail_keywords: list[str] = Field(default_factory=list)
    detail_score: int = 0

    @property
    def total(self) -> int:
        return self.length_score + self.positive_score + self.detail_score


class ScoredReview(BaseModel):
    """Review text paired with its heuristic score."""

    model_config = ConfigDict(frozen=True)

    text: str
    score: int = Field(ge=0)
    breakdown: ScoreBreakdown
    index: int = 0  # position in the caller's input


class ListingMetadata(BaseModel):
    """Title and location, each falling back to an explicit sentinel."""

    model_config = ConfigDict(frozen=True)

    title: str = UNKNOWN_TITLE
    location: str = UNKNOWN_LOCATION

    @property
    def has_title(self) -> bool:
        return bool(self.title) and self.title != UNKNOWN_TITLE

    @property
    def has_location(self) -> bool:
        return bool(self.location) and self.location != UNKNOWN_LOCATION


class TierOutcome(BaseModel):
    """What one successful tier attempt produced."""

    model_config = ConfigDict(frozen=True)

    metadata: ListingMetadata = Field(default_factory=ListingMetadata)
    reviews: list[RawReview] = Field(default_factory=list)
    source_url: str = ""


class AcquisitionResult(BaseModel):
    """Metadata, reviews and provenance: what the fetcher hands outward."""

    model_config = ConfigDict(frozen=True)

    listing_id: str
    metadata: ListingMetadata = Field(default_factory=ListingMetadata)
    reviews: list[RawReview] = Field(default_factory=list)
    tier: AcquisitionTier
    diagnostic: Optional[str] = None
    acquired_at: datetime = Field(default_factory=_now_utc)
    empty: bool = False  # explicit no-result marker

    @property
    def review_texts(self) -> list[str]:
        return [r.text for r in self.reviews]

    @property
    def review_count(self) -> int:
        return len(self.reviews)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "listingId": self.listing_id,
            "propertyName": self.metadata.title,
            "location": self.metadata.location,
            "reviews": self.review_texts,
            "reviewCount": self.review_count,
            "acquiredAt": _iso(self.acquired_at),
            "tier": self.tier.value,
        }
        if self.diagnostic:
            payload["diagnostic"] = self.diagnostic
        return payload


class AnalysisResult(BaseModel):
    """Outcome of scoring-only analysis."""

    model_config = ConfigDict(frozen=True)

    property_name: str = UNKNOWN_TITLE
    total_reviews: int = 0
    top_reviews: list[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=_now_utc)

    def to_payload(self) -> dict[str, Any]:
        return {
            "propertyName": self.property_name,
            "totalReviews": self.total_reviews,
            "topReviews": list(self.top_reviews),
            "analyzedAt": _iso(self.analyzed_at),
        }
