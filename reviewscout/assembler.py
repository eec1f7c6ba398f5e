"""Builds the outward AcquisitionResult from whichever tier succeeded."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

import structlog

from reviewscout.models import (
    AcquisitionResult,
    AcquisitionTier,
    ListingMetadata,
    ListingReference,
    RawReview,
)

logger = structlog.get_logger()


def merge_metadata(primary: ListingMetadata, fallback: Optional[ListingMetadata]) -> ListingMetadata:
    """Field by field: keep primary's resolved values, fill sentinels from fallback."""
    if fallback is None:
        return primary
    return ListingMetadata(
        title=primary.title if primary.has_title or not fallback.has_title else fallback.title,
        location=primary.location if primary.has_location or not fallback.has_location else fallback.location,
    )


def assemble_result(
    reference: ListingReference,
    metadata: ListingMetadata,
    reviews: Sequence[RawReview],
    tier: AcquisitionTier,
    diagnostic: Optional[str] = None,
    max_reviews: Optional[int] = None,
) -> AcquisitionResult:
    """
    Truncate to max_reviews and attach provenance. Zero reviews gives an
    explicit empty result; reviews are never invented here.
    """
    kept = list(reviews)
    if max_reviews is not None:
        kept = kept[: max(max_reviews, 0)]
    if not kept:
        logger.warning("acquisition_result_empty", listing_id=reference.listing_id, tier=tier.value)
    return AcquisitionResult(
        listing_id=reference.listing_id,
        metadata=metadata,
        reviews=kept,
        tier=tier,
        diagnostic=diagnostic,
        empty=not kept,
    )
