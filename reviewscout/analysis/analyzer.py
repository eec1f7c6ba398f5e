"""Scoring-only analysis of caller-supplied review text."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from reviewscout.analysis.selector import ReviewSelector
from reviewscout.config import AnalyzerConfig, get_settings
from reviewscout.errors import InvalidReviewInputError
from reviewscout.models import UNKNOWN_TITLE, AnalysisResult
from reviewscout.observability import metrics as obs_metrics

__all__ = ["InvalidReviewInputError", "ReviewAnalyzer", "validate_reviews"]

logger = structlog.get_logger()


def validate_reviews(reviews: Any, max_count: int) -> list[str]:
    """Return reviews as a list, or raise InvalidReviewInputError."""
    if not isinstance(reviews, (list, tuple)):
        raise InvalidReviewInputError("reviews must be a list of strings")
    if len(reviews) > max_count:
        raise InvalidReviewInputError(f"too many reviews: {len(reviews)} (maximum {max_count})")
    for i, review in enumerate(reviews):
        if not isinstance(review, str):
            raise InvalidReviewInputError(f"review {i} is not a string")
        if not review.strip():
            raise InvalidReviewInputError(f"review {i} is empty")
    return list(reviews)


class ReviewAnalyzer:
    def __init__(self, selector: Optional[ReviewSelector] = None, config: Optional[AnalyzerConfig] = None) -> None:
        self.selector = selector or ReviewSelector()
        self.config = config or get_settings().analyzer

    def analyze(
        self,
        reviews: Any,
        max_reviews: Optional[int] = None,
        property_name: Optional[str] = None,
    ) -> AnalysisResult:
        """Validate, score and keep the top max_reviews (default 5)."""
        texts = validate_reviews(reviews, self.config.max_input_reviews)
        limit = self.config.default_top_reviews if max_reviews is None else max_reviews
        if limit < 0:
            raise InvalidReviewInputError(f"maxReviews must be >= 0, got {limit}")
        top = self.selector.select(texts, limit)
        obs_metrics.record_analysis(len(texts))
        logger.info("reviews_analyzed", total=len(texts), selected=len(top))
        return AnalysisResult(
            property_name=property_name or UNKNOWN_TITLE,
            total_reviews=len(texts),
            top_reviews=top,
        )
