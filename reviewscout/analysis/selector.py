"""Ranks reviews by score and keeps the best N, preserving input order on ties."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from reviewscout.analysis.scorer import ReviewScorer
from reviewscout.models import ScoredReview


class ReviewSelector:
    def __init__(self, scorer: Optional[ReviewScorer] = None) -> None:
        self.scorer = scorer or ReviewScorer()

    def rank(self, reviews: Sequence[str]) -> list[ScoredReview]:
        """Every review with its score, best first. sorted() is stable, so ties keep input order."""
        scored = [self.scorer.score_review(text, index=i) for i, text in enumerate(reviews)]
        return sorted(scored, key=lambda r: r.score, reverse=True)

    def select(self, reviews: Sequence[str], limit: int) -> list[str]:
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        if limit == 0:
            return []
        return [r.text for r in self.rank(reviews)[:limit]]


def select_top_reviews(reviews: Sequence[str], limit: int) -> list[str]:
    return ReviewSelector().select(reviews, limit)


def rank(reviews: Sequence[str]) -> list[ScoredReview]:
    return ReviewSelector().rank(reviews)
