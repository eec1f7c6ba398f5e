"""
Heuristic review quality score.

Three independent, additive rules:
  - length band: [100, 800] chars -> 10, otherwise [50, 1000] -> 5, else 0
  - positive terms: +2 per distinct term present (case-insensitive substring)
  - detail terms:   +1 per distinct term present (case-insensitive substring)

Pure and deterministic; ties are left for the selector to break.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from reviewscout.models import ScoreBreakdown, ScoredReview

POSITIVE_TERMS: tuple[str, ...] = (
    "amazing", "excellent", "perfect", "wonderful", "fantastic",
    "great", "love", "loved", "beautiful", "clean",
    "comfortable", "recommend", "highly recommend", "best", "awesome",
    "incredible", "outstanding", "superb", "brilliant", "lovely",
    "enjoyed", "spotless", "helpful", "friendly", "welcoming",
)

DETAIL_TERMS: tuple[str, ...] = (
    "hot tub", "location", "host", "cabin", "view", "kitchen", "bathroom",
    "bed", "shower", "wifi", "parking", "garden", "breakfast", "restaurant",
)

POSITIVE_WEIGHT = 2
DETAIL_WEIGHT = 1

# (low, high, points), inclusive bounds, first match wins
LENGTH_BANDS: tuple[tuple[int, int, int], ...] = (
    (100, 800, 10),
    (50, 1000, 5),
)


def _distinct(terms: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(t.lower() for t in terms))


def length_points(length: int) -> int:
    for low, high, points in LENGTH_BANDS:
        if low <= length <= high:
            return points
    return 0


class ReviewScorer:
    """Scores review text against fixed (or overridden) keyword lists."""

    def __init__(
        self,
        positive_terms: Optional[Iterable[str]] = None,
        detail_terms: Optional[Iterable[str]] = None,
    ) -> None:
        self.positive_terms = _distinct(positive_terms if positive_terms is not None else POSITIVE_TERMS)
        self.detail_terms = _distinct(detail_terms if detail_terms is not None else DETAIL_TERMS)

    def breakdown(self, text: str) -> ScoreBreakdown:
        lowered = text.lower()
        positives = [t for t in self.positive_terms if t in lowered]
        details = [t for t in self.detail_terms if t in lowered]
        return ScoreBreakdown(
            length=len(text),
            length_score=length_points(len(text)),
            positive_keywords=positives,
            positive_score=len(positives) * POSITIVE_WEIGHT,
            detail_keywords=details,
            detail_score=len(details) * DETAIL_WEIGHT,
        )

    def score(self, text: str) -> int:
        return self.breakdown(text).total

    def score_review(self, text: str, index: int = 0) -> ScoredReview:
        breakdown = self.breakdown(text)
        return ScoredReview(text=text, score=breakdown.total, breakdown=breakdown, index=index)


_default_scorer = ReviewScorer()


def score_review(text: str) -> int:
    """Score with the default keyword lists."""
    return _default_scorer.score(text)
