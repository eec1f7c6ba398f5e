"""
Error taxonomy for the review scout.

Validation errors fail fast and reach the caller verbatim. Acquisition errors
stay inside the fetcher: they are retried, then turned into a tier fallback.
"""

from __future__ import annotations

from typing import Any


class ReviewScoutError(Exception):
    """Base for review scout errors."""

    pass


class InvalidLocatorError(ReviewScoutError):
    """Locator does not contain a /rooms/<digits> segment; never retried."""

    def __init__(self, locator: Any) -> None:
        self.locator = locator
        super().__init__(f"Invalid listing locator: {locator!r} (expected a /rooms/<digits> URL)")


class InvalidReviewInputError(ReviewScoutError):
    """Review payload is malformed (non-string, empty entry, too many entries)."""

    pass


class InvalidRequestError(ReviewScoutError):
    """A request parameter is out of range (e.g. max_reviews < 1); never retried."""

    pass


class AcquisitionError(ReviewScoutError):
    """Transient failure inside a rendered or parsed tier attempt; safe to retry."""

    pass


class NoReviewsFoundError(AcquisitionError):
    """Attempt completed but yielded zero plausible reviews."""

    pass


class AllTiersExhaustedError(ReviewScoutError):
    """Every tier failed, including the synthetic one. Should be unreachable."""

    pass
