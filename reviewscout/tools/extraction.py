"""
Shared content heuristics for telling review text apart from page noise.

Both the rendered and the parsed tiers end up with listing markup; everything
that decides what counts as a review, and how title/location are found, lives
here so the two tiers accept exactly the same text.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

from reviewscout.models import (
    UNKNOWN_LOCATION,
    UNKNOWN_TITLE,
    AcquisitionTier,
    ListingMetadata,
    RawReview,
)

# Acceptance band (exclusive on both ends)
MIN_REVIEW_LENGTH = 50
MAX_REVIEW_LENGTH = 2000

REVIEWS_CONTAINER = '[data-section-id="REVIEWS_DEFAULT"]'

# Stay/host/property cues; at least one must appear (case-insensitive).
REVIEW_CUES: tuple[str, ...] = (
    "stay", "place", "host", "recommend", "beautiful", "perfect",
    "amazing", "lovely", "great", "clean", "comfortable", "enjoyed",
    "nice", "good", "excellent", "wonderful",
)

# Rating counters, navigation buttons and guest counts (case-sensitive, as rendered).
NOISE_MARKERS: tuple[str, ...] = (
    "stars", "rating", "Show more", "Show less", "reviews", "guests",
)

_BARE_NUMBER = re.compile(r"^\d+$")
_MONTH_PREFIX = re.compile(
    r"^(January|February|March|April|May|June|July|August|September|October|November|December)"
)

# Candidate review nodes, most specific first.
REVIEW_SELECTORS: tuple[str, ...] = (
    f"{REVIEWS_CONTAINER} span",
    f"{REVIEWS_CONTAINER} p",
    f"{REVIEWS_CONTAINER} div",
    ".reviews span",
    ".reviews p",
    ".review-text",
    '[data-testid="review-text"]',
    '[data-testid="review"] span',
    '[data-testid="review"] p',
    'span[dir="ltr"]',
    'div[role="article"] span',
    'div[role="article"] p',
)


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace the way rendered textContent reads."""
    return " ".join(text.split())


def in_acceptance_band(text: str) -> bool:
    return MIN_REVIEW_LENGTH < len(text) < MAX_REVIEW_LENGTH


def has_review_cue(text: str) -> bool:
    lowered = text.lower()
    return any(cue in lowered for cue in REVIEW_CUES)


def looks_like_noise(text: str) -> bool:
    if any(marker in text for marker in NOISE_MARKERS):
        return True
    return bool(_BARE_NUMBER.match(text) or _MONTH_PREFIX.match(text))


def is_plausible_review(text: str) -> bool:
    """Band + cue + not-noise. Deduplication is the collector's job."""
    return in_acceptance_band(text) and has_review_cue(text) and not looks_like_noise(text)


class ReviewCollector:
    """Accumulates plausible reviews for one tier, dropping exact repeats."""

    def __init__(self, tier: AcquisitionTier, source_url: str = "", limit: Optional[int] = None) -> None:
        self.tier = tier
        self.source_url = source_url
        self.limit = limit
        self._seen: set[str] = set()
        self._reviews: list[RawReview] = []

    @property
    def full(self) -> bool:
        return self.limit is not None and len(self._reviews) >= self.limit

    @property
    def reviews(self) -> list[RawReview]:
        return list(self._reviews)

    def offer(self, text: str) -> bool:
        """Keep text if it is plausible and unseen; returns whether it was kept."""
        if self.full:
            return False
        text = normalize_text(text)
        if text in self._seen or not is_plausible_review(text):
            return False
        self._seen.add(text)
        self._reviews.append(RawReview(text=text, tier=self.tier, source_url=self.source_url))
        return True

    def offer_all(self, texts: Iterable[str]) -> int:
        kept = 0
        for text in texts:
            if self.full:
                break
            if self.offer(text):
                kept += 1
        return kept


@dataclass(frozen=True)
class ExtractionRule:
    """One selector query plus a projector that cleans the matched text."""

    selector: str
    projector: Callable[[str], str] = field(default=normalize_text)

    def apply(self, soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one(self.selector)
        if element is None:
            return None
        value = self.projector(element.get_text())
        return value or None


def _page_title(text: str) -> str:
    return normalize_text(text).split(" - ")[0].strip()


TITLE_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("h1"),
    ExtractionRule('[data-section-id="HERO_DEFAULT"] h1'),
    ExtractionRule(".title h1"),
    ExtractionRule(".listing-title"),
    ExtractionRule("title", _page_title),
)

LOCATION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule('[data-section-id="LOCATION_DEFAULT"] button'),
    ExtractionRule(".location button"),
    ExtractionRule('[data-testid="location"]'),
    ExtractionRule(".address"),
)


def first_match(soup: BeautifulSoup, rules: Sequence[ExtractionRule], default: str) -> str:
    """Run rules in order and return the first non-empty value, else default."""
    for rule in rules:
        value = rule.apply(soup)
        if value:
            return value
    return default


def parse_markup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "lxml")


def extract_metadata(markup: str) -> ListingMetadata:
    """Title and location from listing markup; sentinels when nothing matches."""
    soup = parse_markup(markup)
    return ListingMetadata(
        title=first_match(soup, TITLE_RULES, UNKNOWN_TITLE),
        location=first_match(soup, LOCATION_RULES, UNKNOWN_LOCATION),
    )


def has_reviews_container(markup: str) -> bool:
    return parse_markup(markup).select_one(REVIEWS_CONTAINER) is not None


def extract_reviews_from_markup(
    markup: str,
    tier: AcquisitionTier,
    source_url: str = "",
    limit: Optional[int] = None,
) -> list[RawReview]:
    """Scan candidate nodes in selector order and keep plausible, unseen text."""
    soup = parse_markup(markup)
    collector = ReviewCollector(tier, source_url=source_url, limit=limit)
    for selector in REVIEW_SELECTORS:
        collector.offer_all(el.get_text() for el in soup.select(selector))
        if collector.full:
            break
    return collector.reviews
