"""
Tier C: deterministic synthetic reviews. Never fails.

Each review is a template with placeholder slots; every slot is resolved from
the listing id alone, so the same id always yields byte-identical output and
different ids vary. Metadata is a best-effort <title> fetch with a generated
placeholder when that fails too.
"""

from __future__ import annotations

import html
import re
from typing import Any, Optional

import httpx
import structlog

from reviewscout.config import ScraperConfig, get_settings
from reviewscout.models import (
    AcquisitionTier,
    ListingMetadata,
    ListingReference,
    RawReview,
    TierOutcome,
)
from reviewscout.tools.locator import listing_url
from reviewscout.tools.retry import describe_error, gather_scoped

logger = structlog.get_logger()

SYNTHETIC_LOCATION = "Location available on site"
UNRESOLVED_LOCATION = "Location not available"

_SLOT_STRIDE = 7
_TITLE_PATTERN = re.compile(r"<title[^>]*>([^<]+)<", re.IGNORECASE)
_TITLE_SEPARATORS = (" - ", " | ")

# Slot order matters: slots are filled in the order listed.
TEMPLATES: tuple[tuple[str, dict[str, tuple[str, ...]]], ...] = (
    (
        "Amazing {adjective} with {feature}! The host was {host_quality} and the {amenity} was "
        "{quality}. Would definitely {action} again!",
        {
            "adjective": ("place", "property", "location", "stay", "experience"),
            "feature": (
                "stunning views", "great amenities", "perfect location",
                "beautiful surroundings", "excellent facilities",
            ),
            "host_quality": (
                "incredibly welcoming", "very helpful", "super responsive",
                "extremely kind", "wonderfully accommodating",
            ),
            "amenity": ("location", "cleanliness", "comfort", "atmosphere", "setup"),
            "quality": ("perfect", "excellent", "outstanding", "fantastic", "amazing"),
            "action": ("stay", "book", "visit", "recommend this place", "come back"),
        },
    ),
    (
        "{quality} property in a {location_type}. Everything was {condition} and {maintenance}. "
        "The host provided {service} and the {aspect} exceeded our expectations.",
        {
            "quality": ("Beautiful", "Lovely", "Wonderful", "Perfect", "Excellent"),
            "location_type": (
                "great location", "perfect spot", "ideal area",
                "fantastic neighborhood", "prime location",
            ),
            "condition": ("clean", "spotless", "immaculate", "pristine", "well-maintained"),
            "maintenance": (
                "well-organized", "thoughtfully arranged", "carefully prepared",
                "professionally managed", "beautifully presented",
            ),
            "service": (
                "excellent recommendations", "helpful local tips", "outstanding support",
                "wonderful hospitality", "great communication",
            ),
            "aspect": (
                "overall experience", "attention to detail", "quality of amenities",
                "level of comfort", "standard of cleanliness",
            ),
        },
    ),
    (
        "Had the most {experience} stay! The {space} is {description} and the {feature} was "
        "{quality}. {recommendation} for anyone looking for {purpose}.",
        {
            "experience": ("amazing", "wonderful", "fantastic", "incredible", "memorable"),
            "space": ("place", "property", "accommodation", "home", "space"),
            "description": (
                "beautiful", "comfortable", "well-designed",
                "perfectly located", "thoughtfully decorated",
            ),
            "feature": ("host", "location", "cleanliness", "comfort", "amenities"),
            "quality": ("exceptional", "outstanding", "perfect", "excellent", "top-notch"),
            "recommendation": (
                "Highly recommend", "Would definitely recommend", "Perfect choice",
                "Excellent option", "Great pick",
            ),
            "purpose": (
                "a relaxing getaway", "a comfortable stay", "a memorable experience",
                "a perfect vacation", "quality accommodation",
            ),
        },
    ),
)


def synthetic_review_count(listing_id: int) -> int:
    return 5 + listing_id % 4


def _fill(template: str, slots: dict[str, tuple[str, ...]], listing_id: int, index: int) -> tuple[str, tuple[int, ...]]:
    text = template
    picks: list[int] = []
    for name, options in slots.items():
        pick = (listing_id + index * _SLOT_STRIDE + len(name)) % len(options)
        picks.append(pick)
        text = text.replace("{" + name + "}", options[pick], 1)
    return text, tuple(picks)


def generate_synthetic_reviews(ref: ListingReference, source_url: str = "") -> list[RawReview]:
    """Same listing id -> same reviews, in the same order. Never empty."""
    listing_id = ref.numeric_id
    seen: set[tuple[int, ...]] = set()
    reviews: list[RawReview] = []
    for i in range(synthetic_review_count(listing_id)):
        template_index = i % len(TEMPLATES)
        template, slots = TEMPLATES[template_index]
        text, picks = _fill(template, slots, listing_id, i)
        combination = (template_index, *picks)
        if combination in seen:
            continue
        seen.add(combination)
        reviews.append(RawReview(text=text, tier=AcquisitionTier.SYNTHETIC, source_url=source_url))
    return reviews


def title_from_markup(markup: str) -> Optional[str]:
    """<title> text trimmed at the first site-name separator, entities unescaped."""
    match = _TITLE_PATTERN.search(markup or "")
    if not match:
        return None
    title = match.group(1)
    for sep in _TITLE_SEPARATORS:
        title = title.split(sep)[0]
    title = html.unescape(title).strip()
    return title or None


def placeholder_metadata(ref: ListingReference) -> ListingMetadata:
    return ListingMetadata(title=f"Listing {ref.listing_id}", location=UNRESOLVED_LOCATION)


class SyntheticTier:
    """Last-resort tier: generated reviews plus best-effort metadata."""

    tier = AcquisitionTier.SYNTHETIC

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or get_settings().scraper
        self._transport = transport

    async def _fetch_metadata(self, ref: ListingReference, log: Any) -> ListingMetadata:
        url = listing_url(ref, self.config.base_url)
        try:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout,
                headers={"User-Agent": self.config.user_agent},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            log.info("synthetic_metadata_fetch_failed", url=url, error=describe_error(e))
            return placeholder_metadata(ref)
        title = title_from_markup(response.text)
        if not title:
            return placeholder_metadata(ref)
        return ListingMetadata(title=title, location=SYNTHETIC_LOCATION)

    async def _generate(self, ref: ListingReference) -> list[RawReview]:
        return generate_synthetic_reviews(ref, source_url=listing_url(ref, self.config.base_url))

    async def attempt(
        self,
        ref: ListingReference,
        max_reviews: Optional[int] = None,
        attempt_number: int = 1,
        log: Optional[Any] = None,
    ) -> TierOutcome:
        log = log or logger
        metadata, reviews = await gather_scoped(
            self._fetch_metadata(ref, log),
            self._generate(ref),
        )
        log.info("synthetic_reviews_generated", listing_id=ref.listing_id, count=len(reviews))
        return TierOutcome(metadata=metadata, reviews=reviews, source_url=listing_url(ref, self.config.base_url))
