"""
Tier B: direct HTTP acquisition without script execution.

Order inside one attempt:
  1. Structured-data endpoints. The first JSON body whose known review paths
     hold acceptable comment text is authoritative; markup is never parsed.
  2. Page variants: reviews page, then listing page. The first variant whose
     markup yields at least one review wins.

Listing metadata is parsed from the listing page concurrently with review
acquisition and degrades to sentinels on any failure.
"""

from __future__ import annotations

import json
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
from reviewscout.tools.extraction import (
    ReviewCollector,
    extract_metadata,
    extract_reviews_from_markup,
)
from reviewscout.tools.locator import listing_url, reviews_url
from reviewscout.tools.retry import describe_error, first_yielding, gather_scoped

logger = structlog.get_logger()

REVIEWS_SECTION_ID = "REVIEWS_DEFAULT"

# Keys under which a review object may carry its text, in preference order.
_TEXT_KEYS = ("comments", "text", "review", "content")


def _browser_headers(user_agent: str) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,application/json;q=0.8,*/*;q=0.7",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Upgrade-Insecure-Requests": "1",
    }


def structured_endpoints(ref: ListingReference, base_url: str, limit: int) -> list[tuple[str, dict[str, str]]]:
    """(url, query params) pairs for the known JSON review endpoints, in order."""
    base = base_url.rstrip("/")
    variables = json.dumps({"id": ref.listing_id, "sectionIds": [REVIEWS_SECTION_ID]})
    return [
        (
            f"{base}/api/v3/StaysPdpSections",
            {"operationName": "StaysPdpSections", "locale": "en", "currency": "USD", "variables": variables},
        ),
        (f"{base}/rooms/{ref.listing_id}/reviews.json", {}),
        (f"{base}/api/v2/reviews", {"listing_id": ref.listing_id, "role": "all", "_limit": str(limit)}),
    ]


def _dig(payload: Any, *path: str) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _section_reviews(sections: Any) -> Any:
    if not isinstance(sections, list):
        return None
    for entry in sections:
        if isinstance(entry, dict) and entry.get("sectionId") == REVIEWS_SECTION_ID:
            return _dig(entry, "section", "reviews")
    return None


def review_texts_from_payload(payload: Any) -> list[str]:
    """Pull review strings out of any of the known JSON response shapes."""
    candidates = [
        _dig(payload, "reviews"),
        _dig(payload, "data", "reviews"),
        _dig(payload, "data", "data", "reviews"),
        _dig(payload, "data", "data", "listing", "reviews"),
        _section_reviews(_dig(payload, "data", "presentation", "stayProductDetailPage", "sections", "sections")),
        _section_reviews(_dig(payload, "sections")),
        _section_reviews(_dig(payload, "pdpSections", "sections")),
    ]
    for reviews in candidates:
        if not isinstance(reviews, list) or not reviews:
            continue
        texts: list[str] = []
        for item in reviews:
            if isinstance(item, str):
                texts.append(item)
            elif isinstance(item, dict):
                for key in _TEXT_KEYS:
                    value = item.get(key)
                    if isinstance(value, str) and value.strip():
                        texts.append(value)
                        break
        if texts:
            return texts
    return []


class ParsedTier:
    """Plain HTTP fetch + DOM-query parse; cheaper and less faithful than rendering."""

    tier = AcquisitionTier.PARSED

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or get_settings().scraper
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.request_timeout,
            headers=_browser_headers(self.config.user_agent),
            follow_redirects=True,
            transport=self._transport,
        )

    async def attempt(
        self,
        ref: ListingReference,
        max_reviews: Optional[int] = None,
        attempt_number: int = 1,
        log: Optional[Any] = None,
    ) -> TierOutcome:
        """Single attempt; both halves finish and the client closes before this returns or raises."""
        log = log or logger
        async with self._client() as client:
            metadata, (reviews, source_url) = await gather_scoped(
                self._load_metadata(client, ref, log),
                self._load_reviews(client, ref, max_reviews, log),
            )
        log.info(
            "parsed_attempt_complete",
            attempt=attempt_number,
            reviews=len(reviews),
            source_url=source_url,
        )
        return TierOutcome(metadata=metadata, reviews=reviews, source_url=source_url)

    async def _load_metadata(self, client: httpx.AsyncClient, ref: ListingReference, log: Any) -> ListingMetadata:
        url = listing_url(ref, self.config.base_url)
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("parsed_metadata_failed", url=url, error=describe_error(e))
            return ListingMetadata()
        return extract_metadata(response.text)

    async def _load_reviews(
        self,
        client: httpx.AsyncClient,
        ref: ListingReference,
        max_reviews: Optional[int],
        log: Any,
    ) -> tuple[list[RawReview], str]:
        reviews, url = await self._from_structured(client, ref, max_reviews, log)
        if reviews:
            return reviews, url

        async def _from_page(page_url: str) -> list[RawReview]:
            response = await client.get(page_url)
            response.raise_for_status()
            return extract_reviews_from_markup(response.text, self.tier, source_url=page_url, limit=max_reviews)

        pages = [reviews_url(ref, self.config.base_url), listing_url(ref, self.config.base_url)]
        return await first_yielding(pages, _from_page, self.tier, log)

    async def _from_structured(
        self,
        client: httpx.AsyncClient,
        ref: ListingReference,
        max_reviews: Optional[int],
        log: Any,
    ) -> tuple[list[RawReview], str]:
        limit = max_reviews or get_settings().analyzer.default_max_reviews
        for url, params in structured_endpoints(ref, self.config.base_url, limit):
            try:
                response = await client.get(url, params=params, headers={"Accept": "application/json"})
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as e:
                log.debug("structured_endpoint_failed", url=url, error=describe_error(e))
                continue
            collector = ReviewCollector(self.tier, source_url=url, limit=max_reviews)
            collector.offer_all(review_texts_from_payload(payload))
            if collector.reviews:
                log.info("structured_endpoint_hit", url=url, reviews=len(collector.reviews))
                return collector.reviews, url
        return [], ""
