"""Listing locator parsing and canonical page URLs."""

from __future__ import annotations

import re
from typing import Any, Optional

from reviewscout.config import get_settings
from reviewscout.errors import InvalidLocatorError
from reviewscout.models import ListingReference

__all__ = [
    "InvalidLocatorError",
    "extract_listing_reference",
    "listing_url",
    "reviews_url",
]

_ROOMS_PATTERN = re.compile(r"/rooms/(\d+)")


def extract_listing_reference(locator: Any) -> ListingReference:
    """Return the listing reference for a locator, or raise InvalidLocatorError."""
    if not isinstance(locator, str):
        raise InvalidLocatorError(locator)
    match = _ROOMS_PATTERN.search(locator)
    if not match:
        raise InvalidLocatorError(locator)
    return ListingReference(listing_id=match.group(1), locator=locator)


def _base(base_url: Optional[str]) -> str:
    return (base_url or get_settings().scraper.base_url).rstrip("/")


def listing_url(ref: ListingReference, base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/rooms/{ref.listing_id}"


def reviews_url(ref: ListingReference, base_url: Optional[str] = None) -> str:
    return f"{_base(base_url)}/rooms/{ref.listing_id}/reviews"
