"""Tests for listing locator parsing and canonical URLs."""

import pytest

from reviewscout.errors import InvalidLocatorError
from reviewscout.tools.locator import extract_listing_reference, listing_url, reviews_url


class TestExtractListingReference:
    def test_plain_listing_url(self) -> None:
        ref = extract_listing_reference("https://www.airbnb.com/rooms/12345678")
        assert ref.listing_id == "12345678"
        assert ref.numeric_id == 12345678

    def test_query_string_and_trailing_path_ignored(self) -> None:
        ref = extract_listing_reference("https://www.airbnb.co.uk/rooms/987/photos?adults=2")
        assert ref.listing_id == "987"

    def test_keeps_original_locator(self) -> None:
        locator = "https://www.airbnb.com/rooms/42?check_in=2024-06-01"
        assert extract_listing_reference(locator).locator == locator

    @pytest.mark.parametrize(
        "locator",
        [
            "https://airbnb.com/s/search",
            "https://www.airbnb.com/rooms/",
            "https://www.airbnb.com/rooms/abc",
            "",
        ],
    )
    def test_rejects_locators_without_rooms_id(self, locator: str) -> None:
        with pytest.raises(InvalidLocatorError) as exc_info:
            extract_listing_reference(locator)
        assert exc_info.value.locator == locator

    def test_rejects_non_string(self) -> None:
        with pytest.raises(InvalidLocatorError):
            extract_listing_reference(12345)


class TestListingUrls:
    def test_canonical_urls(self) -> None:
        ref = extract_listing_reference("https://www.airbnb.com/rooms/555?x=1")
        assert listing_url(ref, "https://www.airbnb.com/") == "https://www.airbnb.com/rooms/555"
        assert reviews_url(ref, "https://www.airbnb.com") == "https://www.airbnb.com/rooms/555/reviews"
