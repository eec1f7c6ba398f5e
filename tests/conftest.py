"""Shared pytest fixtures for review scout tests."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import structlog

from reviewscout.config import RetryConfig, ScraperConfig, get_settings
from reviewscout.models import ListingReference
from reviewscout.observability.log_config import configure_logging
from reviewscout.tools.locator import extract_listing_reference

LISTING_URL = "https://www.airbnb.com/rooms/12345678?adults=2&check_in=2024-06-01"

REVIEW_ONE = "We loved our stay here, the cabin was spotless and the host was very responsive."
REVIEW_TWO = "Great location close to the beach, the kitchen had everything we needed for a week."
REVIEW_THREE = "Lovely quiet place with a comfortable bed and a garden that the kids enjoyed a lot."


def _drop(logger: object, method: str, event_dict: dict) -> dict:  # noqa: ARG001
    raise structlog.DropEvent()


@pytest.fixture(autouse=True)
def quiet_logging() -> None:
    """Events are filtered and dropped; DiagnosticSink capture does not need them rendered."""
    configure_logging(level="DEBUG", renderer=_drop)


@pytest.fixture
def unconfigured_structlog():
    """structlog as a library caller gets it: configure_logging never ran."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture
def listing_ref() -> ListingReference:
    return extract_listing_reference(LISTING_URL)


@pytest.fixture
def scraper_config() -> ScraperConfig:
    return get_settings().scraper.model_copy(
        update={
            "base_url": "https://www.airbnb.com",
            "scroll_pauses": [3.0, 2.0],
            "rendered_enabled": True,
            "parsed_enabled": True,
        }
    )


@pytest.fixture
def retry_config() -> RetryConfig:
    return get_settings().retry.model_copy(
        update={
            "rendered_max_attempts": 3,
            "parsed_max_attempts": 2,
            "base_delay": 1.0,
            "max_delay": 10.0,
        }
    )


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def listing_markup() -> str:
    return f"""
    <html>
      <head><title>Lake Cabin - Cabins for Rent in Ely - Airbnb</title></head>
      <body>
        <div data-section-id="HERO_DEFAULT"><h1>Lake Cabin with Sauna</h1></div>
        <div data-section-id="LOCATION_DEFAULT"><button>Ely, Minnesota, United States</button></div>
        <div data-section-id="REVIEWS_DEFAULT">
          <h2>4.97 stars · 128 reviews</h2>
          <div class="review"><span>{REVIEW_ONE}</span></div>
          <div class="review"><span>June 2024</span></div>
          <div class="review"><span>{REVIEW_TWO}</span></div>
          <div class="review"><span>  {REVIEW_ONE}  </span></div>
          <button>Show more</button>
        </div>
      </body>
    </html>
    """
