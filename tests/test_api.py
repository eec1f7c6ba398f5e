"""Tests for the FastAPI boundary (fetcher replaced with in-memory tiers)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from fastapi.testclient import TestClient

from reviewscout.api import app, get_fetcher
from reviewscout.models import AcquisitionTier, ListingMetadata, RawReview, TierOutcome
from reviewscout.tools.fetcher import TieredReviewFetcher

from conftest import LISTING_URL, REVIEW_ONE, REVIEW_THREE, REVIEW_TWO

WORKED_EXAMPLE = "Amazing clean place with wonderful host and perfect hot tub view, highly recommend!"


def _tier(tier: AcquisitionTier, **attempt_kwargs) -> MagicMock:
    impl = MagicMock()
    impl.tier = tier
    impl.attempt = AsyncMock(**attempt_kwargs)
    return impl


@pytest.fixture
def tiers() -> dict[str, MagicMock]:
    texts = [REVIEW_ONE, REVIEW_TWO, REVIEW_THREE, WORKED_EXAMPLE]
    return {
        "rendered": _tier(AcquisitionTier.RENDERED, side_effect=RuntimeError("browser launch failed")),
        "parsed": _tier(
            AcquisitionTier.PARSED,
            return_value=TierOutcome(
                metadata=ListingMetadata(title="Lake Cabin", location="Ely"),
                reviews=[RawReview(text=t, tier=AcquisitionTier.PARSED) for t in texts],
            ),
        ),
        "synthetic": _tier(AcquisitionTier.SYNTHETIC),
    }


@pytest.fixture
def client(tiers, scraper_config, retry_config, no_sleep):
    fetcher = TieredReviewFetcher(
        scraper_config=scraper_config,
        retry_config=retry_config,
        sleep=no_sleep,
        **tiers,
    )
    app.dependency_overrides[get_fetcher] = lambda: fetcher
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["timestamp"].endswith("Z")


class TestAnalyze:
    def test_selects_top_reviews(self, client: TestClient) -> None:
        resp = client.post("/api/analyze", json={"reviews": [REVIEW_ONE, WORKED_EXAMPLE], "maxReviews": 1})
        assert resp.status_code == 200
        body = resp.json()
        assert body["topReviews"] == [WORKED_EXAMPLE]
        assert body["totalReviews"] == 2
        assert body["propertyName"] == "Unknown Property"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"reviews": []}, {"reviews": "text"}, {"reviews": [REVIEW_ONE] * 51}, {"reviews": [REVIEW_ONE, 7]}],
    )
    def test_rejects_bad_input(self, client: TestClient, payload: dict) -> None:
        resp = client.post("/api/analyze", json=payload)
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestScrape:
    def test_scrape_reviews(self, client: TestClient) -> None:
        resp = client.post("/api/scrape-reviews", json={"airbnbUrl": LISTING_URL, "maxReviews": 3})
        assert resp.status_code == 200
        body = resp.json()
        assert body["listingId"] == "12345678"
        assert body["tier"] == "parsed"
        assert body["reviewCount"] == 3
        assert body["diagnostic"].startswith("rendered tier failed")

    @pytest.mark.parametrize("url", [None, "", "https://example.com/rooms/1"])
    def test_rejects_non_listing_urls(self, client: TestClient, tiers, url) -> None:
        resp = client.post("/api/scrape-reviews", json={"airbnbUrl": url})
        assert resp.status_code == 400
        tiers["rendered"].attempt.assert_not_awaited()

    def test_search_page_rejected_before_any_tier(self, client: TestClient, tiers) -> None:
        resp = client.post("/api/scrape-reviews", json={"airbnbUrl": "https://airbnb.com/s/search"})
        assert resp.status_code == 400
        assert "Invalid listing locator" in resp.json()["error"]
        tiers["rendered"].attempt.assert_not_awaited()
        tiers["parsed"].attempt.assert_not_awaited()

    def test_scrape_and_analyze(self, client: TestClient) -> None:
        body = client.post("/api/scrape-and-analyze", json={"airbnbUrl": LISTING_URL}).json()
        assert body["propertyName"] == "Lake Cabin"
        assert body["totalReviews"] == 4
        assert body["topReviewsCount"] == 4
        assert body["topReviews"][0] == WORKED_EXAMPLE
        assert len(body["allReviews"]) == 4

    def test_debug_scraping_returns_logs(self, client: TestClient) -> None:
        body = client.post("/api/debug-scraping", json={"airbnbUrl": LISTING_URL}).json()
        events = [entry["event"] for entry in body["logs"]]
        assert "tier_fallback_triggered" in events
        assert any(line.startswith("⚠ tier_attempt_failed") for line in body["logLines"])

    def test_debug_scraping_logs_without_configured_logging(self, client: TestClient, unconfigured_structlog) -> None:
        body = client.post("/api/debug-scraping", json={"airbnbUrl": LISTING_URL}).json()
        assert body["tier"] == "parsed"
        assert [entry["event"] for entry in body["logs"]][0] == "acquisition_started"


class TestLifespan:
    def test_startup_configures_logging_when_served_directly(self, unconfigured_structlog) -> None:
        assert not structlog.is_configured()
        with TestClient(app) as c:
            assert c.get("/health").status_code == 200
            assert structlog.is_configured()

    def test_startup_keeps_existing_configuration(self) -> None:
        before = structlog.get_config()["processors"]
        with TestClient(app):
            assert structlog.get_config()["processors"] == before
