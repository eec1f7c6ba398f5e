"""
Tier A: rendered acquisition through a headless Chromium session (Playwright).

One attempt = one browser. The listing page (metadata) and the review page
load concurrently in the same context; the review page tries the dedicated
reviews URL first and the listing URL second. Deferred content is triggered
by scrolling to the bottom with pauses, then the rendered markup goes through
the same extraction heuristics the parsed tier uses. The browser is always
closed before the attempt returns or raises.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import structlog
from playwright.async_api import BrowserContext
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from reviewscout.config import ScraperConfig, get_settings
from reviewscout.models import (
    AcquisitionTier,
    ListingMetadata,
    ListingReference,
    RawReview,
    TierOutcome,
)
from reviewscout.tools.extraction import (
    REVIEWS_CONTAINER,
    extract_metadata,
    extract_reviews_from_markup,
)
from reviewscout.tools.locator import listing_url, reviews_url
from reviewscout.tools.retry import describe_error, first_yielding, gather_scoped

logger = structlog.get_logger()

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

_SCROLL_TO_BOTTOM = "window.scrollTo(0, document.body.scrollHeight)"


class RenderedTier:
    """Headless-browser acquisition; the most faithful and the most expensive tier."""

    tier = AcquisitionTier.RENDERED

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or get_settings().scraper
        self._sleep = sleep

    async def attempt(
        self,
        ref: ListingReference,
        max_reviews: Optional[int] = None,
        attempt_number: int = 1,
        log: Optional[Any] = None,
    ) -> TierOutcome:
        """Single attempt. Launch and review-page navigation failures propagate."""
        log = log or logger
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.config.render_headless, args=_LAUNCH_ARGS)
            try:
                context = await browser.new_context(
                    user_agent=self.config.user_agent,
                    ignore_https_errors=True,
                )
                metadata, (reviews, source_url) = await gather_scoped(
                    self._load_metadata(context, ref, log),
                    self._load_reviews(context, ref, max_reviews, log),
                )
            finally:
                await browser.close()
        log.info(
            "rendered_attempt_complete",
            attempt=attempt_number,
            reviews=len(reviews),
            source_url=source_url,
        )
        return TierOutcome(metadata=metadata, reviews=reviews, source_url=source_url)

    async def _render(self, context: BrowserContext, url: str, scroll: bool) -> str:
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.config.render_timeout)
            with contextlib.suppress(PlaywrightTimeoutError):
                await page.wait_for_load_state("networkidle", timeout=5000)
            if scroll:
                try:
                    await page.wait_for_selector(REVIEWS_CONTAINER, timeout=self.config.reviews_container_wait)
                except PlaywrightTimeoutError:
                    logger.debug("rendered_reviews_container_missing", url=url)
                for pause in self.config.scroll_pauses:
                    await page.evaluate(_SCROLL_TO_BOTTOM)
                    await self._sleep(pause)
            return await page.content()
        finally:
            await page.close()

    async def _load_metadata(self, context: BrowserContext, ref: ListingReference, log: Any) -> ListingMetadata:
        url = listing_url(ref, self.config.base_url)
        try:
            markup = await self._render(context, url, scroll=False)
        except Exception as e:
            # Metadata never fails the tier; sentinels stand in
            log.warning("rendered_metadata_failed", url=url, error=describe_error(e))
            return ListingMetadata()
        return extract_metadata(markup)

    async def _load_reviews(
        self,
        context: BrowserContext,
        ref: ListingReference,
        max_reviews: Optional[int],
        log: Any,
    ) -> tuple[list[RawReview], str]:
        async def _from(url: str) -> list[RawReview]:
            markup = await self._render(context, url, scroll=True)
            return extract_reviews_from_markup(markup, self.tier, source_url=url, limit=max_reviews)

        urls = [reviews_url(ref, self.config.base_url), listing_url(ref, self.config.base_url)]
        return await first_yielding(urls, _from, self.tier, log)
