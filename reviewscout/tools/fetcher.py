"""
Tiered review acquisition: rendered -> parsed -> synthetic.

Tiers run strictly one after another and each at most once per request; the
RetryCoordinator owns repetition inside a tier. A tier that exhausts its
attempts hands over its last error (kept as the result's diagnostic) and any
metadata it managed to resolve. The synthetic tier always produces reviews,
so acquire() raises only for invalid input (locator or max_reviews).
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from reviewscout.assembler import assemble_result, merge_metadata
from reviewscout.config import RetryConfig, ScraperConfig, get_settings
from reviewscout.errors import AllTiersExhaustedError, InvalidRequestError
from reviewscout.models import AcquisitionResult, AcquisitionTier, ListingMetadata
from reviewscout.observability import DiagnosticSink
from reviewscout.observability import metrics as obs_metrics
from reviewscout.tools.locator import extract_listing_reference
from reviewscout.tools.parsed import ParsedTier
from reviewscout.tools.rendered import RenderedTier
from reviewscout.tools.retry import RetryCoordinator, RetryPolicy, SleepFn, TierExhaustedError
from reviewscout.tools.synthetic import SyntheticTier

__all__ = ["AllTiersExhaustedError", "InvalidRequestError", "TieredReviewFetcher"]

logger = structlog.get_logger()


class TieredReviewFetcher:
    """Acquires reviews for one listing per call; holds no per-request state."""

    def __init__(
        self,
        rendered: Optional[Any] = None,
        parsed: Optional[Any] = None,
        synthetic: Optional[Any] = None,
        scraper_config: Optional[ScraperConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        settings = get_settings()
        self.scraper_config = scraper_config or settings.scraper
        self.retry_config = retry_config or settings.retry
        self.rendered = rendered or RenderedTier(self.scraper_config)
        self.parsed = parsed or ParsedTier(self.scraper_config)
        self.synthetic = synthetic or SyntheticTier(self.scraper_config)
        self._sleep = sleep

    def _network_tiers(self) -> list[Any]:
        tiers = []
        if self.scraper_config.rendered_enabled:
            tiers.append(self.rendered)
        if self.scraper_config.parsed_enabled:
            tiers.append(self.parsed)
        return tiers

    async def acquire(
        self,
        locator: Any,
        max_reviews: Optional[int] = None,
        sink: Optional[DiagnosticSink] = None,
    ) -> AcquisitionResult:
        """
        Acquire reviews for the listing named by locator.

        Raises InvalidLocatorError before any tier runs when the locator has no
        /rooms/<digits> segment, and InvalidRequestError when max_reviews < 1.
        Log records of this call are appended to sink.
        """
        ref = extract_listing_reference(locator)
        if max_reviews is None:
            max_reviews = get_settings().analyzer.default_max_reviews
        elif max_reviews < 1:
            raise InvalidRequestError(f"max_reviews must be >= 1, got {max_reviews}")
        log = logger.bind(listing_id=ref.listing_id)
        if sink is not None:
            log = sink.bind(log)
        log.info("acquisition_started", locator=ref.locator, max_reviews=max_reviews)

        diagnostic: Optional[str] = None
        partial: Optional[ListingMetadata] = None
        previous: Optional[AcquisitionTier] = None

        for impl in self._network_tiers():
            tier: AcquisitionTier = impl.tier
            if previous is not None:
                log.info("tier_fallback_triggered", from_tier=previous.value, to_tier=tier.value)
                obs_metrics.record_tier_escalation(previous.value, tier.value)
            coordinator = RetryCoordinator(
                RetryPolicy.for_tier(tier, self.retry_config),
                sleep=self._sleep,
                log=log,
            )
            try:
                outcome = await coordinator.run(
                    tier,
                    lambda n, impl=impl: impl.attempt(ref, max_reviews, attempt_number=n, log=log),
                )
            except TierExhaustedError as e:
                diagnostic = str(e)
                if e.partial_metadata is not None:
                    partial = merge_metadata(e.partial_metadata, partial)
                log.warning("tier_exhausted", tier=tier.value, attempts=e.attempts, error=e.last_error)
                previous = tier
                continue
            result = assemble_result(
                ref,
                merge_metadata(outcome.metadata, partial),
                outcome.reviews,
                tier,
                diagnostic=diagnostic,
                max_reviews=max_reviews,
            )
            return self._finish(result, log)

        if previous is not None:
            log.info("tier_fallback_triggered", from_tier=previous.value, to_tier=AcquisitionTier.SYNTHETIC.value)
            obs_metrics.record_tier_escalation(previous.value, AcquisitionTier.SYNTHETIC.value)
        try:
            outcome = await self.synthetic.attempt(ref, max_reviews, attempt_number=1, log=log)
        except Exception as e:
            log.error("synthetic_tier_failed", error=str(e))
            raise AllTiersExhaustedError(f"every tier failed for listing {ref.listing_id}: {e}") from e

        # Metadata resolved by a real page beats the synthetic guess
        metadata = merge_metadata(partial, outcome.metadata) if partial is not None else outcome.metadata
        result = assemble_result(
            ref,
            metadata,
            outcome.reviews,
            AcquisitionTier.SYNTHETIC,
            diagnostic=diagnostic,
            max_reviews=max_reviews,
        )
        return self._finish(result, log)

    def _finish(self, result: AcquisitionResult, log: Any) -> AcquisitionResult:
        obs_metrics.record_acquisition(result.tier.value, empty=result.empty)
        log.info(
            "acquisition_complete",
            tier=result.tier.value,
            reviews=result.review_count,
            empty=result.empty,
            title=result.metadata.title,
        )
        return result
