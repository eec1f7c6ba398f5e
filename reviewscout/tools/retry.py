"""
Bounded, strictly sequential retries for the rendered and parsed tiers.

A tier hands the coordinator a coroutine factory that performs exactly one
attempt (acquire session, fetch, release session). The coordinator repeats it
under a RetryPolicy and either returns the first outcome that has reviews or
raises TierExhaustedError, which the fetcher reads as "advance to next tier".

Backoff is linear: the wait after attempt n is n * base_delay, capped at
max_delay (tenacity's wait_incrementing with start == increment).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from reviewscout.config import RetryConfig, get_settings
from reviewscout.errors import NoReviewsFoundError, ReviewScoutError
from reviewscout.models import AcquisitionTier, ListingMetadata, TierOutcome
from reviewscout.observability import metrics as obs_metrics

logger = structlog.get_logger()

AttemptFn = Callable[[int], Awaitable[TierOutcome]]
SleepFn = Callable[[float], Awaitable[Any]]
T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry limits for one tier."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    attempt_timeout: Optional[float] = Field(default=None, gt=0)

    def delay_after(self, attempt_number: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(attempt_number * self.base_delay, self.max_delay)

    def wait_strategy(self) -> wait_incrementing:
        return wait_incrementing(start=self.base_delay, increment=self.base_delay, max=self.max_delay)

    @classmethod
    def for_tier(cls, tier: AcquisitionTier, config: Optional[RetryConfig] = None) -> RetryPolicy:
        cfg = config or get_settings().retry
        if tier == AcquisitionTier.RENDERED:
            return cls(
                max_attempts=cfg.rendered_max_attempts,
                base_delay=cfg.base_delay,
                max_delay=cfg.max_delay,
                attempt_timeout=cfg.rendered_attempt_timeout,
            )
        if tier == AcquisitionTier.PARSED:
            return cls(
                max_attempts=cfg.parsed_max_attempts,
                base_delay=cfg.base_delay,
                max_delay=cfg.max_delay,
                attempt_timeout=cfg.parsed_attempt_timeout,
            )
        return cls(max_attempts=1, base_delay=0, max_delay=0)


class TierExhaustedError(ReviewScoutError):
    """All attempts for one tier failed; carries what is needed to fall back."""

    def __init__(
        self,
        tier: AcquisitionTier,
        attempts: int,
        last_error: str,
        partial_metadata: Optional[ListingMetadata] = None,
    ) -> None:
        self.tier = tier
        self.attempts = attempts
        self.last_error = last_error
        self.partial_metadata = partial_metadata
        super().__init__(f"{tier.value} tier failed after {attempts} attempt(s): {last_error}")


def describe_error(exc: BaseException) -> str:
    """Readable message even for exceptions with empty str() (e.g. timeouts)."""
    msg = str(exc).strip()
    return msg or type(exc).__name__


async def gather_scoped(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently and return their results in order.

    When one of them raises (or the caller is cancelled), the unfinished
    siblings are cancelled and awaited before the error propagates, so no
    request outlives the session the caller is about to close.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class RetryCoordinator:
    """Runs one tier's attempts under a RetryPolicy."""

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Optional[SleepFn] = None,
        log: Optional[Any] = None,
    ) -> None:
        self.policy = policy
        self._sleep = sleep
        self._log = log or logger
        self._partial: Optional[ListingMetadata] = None

    def _before_sleep(self, tier: AcquisitionTier) -> Callable[[RetryCallState], None]:
        def _hook(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            self._log.info(
                "tier_retry_scheduled",
                tier=tier.value,
                attempt=state.attempt_number,
                delay_s=round(state.next_action.sleep, 2) if state.next_action else 0.0,
                error=describe_error(exc) if exc else "",
            )

        return _hook

    async def _attempt_once(self, tier: AcquisitionTier, attempt_fn: AttemptFn, attempt_number: int) -> TierOutcome:
        async with obs_metrics.track_tier(tier.value):
            if self.policy.attempt_timeout:
                outcome = await asyncio.wait_for(attempt_fn(attempt_number), timeout=self.policy.attempt_timeout)
            else:
                outcome = await attempt_fn(attempt_number)
            if not outcome.reviews:
                # Page resolved but no reviews: keep its metadata for the fallback tier
                if outcome.metadata.has_title or outcome.metadata.has_location:
                    self._partial = outcome.metadata
                raise NoReviewsFoundError(f"{tier.value} attempt {attempt_number} yielded no reviews")
            return outcome

    async def run(self, tier: AcquisitionTier, attempt_fn: AttemptFn) -> TierOutcome:
        """Return the first outcome with reviews, or raise TierExhaustedError."""
        attempts = 0
        self._partial = None
        retry_kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            retry_kwargs["sleep"] = self._sleep
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait_strategy(),
            retry=retry_if_exception_type(Exception),
            before_sleep=self._before_sleep(tier),
            reraise=True,
            **retry_kwargs,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    self._log.info("tier_attempt_started", tier=tier.value, attempt=attempts)
                    try:
                        outcome = await self._attempt_once(tier, attempt_fn, attempts)
                    except Exception as e:
                        self._log.warning(
                            "tier_attempt_failed",
                            tier=tier.value,
                            attempt=attempts,
                            max_attempts=self.policy.max_attempts,
                            error=describe_error(e),
                            error_type=type(e).__name__,
                        )
                        raise
                    self._log.info(
                        "tier_attempt_succeeded",
                        tier=tier.value,
                        attempt=attempts,
                        reviews=len(outcome.reviews),
                    )
                    return outcome
        except Exception as e:
            raise TierExhaustedError(tier, attempts, describe_error(e), self._partial) from e
        raise TierExhaustedError(tier, attempts, "retry loop ended without an outcome", self._partial)


async def first_yielding(
    urls: Sequence[str],
    fetch_one: Callable[[str], Awaitable[list[T]]],
    tier: AcquisitionTier,
    log: Optional[Any] = None,
) -> tuple[list[T], str]:
    """
    Multi-URL fallback inside a single attempt: return the items and URL of the
    first URL that yields anything. Raises the last error only when every URL
    raised; if at least one URL answered with nothing, returns an empty list.
    """
    log = log or logger
    last_error: Optional[Exception] = None
    answered = False
    for url in urls:
        try:
            items = await fetch_one(url)
        except Exception as e:
            last_error = e
            log.info("url_fallback", tier=tier.value, url=url, error=describe_error(e))
            continue
        answered = True
        if items:
            return items, url
        log.info("url_yielded_nothing", tier=tier.value, url=url)
    if last_error is not None and not answered:
        raise last_error
    return [], (urls[-1] if urls else "")
