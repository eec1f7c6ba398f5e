"""Tests for RetryPolicy, RetryCoordinator and per-attempt URL fallback."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from reviewscout.models import AcquisitionTier, ListingMetadata, RawReview, TierOutcome
from reviewscout.tools.retry import (
    RetryCoordinator,
    RetryPolicy,
    TierExhaustedError,
    describe_error,
    first_yielding,
    gather_scoped,
)

from conftest import REVIEW_ONE


def _outcome(*texts: str, title: str = "Lake Cabin") -> TierOutcome:
    return TierOutcome(
        metadata=ListingMetadata(title=title),
        reviews=[RawReview(text=t, tier=AcquisitionTier.PARSED) for t in texts],
    )


class TestRetryPolicy:
    def test_linear_delays_capped(self) -> None:
        policy = RetryPolicy(max_attempts=5, base_delay=2.0, max_delay=5.0)
        assert [policy.delay_after(n) for n in (1, 2, 3)] == [2.0, 4.0, 5.0]

    def test_for_tier_reads_config(self, retry_config) -> None:
        rendered = RetryPolicy.for_tier(AcquisitionTier.RENDERED, retry_config)
        parsed = RetryPolicy.for_tier(AcquisitionTier.PARSED, retry_config)
        assert rendered.max_attempts == 3
        assert parsed.max_attempts == 2
        assert rendered.attempt_timeout == retry_config.rendered_attempt_timeout

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestRetryCoordinator:
    @pytest.mark.asyncio
    async def test_first_success_returns_without_sleeping(self, no_sleep: AsyncMock) -> None:
        attempt_fn = AsyncMock(return_value=_outcome(REVIEW_ONE))
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3), sleep=no_sleep)
        outcome = await coordinator.run(AcquisitionTier.PARSED, attempt_fn)
        assert outcome.reviews[0].text == REVIEW_ONE
        attempt_fn.assert_awaited_once_with(1)
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_with_linear_backoff(self, no_sleep: AsyncMock) -> None:
        attempt_fn = AsyncMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), _outcome(REVIEW_ONE)])
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=3, base_delay=1.0), sleep=no_sleep)
        outcome = await coordinator.run(AcquisitionTier.RENDERED, attempt_fn)
        assert len(outcome.reviews) == 1
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]
        assert [c.args[0] for c in attempt_fn.await_args_list] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_exhaustion_carries_last_error_and_count(self, no_sleep: AsyncMock) -> None:
        attempt_fn = AsyncMock(side_effect=[RuntimeError("first"), RuntimeError("HTTP 403 on listing page")])
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=2), sleep=no_sleep)
        with pytest.raises(TierExhaustedError) as exc_info:
            await coordinator.run(AcquisitionTier.PARSED, attempt_fn)
        err = exc_info.value
        assert err.tier == AcquisitionTier.PARSED
        assert err.attempts == 2
        assert err.last_error == "HTTP 403 on listing page"
        assert str(err) == "parsed tier failed after 2 attempt(s): HTTP 403 on listing page"

    @pytest.mark.asyncio
    async def test_empty_outcome_is_retried_and_metadata_kept(self, no_sleep: AsyncMock) -> None:
        attempt_fn = AsyncMock(return_value=_outcome(title="Lake Cabin"))
        coordinator = RetryCoordinator(RetryPolicy(max_attempts=2), sleep=no_sleep)
        with pytest.raises(TierExhaustedError) as exc_info:
            await coordinator.run(AcquisitionTier.PARSED, attempt_fn)
        assert attempt_fn.await_count == 2
        assert exc_info.value.partial_metadata is not None
        assert exc_info.value.partial_metadata.title == "Lake Cabin"
        assert "yielded no reviews" in exc_info.value.last_error

    @pytest.mark.asyncio
    async def test_attempt_timeout_is_a_retryable_failure(self, no_sleep: AsyncMock) -> None:
        async def _hang(attempt_number: int) -> TierOutcome:
            await asyncio.sleep(5)
            return _outcome(REVIEW_ONE)

        coordinator = RetryCoordinator(RetryPolicy(max_attempts=1, attempt_timeout=0.01), sleep=no_sleep)
        with pytest.raises(TierExhaustedError) as exc_info:
            await coordinator.run(AcquisitionTier.RENDERED, _hang)
        assert exc_info.value.attempts == 1
        assert exc_info.value.partial_metadata is None


class TestFirstYielding:
    @pytest.mark.asyncio
    async def test_stops_at_first_url_with_items(self) -> None:
        fetch = AsyncMock(side_effect=[RuntimeError("404"), ["a"], ["b"]])
        items, url = await first_yielding(["u1", "u2", "u3"], fetch, AcquisitionTier.PARSED)
        assert (items, url) == (["a"], "u2")
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_only_when_every_url_fails(self) -> None:
        fetch = AsyncMock(side_effect=[RuntimeError("one"), RuntimeError("two")])
        with pytest.raises(RuntimeError, match="two"):
            await first_yielding(["u1", "u2"], fetch, AcquisitionTier.PARSED)

    @pytest.mark.asyncio
    async def test_empty_answer_is_not_an_error(self) -> None:
        fetch = AsyncMock(side_effect=[[], RuntimeError("down")])
        items, url = await first_yielding(["u1", "u2"], fetch, AcquisitionTier.RENDERED)
        assert items == []
        assert url == "u2"


class TestGatherScoped:
    @pytest.mark.asyncio
    async def test_results_in_argument_order(self) -> None:
        async def later(value: str, delay: float) -> str:
            await asyncio.sleep(delay)
            return value

        assert await gather_scoped(later("a", 0.02), later("b", 0)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failure_cancels_and_awaits_siblings(self) -> None:
        cancelled = asyncio.Event()

        async def slow() -> None:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async def fails() -> None:
            await asyncio.sleep(0)
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await gather_scoped(slow(), fails())
        assert cancelled.is_set()
        assert asyncio.all_tasks() == {asyncio.current_task()}


def test_describe_error_falls_back_to_type_name() -> None:
    assert describe_error(asyncio.TimeoutError()) == "TimeoutError"
    assert describe_error(ValueError("bad")) == "bad"
