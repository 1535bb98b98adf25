"""
Availability gate for the extraction service.

Before any upload is forwarded, the service's health endpoint is probed
under an explicit RetryPolicy. Two budgets are configured: a short one for
batch runs and a longer, retried one for single documents, which absorbs the
service's cold-start delay.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, RetryError, stop_after_attempt, wait_fixed

from ..core.config import Settings
from .extraction_client import ExtractionClient, NotConfiguredExtractionClient

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    delay_seconds: float = 5.0
    attempt_timeout_seconds: float = 10.0

    @classmethod
    def for_batch(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.batch_health_max_attempts,
            delay_seconds=settings.health_retry_delay_seconds,
            attempt_timeout_seconds=settings.batch_health_timeout_seconds,
        )

    @classmethod
    def for_single(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.single_health_max_attempts,
            delay_seconds=settings.health_retry_delay_seconds,
            attempt_timeout_seconds=settings.single_health_timeout_seconds,
        )


@dataclass
class RetryResult(Generic[T]):
    value: Optional[T]
    attempts: int
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _log_failed_attempt(retry_state: RetryCallState) -> None:
    logger.debug(
        "Attempt failed, retrying",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
) -> RetryResult[T]:
    """
    Run ``operation`` until it succeeds or the policy is exhausted.

    Each attempt is bounded by ``policy.attempt_timeout_seconds``. Any
    exception counts as a failed attempt; the last one is returned rather
    than raised. The fixed delay is only slept between attempts.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=wait_fixed(policy.delay_seconds),
        sleep=sleep,
        before_sleep=_log_failed_attempt,
    )
    try:
        async for attempt in retrying:
            with attempt:
                value = await asyncio.wait_for(operation(), timeout=policy.attempt_timeout_seconds)
    except RetryError as e:
        last = e.last_attempt
        return RetryResult(value=None, attempts=last.attempt_number, error=last.exception())

    return RetryResult(value=value, attempts=attempt.retry_state.attempt_number)


@dataclass(frozen=True)
class HealthStatus:
    ready: bool
    attempts: int
    detail: str = ""


class AvailabilityGate:
    def __init__(
        self,
        client: ExtractionClient | NotConfiguredExtractionClient,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self._sleep = sleep

    async def check(self, policy: RetryPolicy) -> HealthStatus:
        """Probe the health endpoint; Ready on any 2xx within the policy."""
        result = await run_with_retry(
            lambda: self.client.probe_health(policy.attempt_timeout_seconds),
            policy,
            sleep=self._sleep,
        )
        if result.ok:
            return HealthStatus(ready=True, attempts=result.attempts, detail=f"HTTP {result.value}")

        detail = str(result.error) or type(result.error).__name__
        if isinstance(result.error, asyncio.TimeoutError):
            detail = f"Health check timed out after {policy.attempt_timeout_seconds:g}s"
        logger.warning(
            "Extraction service health check failed",
            base_url=self.client.base_url,
            attempts=result.attempts,
            detail=detail,
        )
        return HealthStatus(ready=False, attempts=result.attempts, detail=detail)
