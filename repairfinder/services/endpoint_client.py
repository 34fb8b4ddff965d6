"""Resilient POST client over a pool of interchangeable Overpass endpoints.

Attempts are strictly sequential: the endpoints are public mirrors that
rate-limit aggressively, so each failure is followed by a delay chosen by the
``RetryPolicy`` before the next endpoint in the pool is tried.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import structlog

from repairfinder.core.config import settings
from repairfinder.core.errors import (
    BackendAttemptError,
    BackendStatusError,
    EndpointExhaustedError,
    RateLimitedError,
    TransientNetworkError,
)

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ExponentialBackoff:
    base: float
    cap: float

    def __call__(self, attempt: int) -> float:
        return min(self.base * (2 ** attempt), self.cap)


@dataclass(frozen=True)
class LinearBackoff:
    step: float

    def __call__(self, attempt: int) -> float:
        return self.step * (attempt + 1)


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait after each kind of failure.

    ``attempt`` is zero-based everywhere. The policy knows nothing about the
    endpoint pool.
    """

    max_attempts: int = 6
    rate_limit_backoff: Callable[[int], float] = field(default_factory=lambda: ExponentialBackoff(0.5, 10.0))
    status_backoff: Callable[[int], float] = field(default_factory=lambda: LinearBackoff(0.3))
    transport_backoff: Callable[[int], float] = field(default_factory=lambda: ExponentialBackoff(0.4, 10.0))

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy needs at least one attempt")

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.OVERPASS_MAX_ATTEMPTS,
            rate_limit_backoff=ExponentialBackoff(settings.RATE_LIMIT_BACKOFF_BASE, settings.BACKOFF_CAP),
            status_backoff=LinearBackoff(settings.STATUS_BACKOFF_STEP),
            transport_backoff=ExponentialBackoff(settings.TRANSPORT_BACKOFF_BASE, settings.BACKOFF_CAP),
        )

    def delay_for(self, error: BackendAttemptError, attempt: int) -> float:
        if isinstance(error, RateLimitedError):
            return self.rate_limit_backoff(attempt)
        if isinstance(error, TransientNetworkError):
            return self.transport_backoff(attempt)
        return self.status_backoff(attempt)


class EndpointClient:
    """Sends one logical query to the first endpoint in the pool that answers."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoints: Optional[Sequence[str]] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.http = http
        self.endpoints: List[str] = list(settings.OVERPASS_ENDPOINTS if endpoints is None else endpoints)
        if not self.endpoints:
            raise ValueError("EndpointClient needs at least one endpoint")
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep

    async def fetch(self, query: str) -> Dict[str, Any]:
        """POST ``query`` and return the decoded JSON of the first successful response.

        Raises:
            EndpointExhaustedError: every attempt failed; ``last_error`` holds the final cause.
        """
        last_error: Optional[BackendAttemptError] = None
        for attempt in range(self.policy.max_attempts):
            endpoint = self.endpoints[attempt % len(self.endpoints)]
            try:
                return await self._attempt(endpoint, query, attempt)
            except BackendAttemptError as e:
                last_error = e

            is_last = attempt + 1 >= self.policy.max_attempts
            delay = None if is_last else self.policy.delay_for(last_error, attempt)
            logger.warning(
                "overpass_attempt_failed",
                endpoint=endpoint,
                attempt=attempt + 1,
                error_type=type(last_error).__name__,
                error=str(last_error),
                backoff_s=delay,
            )
            if not is_last:
                await self._sleep(delay)

        logger.error(
            "overpass_exhausted",
            attempts=self.policy.max_attempts,
            endpoint=last_error.endpoint,
            attempt=last_error.attempt,
            last_error=str(last_error),
        )
        raise EndpointExhaustedError(self.policy.max_attempts, last_error)

    async def _attempt(self, endpoint: str, query: str, attempt: int) -> Dict[str, Any]:
        try:
            response = await self.http.post(
                endpoint,
                data={"data": query},
                headers={"Accept": "application/json", "User-Agent": settings.USER_AGENT},
                timeout=settings.OVERPASS_HTTP_TIMEOUT,
            )
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{type(e).__name__}: {e}", endpoint, attempt + 1) from e

        if response.status_code == 429:
            raise RateLimitedError("Rate limited by Overpass endpoint (429)", endpoint, attempt + 1)
        if not response.is_success:
            raise BackendStatusError(
                f"Overpass request failed with status {response.status_code}",
                endpoint,
                attempt + 1,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise BackendStatusError(
                "Overpass returned a non-JSON body", endpoint, attempt + 1, status_code=response.status_code
            ) from e

        logger.info("overpass_success", endpoint=endpoint, attempt=attempt + 1)
        return payload
