"""Fixed-interval retry of timeout-guarded attempts."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx
import structlog

from .exceptions import (
    FetchWrapperTransportError,
    FetchWrapperValidationError,
    RetryExhaustedError,
)
from .security import parse_retry_after

logger = structlog.get_logger(__name__)

RATE_LIMITED = 429


@dataclass(frozen=True)
class AttemptFailure:
    attempt: int
    message: str
    status_code: int | None = None


@dataclass
class RetryState:
    """Bookkeeping for one retry loop; never shared between calls."""

    interval: float
    attempt: int = 0
    next_delay: float = 0.0
    failures: list[AttemptFailure] = field(default_factory=list)

    def record(self, message: str, status_code: int | None = None) -> None:
        self.failures.append(AttemptFailure(self.attempt, message, status_code))


class RetryPolicy:
    """Retry 5xx, 429 and transport failures up to ``retries`` extra attempts.

    The wait between attempts is ``retry_interval`` seconds, except after a
    429 carrying ``Retry-After``, where the header value is used for that
    one wait.
    """

    def __init__(self, retries: int, retry_interval: float) -> None:
        if retries < 0:
            raise FetchWrapperValidationError("retries must be non-negative")
        if retry_interval < 0:
            raise FetchWrapperValidationError("retry_interval must be non-negative")
        self.retries = int(retries)
        self.retry_interval = float(retry_interval)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    @staticmethod
    def is_retryable(response: httpx.Response) -> bool:
        return response.status_code >= 500 or response.status_code == RATE_LIMITED

    @staticmethod
    def delay_after(response: httpx.Response | None, interval: float) -> float:
        """Wait before the next attempt: a 429 Retry-After hint, else ``interval``."""
        if response is not None and response.status_code == RATE_LIMITED:
            hint = parse_retry_after(response.headers.get("Retry-After"))
            if hint is not None:
                return hint
        return interval

    def run(self, attempt: Callable[[], httpx.Response]) -> httpx.Response:
        state = RetryState(interval=self.retry_interval)
        for index in range(self.max_attempts):
            state.attempt = index
            try:
                response = attempt()
            except FetchWrapperTransportError as exc:
                if self._failed(state, exc, None):
                    raise
            else:
                if not self.is_retryable(response):
                    return response
                if self._failed(state, None, response):
                    raise self._exhausted(state, response)
            time.sleep(state.next_delay)
        raise AssertionError("unreachable")  # pragma: no cover

    async def run_async(self, attempt: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        state = RetryState(interval=self.retry_interval)
        for index in range(self.max_attempts):
            state.attempt = index
            try:
                response = await attempt()
            except FetchWrapperTransportError as exc:
                if self._failed(state, exc, None):
                    raise
            else:
                if not self.is_retryable(response):
                    return response
                if self._failed(state, None, response):
                    raise self._exhausted(state, response)
            await asyncio.sleep(state.next_delay)
        raise AssertionError("unreachable")  # pragma: no cover

    def _failed(
        self,
        state: RetryState,
        error: Exception | None,
        response: httpx.Response | None,
    ) -> bool:
        """Record a failed attempt; return True when the budget is spent."""
        if response is not None:
            message = _status_message(response.status_code)
            state.record(message, response.status_code)
        else:
            message = str(error)
            state.record(message)

        exhausted = state.attempt >= self.retries
        state.next_delay = 0.0 if exhausted else self.delay_after(response, state.interval)
        logger.warning(
            "Request attempt failed",
            attempt=state.attempt + 1,
            max_attempts=self.max_attempts,
            error=message,
            delay=None if exhausted else state.next_delay,
        )
        return exhausted

    def _exhausted(self, state: RetryState, response: httpx.Response) -> RetryExhaustedError:
        return RetryExhaustedError(
            _status_message(response.status_code),
            status_code=response.status_code,
            headers=response.headers,
            response=response,
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
            attempts=state.failures,
        )


def _status_message(status_code: int) -> str:
    if status_code == RATE_LIMITED:
        return f"Rate limit exceeded: {status_code}"
    return f"Network response was not ok: {status_code}"
