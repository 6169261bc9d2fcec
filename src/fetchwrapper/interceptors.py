"""Ordered fulfilled/rejected hooks applied to request and response values."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterator, TypeVar, Union

import structlog

from .exceptions import FetchWrapperValidationError, InterceptorError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Fulfilled = Callable[[T], Union[T, Awaitable[T]]]
Rejected = Callable[[Exception, T], Any]


@dataclass(frozen=True)
class Interceptor(Generic[T]):
    fulfilled: Fulfilled[T] | None = None
    rejected: Rejected[T] | None = None


class InterceptorManager(Generic[T]):
    """Interceptors run in registration order, always.

    When a ``fulfilled`` handler raises, the same entry's ``rejected`` hook
    observes the error and the in-flight value, and the chain then fails with
    :class:`InterceptorError`. A ``rejected`` hook cannot recover the chain;
    call-level recovery goes through :meth:`recovery_handler`.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Interceptor[T]] = []

    def use(
        self,
        fulfilled: Fulfilled[T] | None = None,
        rejected: Rejected[T] | None = None,
    ) -> int:
        self._handlers.append(Interceptor(fulfilled=fulfilled, rejected=rejected))
        return len(self._handlers) - 1

    @property
    def handlers(self) -> tuple[Interceptor[T], ...]:
        return tuple(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[Interceptor[T]]:
        return iter(tuple(self._handlers))

    def recovery_handler(self) -> Rejected[T] | None:
        """Return the first registered ``rejected`` hook, if any."""
        for interceptor in self._handlers:
            if interceptor.rejected is not None:
                return interceptor.rejected
        return None

    def run_handlers(self, value: T) -> T:
        for index, interceptor in enumerate(tuple(self._handlers)):
            if interceptor.fulfilled is None:
                continue
            try:
                result = interceptor.fulfilled(value)
                if inspect.isawaitable(result):
                    close_awaitable(result)
                    raise FetchWrapperValidationError(
                        f"{self.name} interceptor {index} returned an awaitable; "
                        "register async interceptors on AsyncFetchWrapper"
                    )
            except Exception as exc:
                if interceptor.rejected is not None:
                    try:
                        outcome = interceptor.rejected(exc, value)
                        if inspect.isawaitable(outcome):
                            close_awaitable(outcome)
                    except Exception:
                        logger.exception("Interceptor rejected hook failed", chain=self.name, index=index)
                raise self._failure(index, exc) from exc
            value = result
        return value

    async def run_handlers_async(self, value: T) -> T:
        for index, interceptor in enumerate(tuple(self._handlers)):
            if interceptor.fulfilled is None:
                continue
            try:
                value = await _resolve(interceptor.fulfilled(value))
            except Exception as exc:
                if interceptor.rejected is not None:
                    try:
                        await _resolve(interceptor.rejected(exc, value))
                    except Exception:
                        logger.exception("Interceptor rejected hook failed", chain=self.name, index=index)
                raise self._failure(index, exc) from exc
        return value

    def _failure(self, index: int, exc: Exception) -> InterceptorError:
        return InterceptorError(f"{self.name} interceptor {index} failed: {exc}", cause=exc)


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def close_awaitable(result: Any) -> None:
    close = getattr(result, "close", None)
    if callable(close):
        close()
