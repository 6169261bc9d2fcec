"""fetchwrapper exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

if TYPE_CHECKING:
    import httpx

    from .retry import AttemptFailure


class FetchWrapperError(Exception):
    """Base exception for all fetchwrapper failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        body: object = None,
        response: httpx.Response | None = None,
        retry_after: float | None = None,
        timeout: float | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = dict(headers) if headers is not None else {}
        self.body = body
        self.response = response
        self.retry_after = retry_after
        self.timeout = timeout
        self.cause = cause

    def __str__(self) -> str:
        if self.status_code is None:
            return str(self.args[0])
        return f"{self.status_code}: {self.args[0]}"


class FetchWrapperValidationError(FetchWrapperError):
    """Raised for invalid configuration, per-call overrides or handlers."""


class FetchWrapperTransportError(FetchWrapperError):
    """Raised when a single transport attempt fails without a response."""


class FetchWrapperTimeoutError(FetchWrapperTransportError):
    """Raised when an attempt exceeds its deadline."""


class FetchWrapperNetworkError(FetchWrapperTransportError):
    """Raised for transport-level failures like DNS and TCP errors."""


class FetchWrapperHTTPError(FetchWrapperError):
    """Raised for responses whose status is a failure."""


class NotOkError(FetchWrapperHTTPError):
    """Raised when the final response status is outside [200, 300)."""


class RetryExhaustedError(FetchWrapperHTTPError):
    """Raised when the last allowed attempt still returned a retryable status."""

    def __init__(
        self,
        message: str,
        *,
        attempts: Sequence[AttemptFailure] = (),
        **kwargs: object,
    ) -> None:
        super().__init__(message, **kwargs)  # type: ignore[arg-type]
        self.attempts = list(attempts)


class InterceptorError(FetchWrapperError):
    """Raised when an interceptor's fulfilled handler fails.

    The handler's own exception is available as ``cause`` and ``__cause__``.
    """


class FetchWrapperDecodeError(FetchWrapperError):
    """Raised when an auto-parsed response body is not valid JSON."""
