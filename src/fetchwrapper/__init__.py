"""HTTP request pipeline with timeouts, retries and interceptors."""

from .client import AsyncFetchWrapper, FetchWrapper
from .config import FetchConfig
from .exceptions import (
    FetchWrapperDecodeError,
    FetchWrapperError,
    FetchWrapperHTTPError,
    FetchWrapperNetworkError,
    FetchWrapperTimeoutError,
    FetchWrapperTransportError,
    FetchWrapperValidationError,
    InterceptorError,
    NotOkError,
    RetryExhaustedError,
)
from .headers import merge_headers, normalize_headers
from .interceptors import Interceptor, InterceptorManager
from .request_options import RequestContext, RequestOptions, ResponseContext
from .retry import AttemptFailure, RetryPolicy, RetryState

__all__ = [
    "AsyncFetchWrapper",
    "AttemptFailure",
    "FetchConfig",
    "FetchWrapper",
    "FetchWrapperDecodeError",
    "FetchWrapperError",
    "FetchWrapperHTTPError",
    "FetchWrapperNetworkError",
    "FetchWrapperTimeoutError",
    "FetchWrapperTransportError",
    "FetchWrapperValidationError",
    "Interceptor",
    "InterceptorError",
    "InterceptorManager",
    "NotOkError",
    "RequestContext",
    "RequestOptions",
    "ResponseContext",
    "RetryExhaustedError",
    "RetryPolicy",
    "RetryState",
    "merge_headers",
    "normalize_headers",
]

__version__ = "0.1.0"
