"""One transport attempt bounded by a deadline."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Mapping

import httpx
import structlog

from .exceptions import FetchWrapperNetworkError, FetchWrapperTimeoutError
from .headers import merge_headers
from .request_options import RequestOptions
from .security import sanitize_headers

logger = structlog.get_logger(__name__)


def build_request_kwargs(
    url: str,
    options: RequestOptions,
    default_headers: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    headers = merge_headers(default_headers, options.headers)
    kwargs: dict[str, Any] = {
        "method": options.method.upper(),
        "url": url,
        "headers": headers,
        "params": dict(options.params) if options.params is not None else None,
    }
    if options.content is not None:
        kwargs["content"] = options.content
    elif options.json is not None:
        kwargs["json"] = options.json
    return kwargs


def _log_attempt(kwargs: dict[str, Any], timeout: float) -> None:
    logger.debug(
        "Dispatching request",
        method=kwargs["method"],
        url=kwargs["url"],
        headers=sanitize_headers(kwargs["headers"].multi_items()),
        timeout=timeout,
    )


def _timed_out(timeout: float, cause: BaseException | None = None) -> FetchWrapperTimeoutError:
    return FetchWrapperTimeoutError(f"Request timed out after {timeout}s", timeout=timeout, cause=cause)


def _read_raw_body(response: httpx.Response, deadline: float, timeout: float) -> bytes:
    chunks: list[bytes] = []
    if time.monotonic() >= deadline:
        raise _timed_out(timeout)
    for chunk in response.iter_raw():
        chunks.append(chunk)
        if time.monotonic() >= deadline:
            raise _timed_out(timeout)
    return b"".join(chunks)


def send_with_timeout(
    client: httpx.Client,
    url: str,
    options: RequestOptions,
    timeout: float,
    *,
    default_headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    """Perform one attempt that fails once ``timeout`` seconds have elapsed.

    The body is streamed and checked against the deadline after every chunk,
    so a server that keeps trickling bytes cannot hold the attempt open. A
    single stalled socket read is still bounded by the httpx timeout.
    """
    kwargs = build_request_kwargs(url, options, default_headers)
    _log_attempt(kwargs, timeout)
    deadline = time.monotonic() + timeout
    try:
        request = client.build_request(timeout=timeout, **kwargs)
        streamed = client.send(request, stream=True)
        try:
            # Transports that hand back an in-memory body have nothing left to wait for.
            if streamed.is_stream_consumed:
                return streamed
            body = _read_raw_body(streamed, deadline, timeout)
        finally:
            streamed.close()
    except httpx.TimeoutException as exc:
        raise _timed_out(timeout, exc) from exc
    except httpx.TransportError as exc:
        raise FetchWrapperNetworkError(f"Network error: {exc}", cause=exc) from exc
    return httpx.Response(
        streamed.status_code,
        headers=streamed.headers,
        content=body,
        request=request,
        extensions=streamed.extensions,
    )


async def async_send_with_timeout(
    client: httpx.AsyncClient,
    url: str,
    options: RequestOptions,
    timeout: float,
    *,
    default_headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    """Perform one attempt, cancelling the in-flight call when the deadline passes."""
    kwargs = build_request_kwargs(url, options, default_headers)
    _log_attempt(kwargs, timeout)
    try:
        return await asyncio.wait_for(client.request(timeout=timeout, **kwargs), timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        raise _timed_out(timeout, exc) from exc
    except httpx.TransportError as exc:
        raise FetchWrapperNetworkError(f"Network error: {exc}", cause=exc) from exc
