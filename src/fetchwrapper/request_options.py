"""Per-request options and the values the interceptor chains fold over."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union

import httpx

HeadersInput = Union[httpx.Headers, Mapping[str, Any], Sequence[Sequence[Any]]]


@dataclass(frozen=True)
class RequestOptions:
    method: str = "GET"
    headers: HeadersInput | None = None
    params: Mapping[str, Any] | None = None
    json: Any | None = None
    content: str | bytes | None = None
    # Per-call overrides; None falls back to the client configuration.
    timeout: float | None = None
    retries: int | None = None
    retry_interval: float | None = None
    retry_on_fail: bool | None = None
    base_url: str | None = None
    auto_parse_json: bool | None = None


@dataclass(frozen=True)
class RequestContext:
    url: str
    options: RequestOptions


@dataclass(frozen=True)
class ResponseContext:
    response: httpx.Response | None
    options: RequestOptions
