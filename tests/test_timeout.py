from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest

from fetchwrapper.exceptions import (
    FetchWrapperNetworkError,
    FetchWrapperTimeoutError,
    FetchWrapperTransportError,
)
from fetchwrapper.request_options import RequestOptions
from fetchwrapper.timeout import async_send_with_timeout, build_request_kwargs, send_with_timeout


def test_build_request_kwargs_merges_default_headers_and_body() -> None:
    options = RequestOptions(
        method="post",
        headers=[("X-Trace", "abc"), ("X-Count", 3)],
        params={"page": 2},
        json={"a": 1},
    )

    kwargs = build_request_kwargs("https://api.example.com/items", options, {"Accept": "application/json"})

    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "https://api.example.com/items"
    assert kwargs["params"] == {"page": 2}
    assert kwargs["json"] == {"a": 1}
    assert kwargs["headers"]["accept"] == "application/json"
    assert kwargs["headers"]["x-trace"] == "abc"
    assert "x-count" not in kwargs["headers"]


def test_raw_content_wins_over_json() -> None:
    kwargs = build_request_kwargs("/x", RequestOptions(content=b"raw", json={"ignored": True}))

    assert kwargs["content"] == b"raw"
    assert "json" not in kwargs


def test_send_with_timeout_returns_response_and_forwards_request() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content.decode())
        return httpx.Response(200, json={"ok": True})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        response = send_with_timeout(
            client,
            "https://api.example.com/v1/items",
            RequestOptions(method="PUT", json={"name": "x"}),
            1.0,
        )

    assert response.status_code == 200
    assert captured == {"url": "https://api.example.com/v1/items", "body": {"name": "x"}}


def test_httpx_timeout_maps_to_timeout_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchWrapperTimeoutError) as excinfo:
            send_with_timeout(client, "https://api.example.com/", RequestOptions(), 0.5)

    assert excinfo.value.timeout == 0.5
    assert isinstance(excinfo.value.cause, httpx.ReadTimeout)


def _trickle(chunks: int, pause: float):
    for _ in range(chunks):
        time.sleep(pause)
        yield b"x"


def test_streamed_body_is_read_within_the_deadline() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = iter([b'{"ok"', b": true}"])
        return httpx.Response(200, headers={"Content-Type": "application/json"}, content=body)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        response = send_with_timeout(client, "https://api.example.com/", RequestOptions(), 1.0)

    assert response.json() == {"ok": True}
    assert response.request.url == "https://api.example.com/"


def test_trickling_body_fails_once_the_deadline_passes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_trickle(20, 0.05))

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        started = time.monotonic()
        with pytest.raises(FetchWrapperTimeoutError, match="timed out after 0.2s") as excinfo:
            send_with_timeout(client, "https://api.example.com/slow", RequestOptions(), 0.2)
        elapsed = time.monotonic() - started

    assert excinfo.value.timeout == 0.2
    assert elapsed < 0.5


def test_connection_failure_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchWrapperNetworkError) as excinfo:
            send_with_timeout(client, "https://api.example.com/", RequestOptions(), 0.5)

    assert not isinstance(excinfo.value, FetchWrapperTimeoutError)
    assert isinstance(excinfo.value, FetchWrapperTransportError)


def test_async_deadline_cancels_in_flight_call() -> None:
    events: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            events.append("cancelled")
            raise
        return httpx.Response(200)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await async_send_with_timeout(client, "https://api.example.com/slow", RequestOptions(), 0.05)

    with pytest.raises(FetchWrapperTimeoutError, match="timed out after 0.05s"):
        asyncio.run(run())

    assert events == ["cancelled"]


def test_async_each_attempt_gets_a_fresh_deadline() -> None:
    delays = iter([5.0, 0.0])

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(next(delays))
        return httpx.Response(204)

    async def run() -> list[object]:
        outcomes: list[object] = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            for _ in range(2):
                try:
                    response = await async_send_with_timeout(client, "https://a.test/", RequestOptions(), 0.05)
                    outcomes.append(response.status_code)
                except FetchWrapperTimeoutError:
                    outcomes.append("timeout")
        return outcomes

    assert asyncio.run(run()) == ["timeout", 204]


def test_async_network_error_is_distinct_from_timeout() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("dns failure", request=request)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await async_send_with_timeout(client, "https://a.test/", RequestOptions(), 1.0)

    with pytest.raises(FetchWrapperNetworkError, match="dns failure"):
        asyncio.run(run())
