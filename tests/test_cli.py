from __future__ import annotations

import argparse
import json
import logging

import httpx
import pytest
import structlog

import fetchwrapper.cli as cli


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TIMEOUT", "RETRIES", "RETRY_INTERVAL", "RETRY_ON_FAIL", "BASE_URL", "AUTO_PARSE_JSON"):
        monkeypatch.delenv(f"FETCHWRAPPER_{name}", raising=False)


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_parse_header() -> None:
    assert cli._parse_header("X-Trace:  abc ") == ("X-Trace", "abc")
    with pytest.raises(argparse.ArgumentTypeError):
        cli._parse_header("no-colon")


def test_cli_prints_parsed_json(capsys) -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["trace"] = request.headers.get("x-trace")
        captured["body"] = json.loads(request.content.decode())
        return httpx.Response(200, json={"id": 7})

    code = cli._main(
        [
            "post",
            "/items",
            "--base-url",
            "https://api.example.com",
            "--parse-json",
            "-H",
            "X-Trace: t-1",
            "--data",
            '{"name": "x"}',
        ],
        httpx_client=_mock_client(handler),
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"id": 7}
    assert captured == {"url": "https://api.example.com/items", "trace": "t-1", "body": {"name": "x"}}


def test_cli_reads_base_url_from_env(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("FETCHWRAPPER_BASE_URL", "https://env.example.com")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=str(request.url))

    assert cli._main(["get", "/ping"], httpx_client=_mock_client(handler)) == 0
    assert capsys.readouterr().out.strip() == "https://env.example.com/ping"


def test_cli_reports_failures(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    code = cli._main(["get", "https://api.example.com/missing"], httpx_client=_mock_client(handler))

    assert code == 1
    assert "Network response was not ok" in capsys.readouterr().err


def test_cli_rejects_invalid_settings(capsys) -> None:
    code = cli._main(["get", "/x", "--timeout", "0"], httpx_client=_mock_client(lambda request: httpx.Response(200)))

    assert code == 1
    assert "Invalid configuration" in capsys.readouterr().err
