"""Command line entry point for one-off requests through the pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

import httpx

from fetchwrapper.client import FetchWrapper
from fetchwrapper.config import FetchConfig
from fetchwrapper.exceptions import FetchWrapperError
from fetchwrapper.logging_config import configure_logging
from fetchwrapper.request_options import RequestOptions


HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"header must look like 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def _parse_json(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"--data is not valid JSON: {exc}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fetchwrapper")
    parser.add_argument("method", type=str.upper, choices=HTTP_METHODS)
    parser.add_argument("resource", help="path or URL appended to the base URL")
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--timeout", type=float, default=None, help="seconds per attempt")
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--retry-interval", type=float, default=None, help="seconds between attempts")
    parser.add_argument("--retry-on-fail", action="store_true", default=None)
    parser.add_argument("--parse-json", action="store_true", default=None)
    parser.add_argument("-H", "--header", dest="headers", action="append", type=_parse_header, default=[])
    parser.add_argument("--data", type=_parse_json, default=None, help="JSON request body")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-format", choices=("console", "json"), default="console")
    return parser


def _render(result: object) -> str:
    if isinstance(result, httpx.Response):
        return result.text
    return json.dumps(result, indent=2, sort_keys=True)


def _main(argv: Sequence[str] | None = None, *, httpx_client: httpx.Client | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    try:
        config = FetchConfig.from_env(
            timeout=args.timeout,
            retries=args.retries,
            retry_interval=args.retry_interval,
            retry_on_fail=args.retry_on_fail,
            base_url=args.base_url,
            auto_parse_json=args.parse_json,
        )
        options = RequestOptions(method=args.method, headers=args.headers or None, json=args.data)
        with FetchWrapper(config, httpx_client=httpx_client) as client:
            result = client.request(args.resource, options)
    except FetchWrapperError as exc:
        print(f"Request failed: {exc}", file=sys.stderr)
        return 1

    print(_render(result))
    return 0


def main() -> None:
    raise SystemExit(_main())
