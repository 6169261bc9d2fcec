"""Header merging for the several shapes callers pass headers in."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

import httpx
import structlog

from .request_options import HeadersInput

logger = structlog.get_logger(__name__)


def _pairs_from_headers(headers: httpx.Headers) -> Iterator[tuple[str, Any]]:
    yield from headers.multi_items()


def _pairs_from_mapping(headers: Mapping[Any, Any]) -> Iterator[tuple[str, Any]]:
    for key, value in headers.items():
        yield str(key), value


def _pairs_from_sequence(headers: Any) -> Iterator[tuple[str, Any]]:
    for entry in headers:
        if isinstance(entry, (str, bytes)) or len(entry) != 2:
            logger.warning("Ignoring malformed header entry", entry=repr(entry))
            continue
        key, value = entry
        yield str(key), value


def normalize_headers(candidate: HeadersInput | None) -> list[tuple[str, Any]]:
    """Flatten any supported header shape into ``(name, value)`` pairs."""
    if candidate is None:
        return []
    if isinstance(candidate, httpx.Headers):
        return list(_pairs_from_headers(candidate))
    if isinstance(candidate, Mapping):
        return list(_pairs_from_mapping(candidate))
    if isinstance(candidate, (str, bytes)):
        raise TypeError("headers must be a mapping, httpx.Headers or a sequence of pairs")
    return list(_pairs_from_sequence(candidate))


def merge_headers(existing: HeadersInput | None, candidate: HeadersInput | None) -> httpx.Headers:
    """Return ``existing`` with the string-valued entries of ``candidate`` set on top.

    Non-string values are dropped with a warning. ``existing`` is left untouched.
    """
    if isinstance(existing, httpx.Headers):
        merged = httpx.Headers(existing)
    else:
        merged = httpx.Headers()
        _set_string_values(merged, normalize_headers(existing))
    _set_string_values(merged, normalize_headers(candidate))
    return merged


def _set_string_values(target: httpx.Headers, pairs: list[tuple[str, Any]]) -> None:
    for key, value in pairs:
        if isinstance(value, str):
            target[key] = value
        else:
            logger.warning(
                "Dropping header with non-string value",
                header=key,
                value_type=type(value).__name__,
            )
