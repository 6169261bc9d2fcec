"""Header redaction, base URL checks and Retry-After parsing."""

from __future__ import annotations

import datetime as _dt
from email.utils import parsedate_to_datetime
from typing import Iterable, Mapping
from urllib.parse import urlparse


SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "proxy-authorization",
    "set-cookie",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str] | Iterable[tuple[str, str]]) -> dict[str, str]:
    """Return headers with sensitive values redacted for logging."""
    items = headers.items() if isinstance(headers, Mapping) else headers
    redacted: dict[str, str] = {}
    for key, value in items:
        if key.lower() in SENSITIVE_HEADERS:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def validate_base_url(url: str) -> None:
    """Validate a base address.

    An empty base is allowed; resources are then used as given. A base with a
    scheme must be http(s) and name a host.
    """
    if "\x00" in url:
        raise ValueError("Invalid base_url")
    if not url:
        return
    parsed = urlparse(url)
    if not parsed.scheme:
        return
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base_url scheme: {parsed.scheme}")
    if not parsed.netloc:
        raise ValueError("base_url must include a host")


def parse_retry_after(raw: str | None) -> float | None:
    """Parse Retry-After header values into seconds."""
    if raw is None:
        return None

    raw = raw.strip()
    if not raw:
        return None

    try:
        return max(0.0, float(int(raw)))
    except ValueError:
        pass

    try:
        parsed = parsedate_to_datetime(raw)
    except (ValueError, TypeError, OverflowError):
        return None

    if parsed is None:
        return None

    now = _dt.datetime.now(_dt.timezone.utc)
    if parsed.utcoffset() is None:
        parsed_utc = parsed.replace(tzinfo=_dt.timezone.utc)
    else:
        parsed_utc = parsed.astimezone(_dt.timezone.utc)

    delta = (parsed_utc - now).total_seconds()
    return max(0.0, float(delta))
