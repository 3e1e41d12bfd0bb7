from __future__ import annotations

import httpx
from notion_client.errors import HTTPResponseError, RequestTimeoutError


def _extract_status_code(exc: BaseException) -> int | None:
    for attr in ("status", "status_code", "http_status"):
        val = getattr(exc, attr, None)
        if val is None:
            continue
        try:
            return int(val)
        except (TypeError, ValueError):
            continue
    return None


def _looks_like_timeout_or_connection(exc: BaseException) -> bool:
    name = type(exc).__name__.casefold()
    mod = type(exc).__module__.casefold()

    if "timeout" in name or "timeout" in mod:
        return True
    if "connection" in name or "connect" in name:
        return True
    return False


def is_client_error_status(code: int | None) -> bool:
    return isinstance(code, int) and 400 <= code < 500


def is_retryable_notion_exception(exc: BaseException) -> tuple[bool, str | None]:
    """
    Notion retry policy:
    - HTTP 4xx (including 429) are permanent and bail out immediately
    - HTTP 5xx, request timeouts and network errors are retried
    """
    if isinstance(exc, RequestTimeoutError):
        return True, "timeout"

    code = _extract_status_code(exc)
    if isinstance(exc, HTTPResponseError) or code is not None:
        if is_client_error_status(code):
            return False, f"http_{code}"
        return True, f"http_{code}" if code is not None else "http_status"

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True, "network_error"

    if _looks_like_timeout_or_connection(exc):
        return True, "network_error"

    return False, None
