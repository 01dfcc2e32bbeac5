"""Shared HTTP response helpers for campus backend interactions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import (
    RemoteAPIError,
    RemoteConflictError,
    RemoteNotFoundError,
    RemotePermissionError,
)

LOGGER = logging.getLogger(__name__)

__all__ = [
    "classify_response_status",
    "extract_error",
]


def classify_response_status(
    response: requests.Response,
    context: str,
    *,
    attempt: int,
    backoff: float,
    can_retry: bool,
) -> Tuple[str, Optional[Exception]]:
    """Return action for a response status: ok, retry, or raise."""

    status = response.status_code
    detail = extract_error(response)

    def with_detail(message: str) -> str:
        return f"{message} | {detail}" if detail else message

    if status == 429 and can_retry:
        LOGGER.warning(
            "%s rate limited (429) attempt=%s; sleeping %.1fs",
            context,
            attempt,
            backoff,
        )
        return "retry", None

    if status in (401, 403):
        message = with_detail(f"{context} forbidden (status {status})")
        LOGGER.warning(message)
        return "raise", RemotePermissionError(message)

    if status == 404:
        message = with_detail(f"{context} not found")
        LOGGER.info(message)
        return "raise", RemoteNotFoundError(message)

    if status in (409, 422):
        message = with_detail(f"{context} rejected (status {status})")
        LOGGER.warning(message)
        return "raise", RemoteConflictError(message)

    if 500 <= status < 600 and can_retry:
        message = with_detail(f"{context} server error {status}")
        LOGGER.warning("%s; retrying in %.1fs", message, backoff)
        return "retry", None

    if 400 <= status < 600:
        message = with_detail(f"{context} request failed (status {status})")
        LOGGER.error(message)
        return "raise", RemoteAPIError(message)

    return "ok", None


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return a compact error string (message plus field errors) if present."""

    if resp is None:
        return None
    data = _safe_json(resp)
    if data is None:
        return _extract_error_text(resp)
    if not isinstance(data, dict):
        return None
    parts = _collect_error_parts(data)
    return " | ".join(parts) if parts else None


def _safe_json(resp: requests.Response) -> Optional[Any]:
    try:
        return resp.json()
    except ValueError as exc:  # requests' JSONDecodeError subclasses ValueError
        LOGGER.debug("Failed to decode JSON from %s: %s", getattr(resp, "url", "?"), exc)
        return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: Dict[str, Any]) -> List[str]:
    parts: List[str] = []
    for key in ("message", "error"):
        value = data.get(key)
        if value:
            parts.append(str(value))
            break
    errors = data.get("errors")
    if isinstance(errors, list):
        for err in errors:
            if isinstance(err, dict):
                field = err.get("field")
                code = err.get("code") or err.get("message")
                if field and code:
                    parts.append(f"{field}:{code}")
                elif code:
                    parts.append(str(code))
            elif err:
                parts.append(str(err))
    return parts
