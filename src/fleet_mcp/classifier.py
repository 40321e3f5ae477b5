# Fleet MCP Server
# File: classifier.py
# Version: v1

"""Map failed Fleet API calls onto the FleetApiError taxonomy.

This module performs no I/O. Fleet reports errors as::

    {"message": "...", "errors": [{"name": "base", "reason": "..."}]}

The text-matching rules the server's messages require (premium-license
detection, retry-after extraction) are kept together at the top of the module.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from .errors import (
    BadGatewayError,
    BadRequestError,
    FleetApiError,
    ForbiddenError,
    NotFoundError,
    PremiumRequiredError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ServiceUnavailableError,
    TransportFailureError,
    UnauthorizedError,
    UnknownApiError,
)

# ---------------------------------------------------------------------------
# Matching rules
# ---------------------------------------------------------------------------

_PREMIUM_MARKERS: Tuple[str, ...] = ("premium license",)
_RETRY_AFTER_RE = re.compile(r"retry after:\s*(\d+)\s*s", re.IGNORECASE)

PREMIUM_REQUIRED_MESSAGE = (
    "This feature requires a Fleet Premium license. "
    "See https://fleetdm.com/pricing to upgrade."
)
UNAUTHORIZED_MESSAGE = (
    "Authentication failed or the session has expired. "
    "Reconnect with a valid API token or credentials."
)
BAD_GATEWAY_MESSAGE = "Bad gateway: the Fleet service is temporarily unavailable."
SERVICE_UNAVAILABLE_MESSAGE = (
    "The Fleet service is temporarily unavailable. Try again later."
)

Failure = Union[httpx.Response, httpx.HTTPStatusError, httpx.RequestError, Exception]


def _parse_error_body(response: httpx.Response) -> Tuple[str, Optional[List[Dict[str, Any]]]]:
    """Return (message, details) from a Fleet error body.

    Falls back to the HTTP reason phrase when the body is not a JSON object.
    """
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return fallback, None

    if not isinstance(data, dict):
        return fallback, None

    message = data.get("message") or data.get("error") or fallback
    raw_details = data.get("errors")
    if raw_details is None:
        raw_details = data.get("details")

    details: Optional[List[Dict[str, Any]]] = None
    if isinstance(raw_details, list):
        details = [d for d in raw_details if isinstance(d, dict)]

    return str(message), details


def _is_premium_required(details: Optional[List[Dict[str, Any]]]) -> bool:
    for detail in details or []:
        reason = str(detail.get("reason") or "").lower()
        if any(marker in reason for marker in _PREMIUM_MARKERS):
            return True
    return False


def extract_retry_after(message: str) -> Optional[int]:
    """Return N from a "retry after: Ns" fragment, or None."""
    match = _RETRY_AFTER_RE.search(message or "")
    if not match:
        return None
    return int(match.group(1))


def classify_response(response: httpx.Response) -> FleetApiError:
    """Classify a non-2xx HTTP response."""
    status = response.status_code
    message, details = _parse_error_body(response)

    if status == 400:
        if _is_premium_required(details):
            return PremiumRequiredError(
                PREMIUM_REQUIRED_MESSAGE, http_status=status, details=details
            )
        return BadRequestError(message, http_status=status, details=details)
    if status == 401:
        return UnauthorizedError(UNAUTHORIZED_MESSAGE, http_status=status, details=details)
    if status == 403:
        return ForbiddenError(f"Access forbidden: {message}", http_status=status, details=details)
    if status == 404:
        return NotFoundError(f"Resource not found: {message}", http_status=status, details=details)
    if status == 408:
        return RequestTimeoutError(
            f"Request timed out on the server: {message}", http_status=status, details=details
        )
    if status == 429:
        retry_after = extract_retry_after(message)
        if retry_after is not None:
            text = f"Rate limit exceeded, retry after {retry_after} seconds: {message}"
        else:
            text = f"Rate limit exceeded: {message}"
        return RateLimitedError(
            text, http_status=status, details=details, retry_after_seconds=retry_after
        )
    if status == 500:
        return ServerError(f"Fleet server error: {message}", http_status=status, details=details)
    if status == 502:
        return BadGatewayError(BAD_GATEWAY_MESSAGE, http_status=status, details=details)
    if status == 503:
        return ServiceUnavailableError(
            SERVICE_UNAVAILABLE_MESSAGE, http_status=status, details=details
        )

    return UnknownApiError(
        f"Fleet API request failed (HTTP {status}): {message}",
        http_status=status,
        details=details,
    )


def classify(failure: Failure) -> FleetApiError:
    """Classify a failed call into a FleetApiError.

    Accepts the failing ``httpx.Response``, an ``httpx.HTTPStatusError`` or a
    transport-level exception raised before any response arrived.
    """
    if isinstance(failure, FleetApiError):
        return failure
    if isinstance(failure, httpx.Response):
        return classify_response(failure)
    if isinstance(failure, httpx.HTTPStatusError):
        return classify_response(failure.response)
    if isinstance(failure, httpx.TimeoutException):
        return RequestTimeoutError(f"Request to Fleet timed out: {failure}")
    return TransportFailureError(f"Error calling the Fleet API: {failure}")
