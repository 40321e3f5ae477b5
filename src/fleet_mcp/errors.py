# Fleet MCP Server
# File: errors.py
# Version: v1

"""Exception types raised by the Fleet client.

Every failed call against the Fleet API surfaces as exactly one
``FleetApiError`` subclass. ``kind`` mirrors the class so callers that
prefer a flat switch (e.g. the MCP tool layer) do not need isinstance chains.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    NOT_CONNECTED = "NotConnected"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    TIMEOUT = "Timeout"
    RATE_LIMITED = "RateLimited"
    PREMIUM_REQUIRED = "PremiumRequired"
    SERVER_ERROR = "ServerError"
    BAD_GATEWAY = "BadGateway"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    BAD_REQUEST = "BadRequest"
    TRANSPORT_FAILURE = "TransportFailure"
    UNKNOWN = "Unknown"


class FleetApiError(Exception):
    """Base exception for all classified Fleet API failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Small, LLM-friendly error shape used by the tool layer."""
        err: Dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.http_status is not None:
            err["http_status"] = self.http_status
        if self.details:
            err["details"] = self.details
        return err


class NotConnectedError(FleetApiError):
    """Raised when no Fleet connection has been established."""

    kind = ErrorKind.NOT_CONNECTED


class UnauthorizedError(FleetApiError):
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(FleetApiError):
    kind = ErrorKind.FORBIDDEN


class NotFoundError(FleetApiError):
    kind = ErrorKind.NOT_FOUND


class RequestTimeoutError(FleetApiError):
    """Client-side elapsed timeout or a server-reported 408."""

    kind = ErrorKind.TIMEOUT


class RateLimitedError(FleetApiError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = 429,
        details: Optional[List[Dict[str, Any]]] = None,
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(message, http_status=http_status, details=details)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> Dict[str, Any]:
        err = super().to_dict()
        if self.retry_after_seconds is not None:
            err["retry_after_seconds"] = self.retry_after_seconds
        return err


class PremiumRequiredError(FleetApiError):
    kind = ErrorKind.PREMIUM_REQUIRED


class ServerError(FleetApiError):
    kind = ErrorKind.SERVER_ERROR


class BadGatewayError(FleetApiError):
    kind = ErrorKind.BAD_GATEWAY


class ServiceUnavailableError(FleetApiError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class BadRequestError(FleetApiError):
    kind = ErrorKind.BAD_REQUEST


class TransportFailureError(FleetApiError):
    """Raised when a request never produced an HTTP response."""

    kind = ErrorKind.TRANSPORT_FAILURE


class UnknownApiError(FleetApiError):
    kind = ErrorKind.UNKNOWN


class NoTargetsError(ValueError):
    """Raised when a query run is requested without any target hosts."""
