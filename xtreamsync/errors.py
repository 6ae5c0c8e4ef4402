"""Error taxonomy surfaced by the catalog client and services."""
from __future__ import annotations

from typing import Optional


class XtreamApiError(Exception):
    """Base error for anything that went wrong talking to an Xtream server."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RequestTimeout(XtreamApiError):
    """The request did not complete within the configured timeout (retryable)."""


class NetworkError(XtreamApiError):
    """Connection-level failure before a response was received (retryable)."""


class HttpError(XtreamApiError):
    """Server answered with a non-2xx status. Never retried."""

    def __init__(self, status_code: int, reason: str = ""):
        super().__init__(f"HTTP error: {status_code} {reason}".rstrip(), status_code)


class MalformedResponse(XtreamApiError):
    """Non-empty body that is not valid JSON or has the wrong shape."""


class InvalidCredentials(XtreamApiError):
    """Authentication response is missing the account or server block."""


class AccountInactive(XtreamApiError):
    def __init__(self, status: str):
        super().__init__(f"Account is not active: {status}")
        self.status = status


class RequestCancelled(XtreamApiError):
    """An in-flight request was aborted through ``cancel_pending_requests()``."""


class NotConnected(XtreamApiError):
    """A catalog operation needs an active server session."""

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


RETRYABLE_ERRORS = (RequestTimeout, NetworkError)
