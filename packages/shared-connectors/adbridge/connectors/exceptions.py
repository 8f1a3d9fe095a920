"""Custom exceptions for partner connectors."""

from __future__ import annotations

from typing import Any


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConfigurationMissingError(ConnectorError):
    """Raised when the pixel id or API credentials are not configured yet."""

    pass


class ProxyAuthenticationError(ConnectorError):
    """Raised when an authenticated proxy call has no token to send."""

    pass


class ProxyRequestError(ConnectorError):
    """Raised when a proxy call fails or returns a non-2xx response.

    Attributes:
        status_code: HTTP status, or None when no response was received.
        body: Parsed JSON error body, raw text, or None.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
