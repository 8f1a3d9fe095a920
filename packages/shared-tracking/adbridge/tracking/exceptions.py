"""Tracking-specific exceptions."""


class TrackingError(Exception):
    """Base exception for tracking errors."""

    pass


class InvalidNonceError(TrackingError):
    """Raised when an async request carries a missing or expired nonce."""

    pass


class InvalidRequestPayloadError(TrackingError):
    """Raised when an async request body cannot be parsed."""

    pass
