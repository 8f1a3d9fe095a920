"""Delivery outcome logging for conversion events."""

from __future__ import annotations

import logging
from typing import Any

from adbridge.conversions.schema import Criticality

# Logger method used when a delivery fails, per event criticality
FAILURE_METHODS = {
    Criticality.CRITICAL: "critical",
    Criticality.HIGH: "warning",
    Criticality.LOW: "info",
}

DEFAULT_LOGGER_NAME = "adbridge.tracking.conversions"


def sanitize_error_body(value: Any) -> Any:
    """Replace double quotes inside string values with single quotes.

    Works recursively through dicts and lists so partner error bodies can be
    embedded in log lines without breaking their quoting.
    """
    if isinstance(value, str):
        return value.replace('"', "'")
    if isinstance(value, dict):
        return {key: sanitize_error_body(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_error_body(item) for item in value]
    return value


class ConversionEventLogger:
    """Records the outcome of each Conversions API call.

    Success is logged at ``info``. Failures are logged at a severity derived
    from the event's criticality. If the wrapped logger lacks the chosen
    method the message is still logged at ``info`` with a ``[Fallback]``
    prefix.

    Example:
        event_logger = ConversionEventLogger()
        event_logger.log("PURCHASE", Criticality.CRITICAL, 500, {"order_id": 42})
    """

    def __init__(self, logger: Any = None):
        self.logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)

    @staticmethod
    def method_for(criticality: Criticality | None, success: bool) -> str:
        if success:
            return "info"
        return FAILURE_METHODS.get(criticality, "info")

    def log(
        self,
        event_name: str,
        criticality: Criticality | None,
        status_code: int | None,
        context: dict[str, Any] | None = None,
        success: bool | None = None,
    ) -> None:
        """Log one delivery outcome.

        Args:
            event_name: Partner name of the event.
            criticality: Criticality of the event kind.
            status_code: HTTP status, or None when no response was received.
            context: Extra details (order id, error body...).
            success: Outcome; derived from ``status_code`` when omitted.
        """
        if success is None:
            success = status_code is not None and 200 <= status_code < 300

        outcome = "succeeded" if success else "failed"
        message = (
            f'Conversion event "{event_name}" {outcome} '
            f"with status code {status_code if status_code is not None else 0}."
        )
        extra = {"context": sanitize_error_body(context or {})}

        method_name = self.method_for(criticality, success)
        method = getattr(self.logger, method_name, None)
        if not callable(method):
            self.logger.info(f"[Fallback] {message}", extra=extra)
            return
        method(message, extra=extra)
