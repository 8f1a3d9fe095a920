"""Delivery of conversion events to the partner's Conversions API."""

from __future__ import annotations

import logging
from typing import Any

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.exceptions import ConnectorError, ProxyRequestError
from adbridge.connectors.proxy import ConnectProxyClient
from adbridge.conversions.schema import ConversionEvent, DeliveryOutcome
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.events import EventBus
from adbridge.tracking.logger import ConversionEventLogger

logger = logging.getLogger(__name__)


class DeliveryChannel:
    """Sends one event through the Connect Server proxy.

    ``send`` never raises: transport errors and non-2xx responses come back
    as a failed DeliveryOutcome. Every attempt, successful or not, is
    followed by the ``<slug>_conversion_sent`` notification carrying the
    event, the caller's arguments and the outcome.

    Example:
        channel = DeliveryChannel(config, connector, proxy, bus)
        outcome = channel.send(event, {"order_id": 42})
    """

    def __init__(
        self,
        config: TrackingConfig,
        connector: BasePartnerConnector,
        proxy: ConnectProxyClient,
        bus: EventBus,
        event_logger: ConversionEventLogger | None = None,
    ):
        self.config = config
        self.connector = connector
        self.proxy = proxy
        self.bus = bus
        self.event_logger = event_logger or ConversionEventLogger()

    def send(
        self,
        event: ConversionEvent,
        extra_args: dict[str, Any] | None = None,
    ) -> DeliveryOutcome:
        extra_args = dict(extra_args or {})
        outcome = self._deliver(event)

        if self.config.logging_enabled:
            self._log(event, outcome, extra_args)

        self.bus.publish(self.config.conversion_sent_event, event, extra_args, outcome)
        return outcome

    def _deliver(self, event: ConversionEvent) -> DeliveryOutcome:
        try:
            request = self.connector.conversions_request(event)
        except (ConnectorError, KeyError) as e:
            return DeliveryOutcome.failed(None, f"Cannot encode event: {e}")

        try:
            response = self.proxy.proxy_post(
                request.path,
                request.body,
                params=request.params or None,
            )
        except ProxyRequestError as e:
            return DeliveryOutcome.failed(e.status_code, str(e), e.body)
        except ConnectorError as e:
            return DeliveryOutcome.failed(None, str(e))
        except Exception as e:
            logger.exception("Unexpected error delivering conversion event")
            return DeliveryOutcome.failed(None, str(e))

        return DeliveryOutcome.succeeded(response.status_code)

    def _log(
        self,
        event: ConversionEvent,
        outcome: DeliveryOutcome,
        extra_args: dict[str, Any],
    ) -> None:
        context: dict[str, Any] = {
            "event_id": event.correlation_id,
            **extra_args,
        }
        if not outcome.success:
            context["error"] = outcome.error
            if outcome.error_body is not None:
                context["error_body"] = outcome.error_body

        event_name = self.connector.event_names.get(event.kind, event.kind.value)
        self.event_logger.log(
            event_name,
            event.criticality,
            outcome.status_code,
            context,
            success=outcome.success,
        )
