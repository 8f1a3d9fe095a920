"""Reddit Ads connector."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.config import ConnectorConfig, ConversionsRequest, PartnerType
from adbridge.connectors.registry import get_registry
from adbridge.conversions.schema import ConversionEvent, EventKind

if TYPE_CHECKING:
    from adbridge.connectors.proxy import ConnectProxyClient
    from adbridge.conversions.commerce import Order
    from adbridge.conversions.schema import UserContext

logger = logging.getLogger(__name__)

PARTNER = "WOOCOMMERCE"
ACTION_SOURCE = "WEBSITE"


class RedditConnector(BasePartnerConnector):
    """Connector for the Reddit Pixel and Conversions API.

    Conversions are posted to ``/ads/pixels/{pixel_id}/conversion_events``
    as a batch with a single event. The pixel snippet is rendered locally
    from a template; no remote fetch is needed.

    Example:
        config = ConnectorConfig(
            partner_type=PartnerType.REDDIT,
            pixel_id="t2_abc123",
            site_id="12345",
        )
        connector = RedditConnector(config)
        request = connector.conversions_request(event)
    """

    partner_type = PartnerType.REDDIT
    event_names = {
        EventKind.PURCHASE: "PURCHASE",
        EventKind.ADD_TO_CART: "ADD_TO_CART",
        EventKind.VIEW_CONTENT: "VIEW_CONTENT",
        EventKind.PAGE_VIEW: "PAGE_VISIT",
    }
    pixel_function = "rdt"
    pixel_loader_url = "https://www.redditstatic.com/ads/pixel.js"
    user_cookies = {"_rdt_uuid": "uuid", "rdtCid": "click_id"}

    def __init__(self, config: ConnectorConfig):
        """Initialize Reddit connector."""
        super().__init__(config)

    def conversions_request(self, event: ConversionEvent) -> ConversionsRequest:
        self.ensure_configured()

        metadata: dict[str, Any] = {"conversion_id": event.correlation_id}
        if event.kind is not EventKind.PAGE_VIEW:
            metadata.update(
                {
                    "currency": event.currency,
                    "value": event.value,
                    "item_count": event.item_count,
                    "products": [{"id": item.id, "name": item.name} for item in event.items],
                }
            )

        payload_event: dict[str, Any] = {
            "event_at": event.event_time,
            "action_source": ACTION_SOURCE,
            "type": {"tracking_type": self.event_name(event.kind)},
            "metadata": metadata,
        }

        click_id = event.user.partner_ids.get("click_id")
        if click_id:
            payload_event["click_id"] = click_id

        user = self._user_fields(event.user)
        if user:
            payload_event["user"] = user

        path = f"/ads/pixels/{quote(self.config.pixel_id, safe='')}/conversion_events"
        body = {"data": {"partner": PARTNER, "events": [payload_event]}}
        return ConversionsRequest(path=path, body=body)

    @staticmethod
    def _user_fields(user: UserContext) -> dict[str, str]:
        fields = {
            "ip_address": user.ip_address,
            "user_agent": user.user_agent,
            "uuid": user.partner_ids.get("uuid", ""),
            "email": user.hashed.get("em", ""),
            "phone_number": user.hashed.get("ph", ""),
        }
        return {key: value for key, value in fields.items() if value}

    def fetch_pixel_script(self, proxy: ConnectProxyClient | None) -> str:
        if not self.config.pixel_id:
            return ""
        template = self.env.get_template("reddit_pixel.html.j2")
        return template.render(
            pixel_id=self.config.pixel_id,
            loader_url=self.pixel_loader_url,
        )

    def purchase_pixel_payload(
        self,
        order: Order,
        correlation_id: str,
        user: UserContext | None,
        collect_pii: bool,
    ) -> dict[str, Any]:
        return {
            "value": order.total,
            "currency": order.currency,
            "conversionId": correlation_id,
            "products": [{"id": item.product_id, "name": item.name} for item in order.items],
            "itemCount": order.item_count,
        }


# Auto-register connector
get_registry().register(PartnerType.REDDIT, RedditConnector)
