"""Snapchat Ads connector."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.config import ConnectorConfig, ConversionsRequest, PartnerType
from adbridge.connectors.exceptions import ConnectorError
from adbridge.connectors.registry import get_registry
from adbridge.conversions.schema import ConversionEvent, EventKind

if TYPE_CHECKING:
    from adbridge.connectors.proxy import ConnectProxyClient
    from adbridge.conversions.commerce import Order
    from adbridge.conversions.schema import UserContext

logger = logging.getLogger(__name__)

INTEGRATION = "woocommerce-v1"
ACTION_SOURCE = "WEB"


def _money(value: float) -> str:
    return f"{value:.2f}"


class SnapchatConnector(BasePartnerConnector):
    """Connector for the Snap Pixel and Conversions API v3.

    Conversions are posted to ``/conversions/v3/{pixel_id}/events`` with the
    access token as a query parameter. The pixel snippet is fetched through
    the proxy and cached; a cached snippet is used only while it still
    references the Snap loader script.

    Required settings:
        - pixel_id
        - conversion_access_token
    """

    partner_type = PartnerType.SNAPCHAT
    event_names = {
        EventKind.PURCHASE: "PURCHASE",
        EventKind.ADD_TO_CART: "ADD_CART",
        EventKind.START_CHECKOUT: "START_CHECKOUT",
        EventKind.VIEW_CONTENT: "VIEW_CONTENT",
        EventKind.PAGE_VIEW: "PAGE_VIEW",
    }
    pixel_function = "snaptr"
    pixel_loader_url = "https://sc-static.net/scevent.min.js"
    user_cookies = {"_scid": "sc_cookie1", "ScCid": "sc_click_id"}
    requires_access_token = True
    caches_pixel_script = True

    def __init__(self, config: ConnectorConfig):
        """Initialize Snapchat connector."""
        super().__init__(config)

    def conversions_request(self, event: ConversionEvent) -> ConversionsRequest:
        self.ensure_configured()

        custom_data: dict[str, Any] = {"currency": event.currency}
        if event.items:
            custom_data["content_ids"] = event.item_ids
            custom_data["contents"] = [
                {
                    "id": item.id,
                    "quantity": str(item.quantity),
                    "item_price": _money(item.price),
                }
                for item in event.items
            ]
        if event.kind in (EventKind.START_CHECKOUT, EventKind.PURCHASE):
            custom_data["num_items"] = str(event.item_count)
            custom_data["value"] = event.value
        if event.order_id:
            custom_data["order_id"] = event.order_id
        if event.content_type:
            custom_data["content_type"] = event.content_type

        payload_event = {
            "event_name": self.event_name(event.kind),
            "event_time": event.event_time,
            "integration": INTEGRATION,
            "event_source_url": event.source_url,
            "action_source": ACTION_SOURCE,
            "event_id": event.correlation_id,
            "user_data": self._user_data(event.user),
            "custom_data": custom_data,
        }

        path = f"/conversions/v3/{quote(self.config.pixel_id, safe='')}/events"
        return ConversionsRequest(
            path=path,
            body={"data": [payload_event]},
            params={"access_token": self.config.conversion_access_token},
        )

    @staticmethod
    def _user_data(user: UserContext) -> dict[str, str]:
        data = {
            "client_ip_address": user.ip_address,
            "client_user_agent": user.user_agent,
            **user.partner_ids,
            **user.hashed,
        }
        return {key: value for key, value in data.items() if value}

    def fetch_pixel_script(self, proxy: ConnectProxyClient | None) -> str:
        """Fetch the pixel snippet for the configured pixel.

        Proxy failures are logged and yield an empty string.
        """
        if not self.config.pixel_id or proxy is None:
            return ""

        path = f"/ads/v1/pixels/{quote(self.config.pixel_id, safe='')}"
        try:
            response = proxy.proxy_get(path)
        except ConnectorError as e:
            logger.warning(f"Failed to fetch Snap pixel script: {e}")
            return ""

        data = response.data or {}
        try:
            return data["pixels"][0]["pixel"]["pixel_javascript"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning("Snap pixel response did not contain a script")
            return ""

    def purchase_pixel_payload(
        self,
        order: Order,
        correlation_id: str,
        user: UserContext | None,
        collect_pii: bool,
    ) -> dict[str, Any]:
        categories: list[str] = []
        for item in order.items:
            for category in item.categories:
                if category not in categories:
                    categories.append(category)

        payload: dict[str, Any] = {
            "price": order.total,
            "currency": order.currency,
            "event_id": correlation_id,
            "client_dedup_id": correlation_id,
            "transaction_id": order.id,
            "item_ids": [str(item.product_id) for item in order.items],
            "item_category": ", ".join(categories),
            "number_items": order.item_count,
            "integration": INTEGRATION,
        }
        if user is not None and user.ip_address:
            payload["ip_address"] = user.ip_address
        if collect_pii and user is not None:
            payload.update(user.hashed)
        return payload


# Auto-register connector
get_registry().register(PartnerType.SNAPCHAT, SnapchatConnector)
