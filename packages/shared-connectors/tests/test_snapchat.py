"""Tests for SnapchatConnector."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from adbridge.connectors.adapters.snapchat import SnapchatConnector
from adbridge.connectors.config import PartnerType
from adbridge.connectors.exceptions import ConfigurationMissingError
from adbridge.conversions.schema import ConversionEvent, EventKind, LineItem, UserContext

SNAP_SCRIPT = (
    "<script type='text/javascript'>(function(e,t,n){})"
    "(window,document,'https://sc-static.net/scevent.min.js');"
    "snaptr('init', 'snap-pixel-1', {'user_email': '__INSERT_USER_EMAIL__'});"
    "snaptr('track', 'PAGE_VIEW');</script>"
)


class TestSnapchatConnector:
    """Tests for SnapchatConnector."""

    def test_partner_type(self, snapchat_config) -> None:
        """Test connector has correct type."""
        connector = SnapchatConnector(snapchat_config)

        assert connector.partner_type == PartnerType.SNAPCHAT
        assert connector.requires_access_token
        assert connector.caches_pixel_script

    def test_requires_access_token(self, snapchat_config, purchase_event) -> None:
        """Test the access token is part of the configuration."""
        snapchat_config.conversion_access_token = ""
        connector = SnapchatConnector(snapchat_config)

        assert not connector.is_configured()
        with pytest.raises(ConfigurationMissingError):
            connector.conversions_request(purchase_event)

    def test_purchase_request(self, snapchat_config, purchase_event) -> None:
        """Test the Conversions API body of a purchase."""
        event = replace(
            purchase_event,
            user=UserContext(
                ip_address="203.0.113.7",
                user_agent="Mozilla/5.0",
                partner_ids={"sc_cookie1": "snap-cookie", "sc_click_id": "snap-click"},
                hashed={"em": "e" * 64},
            ),
        )

        request = SnapchatConnector(snapchat_config).conversions_request(event)

        assert request.path == "/conversions/v3/snap-pixel-1/events"
        assert request.params == {"access_token": "snap-token"}
        (payload,) = request.body["data"]
        assert payload["event_name"] == "PURCHASE"
        assert payload["event_id"] == "abc123"
        assert payload["integration"] == "woocommerce-v1"
        assert payload["action_source"] == "WEB"
        assert payload["event_source_url"] == purchase_event.source_url
        assert payload["user_data"] == {
            "client_ip_address": "203.0.113.7",
            "client_user_agent": "Mozilla/5.0",
            "sc_cookie1": "snap-cookie",
            "sc_click_id": "snap-click",
            "em": "e" * 64,
        }
        assert payload["custom_data"] == {
            "currency": "USD",
            "content_ids": ["7", "8"],
            "contents": [
                {"id": "7", "quantity": "2", "item_price": "12.50"},
                {"id": "8", "quantity": "1", "item_price": "6.00"},
            ],
            "num_items": "3",
            "value": 31.0,
            "order_id": "42",
        }

    def test_view_content_request(self, snapchat_config) -> None:
        """Test a product view carries content type but no value."""
        event = ConversionEvent(
            kind=EventKind.VIEW_CONTENT,
            correlation_id="evt-1",
            items=(LineItem(id="7", name="Coffee Mug", price=12.5),),
            item_count=1,
            content_type="product",
        )

        request = SnapchatConnector(snapchat_config).conversions_request(event)

        custom_data = request.body["data"][0]["custom_data"]
        assert request.body["data"][0]["event_name"] == "VIEW_CONTENT"
        assert custom_data["content_type"] == "product"
        assert "value" not in custom_data
        assert "order_id" not in custom_data

    def test_fetch_pixel_script(self, snapchat_config, make_proxy) -> None:
        """Test the snippet is read from the pixel endpoint."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"pixels": [{"pixel": {"pixel_javascript": SNAP_SCRIPT}}]}
            )

        proxy = make_proxy(snapchat_config, handler)

        script = SnapchatConnector(snapchat_config).fetch_pixel_script(proxy)

        assert script == SNAP_SCRIPT
        assert seen[0].url.path.endswith("/wc/snapchat/ads/v1/pixels/snap-pixel-1")

    def test_fetch_pixel_script_failure(self, snapchat_config, make_proxy) -> None:
        """Test proxy errors yield an empty snippet."""
        proxy = make_proxy(snapchat_config, lambda request: httpx.Response(500, json={}))

        assert SnapchatConnector(snapchat_config).fetch_pixel_script(proxy) == ""

    def test_fetch_pixel_script_unexpected_shape(self, snapchat_config, make_proxy) -> None:
        """Test a response without pixels yields an empty snippet."""
        proxy = make_proxy(snapchat_config, lambda request: httpx.Response(200, json={"pixels": []}))

        assert SnapchatConnector(snapchat_config).fetch_pixel_script(proxy) == ""

    def test_personalize_script(self, snapchat_config) -> None:
        """Test the page view call and email placeholder are stripped."""
        script = SnapchatConnector(snapchat_config).personalize_script(SNAP_SCRIPT)

        assert "snaptr('track', 'PAGE_VIEW');" not in script
        assert "__INSERT_USER_EMAIL__" not in script
        assert "https://sc-static.net/scevent.min.js" in script

    def test_purchase_pixel_payload(self, snapchat_config, sample_order) -> None:
        """Test the browser purchase call with and without PII."""
        connector = SnapchatConnector(snapchat_config)
        user = UserContext(ip_address="203.0.113.7", hashed={"em": "e" * 64})

        payload = connector.purchase_pixel_payload(sample_order, "abc123", user, False)

        assert payload == {
            "price": 31.0,
            "currency": "USD",
            "event_id": "abc123",
            "client_dedup_id": "abc123",
            "transaction_id": 42,
            "item_ids": ["7", "8"],
            "item_category": "Kitchen",
            "number_items": 3,
            "integration": "woocommerce-v1",
            "ip_address": "203.0.113.7",
        }

        with_pii = connector.purchase_pixel_payload(sample_order, "abc123", user, True)
        assert with_pii["em"] == "e" * 64
