"""Pytest fixtures for shared-connectors tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.config import ConnectorConfig, ConversionsRequest, PartnerType
from adbridge.connectors.proxy import ConnectProxyClient
from adbridge.connectors.registry import ConnectorRegistry
from adbridge.conversions.schema import ConversionEvent, EventKind, LineItem, UserContext


class MockConnector(BasePartnerConnector):
    """Mock connector for testing."""

    partner_type = PartnerType.REDDIT
    event_names = {EventKind.PURCHASE: "Purchase", EventKind.PAGE_VIEW: "PageView"}
    pixel_function = "mockpx"
    pixel_loader_url = "https://pixel.example.com/loader.js"

    def conversions_request(self, event: ConversionEvent) -> ConversionsRequest:
        self.ensure_configured()
        return ConversionsRequest(
            path="/events",
            body={"name": self.event_name(event.kind), "id": event.correlation_id},
        )

    def fetch_pixel_script(self, proxy: ConnectProxyClient | None) -> str:
        return f'<script src="{self.pixel_loader_url}"></script>'

    def purchase_pixel_payload(self, order, correlation_id, user, collect_pii) -> dict[str, Any]:
        return {"value": order.total, "id": correlation_id}


@pytest.fixture
def reddit_config() -> ConnectorConfig:
    """Reddit connector configuration."""
    return ConnectorConfig(
        partner_type=PartnerType.REDDIT,
        pixel_id="t2_abc123",
        site_id="12345",
    )


@pytest.fixture
def snapchat_config() -> ConnectorConfig:
    """Snapchat connector configuration."""
    return ConnectorConfig(
        partner_type=PartnerType.SNAPCHAT,
        pixel_id="snap-pixel-1",
        conversion_access_token="snap-token",
        site_id="12345",
    )


@pytest.fixture
def mock_connector(reddit_config: ConnectorConfig) -> MockConnector:
    """Create a mock connector instance."""
    return MockConnector(reddit_config)


@pytest.fixture
def purchase_event() -> ConversionEvent:
    """Purchase of order #42."""
    return ConversionEvent(
        kind=EventKind.PURCHASE,
        correlation_id="abc123",
        user=UserContext(
            ip_address="203.0.113.7",
            user_agent="Mozilla/5.0",
            partner_ids={"uuid": "rdt-uuid", "click_id": "rdt-click"},
        ),
        event_time=1736937000000,
        source_url="https://shop.example.com/checkout/order-received/42/",
        currency="USD",
        value=31.0,
        items=(
            LineItem(id="7", name="Coffee Mug", quantity=2, price=12.5),
            LineItem(id="8", name="Tea Towel", quantity=1, price=6.0),
        ),
        item_count=3,
        order_id="42",
    )


@pytest.fixture
def make_proxy() -> Generator[Callable[..., ConnectProxyClient], None, None]:
    """Build proxy clients backed by an httpx.MockTransport."""
    clients: list[ConnectProxyClient] = []

    def factory(
        config: ConnectorConfig,
        handler: Callable[[httpx.Request], httpx.Response],
        token: str | None = "X_JP_Auth token",
    ) -> ConnectProxyClient:
        proxy = ConnectProxyClient(
            config,
            token_provider=lambda: token,
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        clients.append(proxy)
        return proxy

    yield factory

    for proxy in clients:
        proxy.close()


@pytest.fixture
def fresh_registry() -> Generator[ConnectorRegistry, None, None]:
    """Create a fresh registry instance for testing.

    Resets the singleton after the test.
    """
    saved = ConnectorRegistry._instance
    ConnectorRegistry._instance = None
    registry = ConnectorRegistry()
    yield registry
    ConnectorRegistry._instance = saved
