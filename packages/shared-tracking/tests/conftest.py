"""Pytest fixtures for shared-tracking tests."""

from __future__ import annotations

import json
from collections.abc import Generator
from typing import Any

import httpx
import pytest

from adbridge.connectors.config import PartnerType
from adbridge.connectors.proxy import ConnectProxyClient
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.nonce import NonceManager
from adbridge.tracking.queue import InMemoryJobQueue
from adbridge.tracking.service import TrackingService


class RecordingTransport:
    """httpx handler that records requests and replies with a fixed status."""

    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self.body = body if body is not None else {"success": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def json_bodies(self) -> list[Any]:
        return [json.loads(request.content) for request in self.requests if request.content]


@pytest.fixture
def tracking_config() -> TrackingConfig:
    """Reddit tracking configuration."""
    return TrackingConfig(
        partner=PartnerType.REDDIT,
        plugin_slug="reddit_for_woocommerce",
        pixel_id="t2_abc123",
        site_id="12345",
        nonce_secret="test-secret",
    )


@pytest.fixture
def snapchat_tracking_config() -> TrackingConfig:
    """Snapchat tracking configuration."""
    return TrackingConfig(
        partner=PartnerType.SNAPCHAT,
        plugin_slug="snapchat_for_woocommerce",
        pixel_id="snap-pixel-1",
        conversion_access_token="snap-token",
        site_id="12345",
        nonce_secret="test-secret",
    )


@pytest.fixture
def transport() -> RecordingTransport:
    """Connect Server stand-in answering 200."""
    return RecordingTransport()


@pytest.fixture
def make_service(commerce_store, transport) -> Generator[Any, None, None]:
    """Build a TrackingService against the recording transport."""
    services: list[TrackingService] = []

    def factory(config: TrackingConfig, consent: bool | None = None, **kwargs: Any) -> TrackingService:
        proxy = ConnectProxyClient(
            config.connector_config(),
            token_provider=lambda: "X_JP_Auth token",
            client=httpx.Client(transport=httpx.MockTransport(transport)),
        )
        consent_provider = None if consent is None else (lambda: consent)
        service = TrackingService.create(
            config,
            commerce_store,
            queue=kwargs.pop("queue", InMemoryJobQueue()),
            consent_provider=consent_provider,
            proxy=proxy,
            **kwargs,
        )
        services.append(service)
        return service

    yield factory

    for service in services:
        service.close()


@pytest.fixture
def service(make_service, tracking_config) -> TrackingService:
    """Reddit tracking service with consent granted."""
    return make_service(tracking_config, consent=True)


@pytest.fixture
def nonces(tracking_config) -> NonceManager:
    """Nonce manager sharing the configured secret."""
    return NonceManager(tracking_config.nonce_secret)


@pytest.fixture
def make_transport():
    """Factory for recording transports with a chosen reply."""
    return RecordingTransport
