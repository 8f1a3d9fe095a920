"""Wiring of the tracking components for one deployment."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

# Import adapters to register all partner connectors
import adbridge.connectors.adapters  # noqa: F401
from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.proxy import ConnectProxyClient
from adbridge.connectors.registry import get_registry
from adbridge.conversions.commerce import CommerceStore
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.consent import ConsentGate, ConsentProvider
from adbridge.tracking.delivery import DeliveryChannel
from adbridge.tracking.events import EventBus
from adbridge.tracking.logger import ConversionEventLogger
from adbridge.tracking.nonce import NonceManager
from adbridge.tracking.pixel import PixelInjector, ScriptCache
from adbridge.tracking.queue import InMemoryJobQueue, JobQueue
from adbridge.tracking.router import TrackingEventRouter
from adbridge.tracking.state import OptionStore, OrderStateStore
from adbridge.tracking.tracker import ConversionTracker

logger = logging.getLogger(__name__)


@dataclass
class TrackingService:
    """All tracking components of a deployment, registered on one bus."""

    config: TrackingConfig
    connector: BasePartnerConnector
    proxy: ConnectProxyClient
    bus: EventBus
    queue: JobQueue
    delivery: DeliveryChannel
    tracker: ConversionTracker
    pixel: PixelInjector
    router: TrackingEventRouter

    @classmethod
    def create(
        cls,
        config: TrackingConfig,
        store: CommerceStore,
        *,
        queue: JobQueue | None = None,
        bus: EventBus | None = None,
        consent_provider: ConsentProvider | None = None,
        token_provider: Callable[[], str | None] | None = None,
        proxy: ConnectProxyClient | None = None,
        options: OptionStore | None = None,
        script_cache: ScriptCache | None = None,
        event_logger: ConversionEventLogger | None = None,
    ) -> TrackingService:
        """Build and register the components for ``config.partner``.

        Raises:
            ValueError: If no connector is registered for the partner.
        """
        connector = get_registry().create(config.connector_config())
        proxy = proxy or ConnectProxyClient(connector.config, token_provider=token_provider)
        bus = bus or EventBus()
        queue = queue or InMemoryJobQueue()
        consent = ConsentGate(consent_provider)
        states = OrderStateStore(store, config.conversion_meta_key, config.pixel_meta_key)

        delivery = DeliveryChannel(config, connector, proxy, bus, event_logger)
        tracker = ConversionTracker(
            config,
            store,
            connector,
            delivery,
            queue,
            consent=consent,
            states=states,
            options=options,
        )
        pixel = PixelInjector(
            config,
            connector,
            store,
            consent=consent,
            states=states,
            proxy=proxy,
            cache=script_cache,
        )
        nonces = NonceManager(config.nonce_secret) if config.nonce_secret else None
        if nonces is None:
            logger.warning("No nonce secret configured, async tracking requests will be rejected")

        router = TrackingEventRouter(config, tracker, pixel, nonces)
        router.register(bus, queue)

        return cls(
            config=config,
            connector=connector,
            proxy=proxy,
            bus=bus,
            queue=queue,
            delivery=delivery,
            tracker=tracker,
            pixel=pixel,
            router=router,
        )

    def close(self) -> None:
        self.proxy.close()
