"""AdBridge conversion tracking.

Dual-channel tracking of commerce events: every event is reported from
the browser (pixel) and from the server (Conversions API) with a shared
correlation id so the ad platform can deduplicate them.

Example:
    from adbridge.tracking import TrackingConfig, TrackingService
    from adbridge.tracking.router import HOOK_ORDER_COMPLETED

    config = TrackingConfig.from_env()
    service = TrackingService.create(config, store, token_provider=get_token)

    service.bus.publish(HOOK_ORDER_COMPLETED, order_id, request)
    service.queue.run_pending()
"""

from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.consent import ConsentGate
from adbridge.tracking.delivery import DeliveryChannel
from adbridge.tracking.events import EventBus
from adbridge.tracking.exceptions import (
    InvalidNonceError,
    InvalidRequestPayloadError,
    TrackingError,
)
from adbridge.tracking.logger import ConversionEventLogger, sanitize_error_body
from adbridge.tracking.nonce import NonceManager
from adbridge.tracking.pixel import InMemoryScriptCache, PixelInjector, ScriptCache
from adbridge.tracking.queue import InMemoryJobQueue, JobQueue
from adbridge.tracking.router import AsyncEventRequest, TrackingEventRouter
from adbridge.tracking.service import TrackingService
from adbridge.tracking.state import (
    InMemoryOptionStore,
    OptionStore,
    OrderStateStore,
    OrderTrackingState,
)
from adbridge.tracking.tracker import ConversionTracker

__all__ = [
    # Config
    "TrackingConfig",
    # Components
    "ConsentGate",
    "ConversionEventLogger",
    "ConversionTracker",
    "DeliveryChannel",
    "EventBus",
    "NonceManager",
    "PixelInjector",
    "TrackingEventRouter",
    "TrackingService",
    # Requests
    "AsyncEventRequest",
    # Storage
    "InMemoryJobQueue",
    "InMemoryOptionStore",
    "InMemoryScriptCache",
    "JobQueue",
    "OptionStore",
    "OrderStateStore",
    "OrderTrackingState",
    "ScriptCache",
    # Exceptions
    "InvalidNonceError",
    "InvalidRequestPayloadError",
    "TrackingError",
    # Helpers
    "sanitize_error_body",
]
