"""Conversion tracker - orchestrates server-side conversion events.

For every commerce event the tracker runs the same pipeline:

    consent check -> correlation id -> build payload -> idempotency check
    -> dispatch (queued or immediate) -> DeliveryChannel

Critical and High events (Purchase, AddToCart, StartCheckout) are handed
to the durable job queue so delivery survives the end of the request. Low
events (ViewContent, PageView) are sent immediately to keep the job table
small on busy storefronts.
"""

from __future__ import annotations

import logging
from typing import Any

from adbridge.connectors.base import BasePartnerConnector
from adbridge.conversions.builders import event_time_ms, get_builder
from adbridge.conversions.commerce import Cart, CommerceStore
from adbridge.conversions.context import RequestContext
from adbridge.conversions.event_ids import EventIdRegistry
from adbridge.conversions.exceptions import PayloadBuildError
from adbridge.conversions.identity import UserIdentifier
from adbridge.conversions.schema import (
    ConversionEvent,
    DeliveryOutcome,
    EventKind,
    UserContext,
)
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.consent import ConsentGate
from adbridge.tracking.delivery import DeliveryChannel
from adbridge.tracking.queue import JobQueue
from adbridge.tracking.state import (
    InMemoryOptionStore,
    OptionStore,
    OrderStateStore,
    OrderTrackingState,
)

logger = logging.getLogger(__name__)

TEST_PURCHASE_OPTION = "test_purchase_tracked"


class ConversionTracker:
    """Builds and dispatches server-side conversion events.

    Example:
        tracker = ConversionTracker(config, store, connector, channel, queue)
        tracker.track_purchase(42, request)
        tracker.track_view_content(7, correlation_id=event_id, request=request)
    """

    def __init__(
        self,
        config: TrackingConfig,
        store: CommerceStore,
        connector: BasePartnerConnector,
        delivery: DeliveryChannel,
        queue: JobQueue,
        consent: ConsentGate | None = None,
        states: OrderStateStore | None = None,
        options: OptionStore | None = None,
        identifier: UserIdentifier | None = None,
        event_ids: EventIdRegistry | None = None,
    ):
        self.config = config
        self.store = store
        self.connector = connector
        self.delivery = delivery
        self.queue = queue
        self.consent = consent or ConsentGate()
        self.states = states or OrderStateStore(
            store, config.conversion_meta_key, config.pixel_meta_key
        )
        self.options = options or InMemoryOptionStore()
        self.identifier = identifier or UserIdentifier(connector.user_cookies)
        self.event_ids = event_ids or EventIdRegistry()

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def track_purchase(self, order_id: int, request: RequestContext | None = None) -> bool:
        """Queue the Purchase event of an order, at most once.

        The order moves ``Untracked -> Queued`` atomically before the job is
        enqueued, so a reloaded confirmation page or a concurrent request
        finds it Queued and skips.

        Returns:
            True if a job was enqueued.
        """
        if not self._can_track(EventKind.PURCHASE):
            return False

        state = self.states.get(order_id)
        if state is not OrderTrackingState.UNTRACKED:
            logger.debug(f"Purchase of order {order_id} already {state.value}")
            return False

        if not self.consent.has_marketing_consent():
            logger.debug(f"No marketing consent, purchase of order {order_id} not tracked")
            return False

        order = self.store.get_order(order_id)
        try:
            correlation_id = self.event_ids.correlation_id_for(EventKind.PURCHASE, order)
            user = self._user_for(request)
            if self.config.collect_pii and order is not None:
                user = self.identifier.with_billing(user, order.billing)
            event = get_builder(EventKind.PURCHASE, self.store, self.config.currency).build(
                order_id, correlation_id=correlation_id, user=user
            )
        except PayloadBuildError as e:
            logger.warning(f"Skipping purchase of order {order_id}: {e}")
            return False

        if not self.states.mark_queued(order_id):
            logger.debug(f"Purchase of order {order_id} claimed by another request")
            return False

        try:
            self._enqueue(event, {"order_id": order_id})
        except Exception:
            logger.exception(f"Failed to enqueue purchase of order {order_id}")
            self.states.revert_queued(order_id)
            return False
        return True

    def track_add_to_cart(
        self,
        product_id: int,
        quantity: int = 1,
        correlation_id: str | None = None,
        request: RequestContext | None = None,
        source_url: str = "",
    ) -> bool:
        return self._track(
            EventKind.ADD_TO_CART,
            (product_id, quantity),
            correlation_id,
            request,
            source_url,
        )

    def track_start_checkout(
        self,
        cart: Cart | None,
        correlation_id: str | None = None,
        request: RequestContext | None = None,
        source_url: str = "",
    ) -> bool:
        return self._track(EventKind.START_CHECKOUT, cart, correlation_id, request, source_url)

    def track_view_content(
        self,
        product_id: int,
        correlation_id: str | None = None,
        request: RequestContext | None = None,
        source_url: str = "",
    ) -> bool:
        return self._track(
            EventKind.VIEW_CONTENT, product_id, correlation_id, request, source_url
        )

    def track_page_view(
        self,
        correlation_id: str | None = None,
        request: RequestContext | None = None,
        source_url: str = "",
    ) -> bool:
        return self._track(EventKind.PAGE_VIEW, None, correlation_id, request, source_url)

    def track_test_purchase(self, request: RequestContext | None = None) -> DeliveryOutcome | None:
        """Send one Purchase right after the ad account is connected.

        Uses the latest paid order, or sample data with a random id when the
        store has none. Sent at most once per installation.
        """
        if self.options.get(TEST_PURCHASE_OPTION):
            return None
        if not self.connector.is_configured():
            logger.debug("Test purchase skipped: tracking is not configured")
            return None

        user = self._user_for(request)
        order = self.store.latest_paid_order()
        if order is not None:
            try:
                event = get_builder(EventKind.PURCHASE, self.store, self.config.currency).build(
                    order.id,
                    correlation_id=self.event_ids.purchase_id(order),
                    user=user,
                )
            except PayloadBuildError as e:
                logger.warning(f"Test purchase skipped: {e}")
                return None
        else:
            event = ConversionEvent(
                kind=EventKind.PURCHASE,
                correlation_id=self.event_ids.new_action_id(),
                user=user,
                event_time=event_time_ms(),
                currency=self.config.currency,
            )

        if not self.options.add(TEST_PURCHASE_OPTION, True):
            logger.debug("Test purchase already claimed by another request")
            return None
        return self.delivery.send(event, {"event": EventKind.PURCHASE.value})

    # ------------------------------------------------------------------
    # Job handlers and notification listeners
    # ------------------------------------------------------------------

    def handle_send_job(self, payload: dict[str, Any]) -> DeliveryOutcome | None:
        """Run a queued delivery."""
        try:
            event = ConversionEvent.from_dict(payload.get("event") or {})
        except ValueError as e:
            logger.error(f"Dropping malformed conversion job: {e}")
            return None

        args = payload.get("args") or {}
        order_id = args.get("order_id")
        if order_id and self.states.get(int(order_id)) is OrderTrackingState.TRACKED:
            logger.debug(f"Order {order_id} already tracked, skipping repeated delivery")
            return None
        return self.delivery.send(event, args)

    def mark_as_tracked(
        self,
        event: ConversionEvent,
        args: dict[str, Any],
        outcome: DeliveryOutcome | None = None,
    ) -> None:
        """Mark the order of a sent Purchase as Tracked, whatever the outcome."""
        order_id = args.get("order_id")
        if not order_id or event.kind is not EventKind.PURCHASE:
            return
        self.states.mark_tracked(int(order_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _can_track(self, kind: EventKind) -> bool:
        if not self.config.is_conversions_enabled():
            return False
        if not self.connector.is_configured():
            logger.debug(f"{kind.value} not tracked: conversions are not configured")
            return False
        if not self.connector.supports(kind):
            logger.debug(f"{kind.value} not supported by {self.connector.partner_type.value}")
            return False
        return True

    def _track(
        self,
        kind: EventKind,
        domain_input: Any,
        correlation_id: str | None,
        request: RequestContext | None,
        source_url: str,
    ) -> bool:
        if not self._can_track(kind):
            return False
        if not self.consent.has_marketing_consent():
            logger.debug(f"No marketing consent, {kind.value} not tracked")
            return False

        try:
            event = get_builder(kind, self.store, self.config.currency).build(
                domain_input,
                correlation_id=self.event_ids.correlation_id_for(kind, supplied=correlation_id),
                user=self._user_for(request),
                source_url=source_url,
            )
        except PayloadBuildError as e:
            logger.debug(f"Skipping {kind.value}: {e}")
            return False

        self.dispatch(event)
        return True

    def dispatch(self, event: ConversionEvent, extra_args: dict[str, Any] | None = None) -> None:
        """Queue Critical/High events, send Low events immediately."""
        if event.criticality.is_queued:
            try:
                self._enqueue(event, extra_args or {})
            except Exception:
                logger.exception(f"Failed to enqueue {event.kind.value} event")
        else:
            self.delivery.send(event, {"event": event.kind.value, **(extra_args or {})})

    def _enqueue(self, event: ConversionEvent, args: dict[str, Any]) -> None:
        self.queue.enqueue(
            self.config.send_job_type,
            {"event": event.to_dict(), "args": {"event": event.kind.value, **args}},
        )

    def _user_for(self, request: RequestContext | None) -> UserContext:
        return self.identifier.from_request(request)
