"""
Routes commerce lifecycle hooks to the conversion tracker and pixel.

A single shopper action can reach the server twice: a classic form submit
runs the add-to-cart hook synchronously, and the storefront's AJAX/REST
call reaches the async endpoint. The router attributes each action to
exactly one path: when the current request is asynchronous the
synchronous hook handler steps aside and the async endpoint tracks it.

No handler lets an exception escape into the commerce code path.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adbridge.conversions.context import PageContext, PageType, RequestContext
from adbridge.conversions.schema import EventKind
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.events import EventBus
from adbridge.tracking.exceptions import InvalidRequestPayloadError, TrackingError
from adbridge.tracking.nonce import NONCE_ACTION, NONCE_FIELD, NonceManager
from adbridge.tracking.pixel import PixelInjector
from adbridge.tracking.queue import JobQueue
from adbridge.tracking.tracker import ConversionTracker

logger = logging.getLogger(__name__)

# Commerce lifecycle hooks published by the storefront
HOOK_ORDER_COMPLETED = "order_completed"
HOOK_ADD_TO_CART = "add_to_cart"
HOOK_CHECKOUT_REACHED = "checkout_reached"
HOOK_RENDER_HEAD = "render_head"
HOOK_RENDER_FOOTER = "render_footer"
HOOK_ADD_TO_CART_FORM = "add_to_cart_form"


class AsyncEventRequest(BaseModel):
    """Body of an async tracking call: ``{"payload": {...}}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: int | None = Field(default=None, alias="productId")
    quantity: int = 1
    conversion_id: str | None = Field(default=None, alias="conversionId")
    products: dict[str, Any] | None = None
    source_url: str = Field(default="", alias="sourceUrl")

    @property
    def resolved_product_id(self) -> int | None:
        if self.product_id is not None:
            return self.product_id
        if self.products and self.products.get("id") is not None:
            try:
                return int(self.products["id"])
            except (TypeError, ValueError):
                return None
        return None

    @classmethod
    def from_request(cls, request: RequestContext) -> AsyncEventRequest:
        """Parse the ``payload`` form field.

        Raises:
            InvalidRequestPayloadError: If the payload is missing or malformed.
        """
        raw = request.form.get("payload")
        if raw is None:
            raise InvalidRequestPayloadError("Missing payload")
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise InvalidRequestPayloadError(f"Payload is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise InvalidRequestPayloadError("Payload must be an object")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise InvalidRequestPayloadError(str(e)) from e


class TrackingEventRouter:
    """Binds commerce hooks and the async endpoint to tracking components.

    Example:
        router = TrackingEventRouter(config, tracker, pixel, nonces)
        router.register(bus, queue)

        bus.publish(HOOK_ORDER_COMPLETED, 42, request)
        router.handle_async_event("add_to_cart", request)
    """

    def __init__(
        self,
        config: TrackingConfig,
        tracker: ConversionTracker,
        pixel: PixelInjector | None = None,
        nonces: NonceManager | None = None,
    ):
        self.config = config
        self.tracker = tracker
        self.pixel = pixel
        self.nonces = nonces

    def register(self, bus: EventBus, queue: JobQueue | None = None) -> None:
        """Subscribe handlers to ``bus`` according to the enabled channels."""
        if self.config.is_conversions_enabled():
            bus.subscribe(HOOK_ORDER_COMPLETED, self.handle_purchase)
            bus.subscribe(HOOK_ADD_TO_CART, self.handle_add_to_cart)
            bus.subscribe(HOOK_CHECKOUT_REACHED, self.handle_start_checkout)
            bus.subscribe(self.config.conversion_sent_event, self.tracker.mark_as_tracked)
            bus.subscribe(
                self.config.with_prefix("ad_account_connected"),
                self.tracker.track_test_purchase,
            )
            if queue is not None and hasattr(queue, "register"):
                queue.register(self.config.send_job_type, self.tracker.handle_send_job)

        if self.config.is_pixel_enabled() and self.pixel is not None:
            bus.subscribe(HOOK_RENDER_HEAD, self.pixel.maybe_inject)
            bus.subscribe(HOOK_RENDER_FOOTER, self.render_footer, priority=20)
            bus.subscribe(HOOK_ADD_TO_CART_FORM, self.pixel.render_event_id_field)

    # ------------------------------------------------------------------
    # Synchronous hooks
    # ------------------------------------------------------------------

    def handle_purchase(self, order_id: int, request: RequestContext | None = None) -> bool:
        try:
            return self.tracker.track_purchase(int(order_id), request)
        except Exception:
            logger.exception(f"Purchase tracking failed for order {order_id}")
            return False

    def handle_add_to_cart(
        self,
        product_id: int,
        quantity: int = 1,
        variation_id: int | None = None,
        request: RequestContext | None = None,
    ) -> bool:
        """Track a form-submitted add to cart.

        Skipped for async requests; the async endpoint reports those.
        """
        if request is not None and request.is_async:
            logger.debug("Add to cart from an async request, deferring to async handler")
            return False

        event_id = None
        if request is not None:
            event_id = request.form.get(self.config.event_id_field)
        try:
            return self.tracker.track_add_to_cart(
                variation_id or product_id,
                quantity,
                correlation_id=event_id,
                request=request,
            )
        except Exception:
            logger.exception(f"Add to cart tracking failed for product {product_id}")
            return False

    def handle_start_checkout(
        self,
        page: PageContext,
        request: RequestContext | None = None,
    ) -> bool:
        """Track a checkout start and share its id with the pixel block."""
        if page.page_type is not PageType.CHECKOUT or page.cart is None or page.cart.is_empty:
            return False
        try:
            event_id = page.event_ids.setdefault(
                EventKind.START_CHECKOUT, self.tracker.event_ids.new_action_id()
            )
            return self.tracker.track_start_checkout(
                page.cart, correlation_id=event_id, request=request
            )
        except Exception:
            logger.exception("Start checkout tracking failed")
            return False

    def render_footer(self, page: PageContext, request: RequestContext | None = None) -> str:
        if self.pixel is None:
            return ""
        try:
            return self.pixel.populate_tracking_data(page) + self.pixel.render_purchase_event(
                page, request
            )
        except Exception:
            logger.exception("Rendering pixel tracking data failed")
            return ""

    # ------------------------------------------------------------------
    # Async endpoint
    # ------------------------------------------------------------------

    def handle_async_event(self, kind: EventKind | str, request: RequestContext) -> dict[str, bool]:
        """Handle an AJAX/REST tracking call.

        Returns:
            ``{"success": bool}``
        """
        try:
            kind = EventKind(kind)
            self._check_nonce(request)
            body = AsyncEventRequest.from_request(request)
            success = self._track_async(kind, body, request)
        except (TrackingError, ValueError) as e:
            logger.debug(f"Rejected async {kind} request: {e}")
            return {"success": False}
        except Exception:
            logger.exception(f"Async {kind} tracking failed")
            return {"success": False}
        return {"success": success}

    def handle_async_add_to_cart(self, request: RequestContext) -> dict[str, bool]:
        return self.handle_async_event(EventKind.ADD_TO_CART, request)

    def handle_async_view_content(self, request: RequestContext) -> dict[str, bool]:
        return self.handle_async_event(EventKind.VIEW_CONTENT, request)

    def handle_async_page_view(self, request: RequestContext) -> dict[str, bool]:
        return self.handle_async_event(EventKind.PAGE_VIEW, request)

    def _check_nonce(self, request: RequestContext) -> None:
        if self.nonces is None:
            raise InvalidRequestPayloadError("Async tracking requires a nonce manager")
        self.nonces.check(
            request.form.get(NONCE_FIELD),
            action=NONCE_ACTION,
            session_token=request.session_token,
        )

    def _track_async(
        self,
        kind: EventKind,
        body: AsyncEventRequest,
        request: RequestContext,
    ) -> bool:
        if kind is EventKind.ADD_TO_CART:
            if body.resolved_product_id is None:
                raise InvalidRequestPayloadError("productId is required")
            return self.tracker.track_add_to_cart(
                body.resolved_product_id,
                body.quantity,
                correlation_id=body.conversion_id,
                request=request,
                source_url=body.source_url,
            )
        if kind is EventKind.VIEW_CONTENT:
            if body.resolved_product_id is None:
                raise InvalidRequestPayloadError("products.id is required")
            return self.tracker.track_view_content(
                body.resolved_product_id,
                correlation_id=body.conversion_id,
                request=request,
                source_url=body.source_url,
            )
        if kind is EventKind.PAGE_VIEW:
            return self.tracker.track_page_view(
                correlation_id=body.conversion_id,
                request=request,
                source_url=body.source_url,
            )
        raise InvalidRequestPayloadError(f"{kind.value} cannot be tracked asynchronously")
