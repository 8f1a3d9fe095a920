"""
Browser pixel injection.

The pixel reports the same events as the Conversions API from the
visitor's browser. Each report carries the correlation id of its
server-side twin so the ad platform can merge them:

- head: the partner's pixel snippet
- footer: ``window.<partner>AdsTrackingData`` with per-page event data
- add-to-cart forms: a hidden field filled with a fresh UUID on submit
- order-received page: an inline purchase call keyed by the order key
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.proxy import ConnectProxyClient
from adbridge.conversions.commerce import Cart, CommerceStore
from adbridge.conversions.context import PageContext, PageType, RequestContext
from adbridge.conversions.event_ids import EventIdRegistry
from adbridge.conversions.identity import UserIdentifier
from adbridge.conversions.schema import EventKind
from adbridge.tracking.config import TrackingConfig
from adbridge.tracking.consent import ConsentGate
from adbridge.tracking.state import OrderStateStore

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = {
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
    "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
}


def currency_minor_unit(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


class ScriptCache(ABC):
    """Cache of fetched pixel snippets."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass  # pragma: no cover

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, key: str) -> None:
        pass  # pragma: no cover


class InMemoryScriptCache(ScriptCache):
    """TTL cache held in process memory."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (value, self.clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class PixelInjector:
    """Renders the client-side half of conversion tracking.

    Nothing is rendered without marketing consent or while the pixel is
    disabled or has no pixel id.

    Example:
        injector = PixelInjector(config, connector, store, consent=gate, proxy=proxy)
        head_html = injector.maybe_inject()
        footer_html = injector.populate_tracking_data(page)
    """

    def __init__(
        self,
        config: TrackingConfig,
        connector: BasePartnerConnector,
        store: CommerceStore,
        consent: ConsentGate | None = None,
        states: OrderStateStore | None = None,
        proxy: ConnectProxyClient | None = None,
        cache: ScriptCache | None = None,
        identifier: UserIdentifier | None = None,
        event_ids: EventIdRegistry | None = None,
    ):
        self.config = config
        self.connector = connector
        self.store = store
        self.consent = consent or ConsentGate()
        self.states = states or OrderStateStore(
            store, config.conversion_meta_key, config.pixel_meta_key
        )
        self.proxy = proxy
        self.cache = cache or InMemoryScriptCache()
        self.identifier = identifier or UserIdentifier(connector.user_cookies)
        self.event_ids = event_ids or EventIdRegistry()
        self._env: Environment | None = None

    @property
    def env(self) -> Environment:
        """Lazy initialization of the Jinja2 environment."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(str(TEMPLATES_DIR)),
                autoescape=select_autoescape(["html.j2"]),
            )
        return self._env

    @property
    def cache_key(self) -> str:
        return self.config.with_prefix(f"pixel_script_{self.connector.config.pixel_id}")

    def is_enabled(self) -> bool:
        return self.config.is_pixel_enabled() and bool(self.connector.config.pixel_id)

    def _may_render(self) -> bool:
        if not self.is_enabled():
            return False
        if not self.consent.has_marketing_consent():
            logger.debug("No marketing consent, pixel not rendered")
            return False
        return True

    # ------------------------------------------------------------------
    # Head snippet
    # ------------------------------------------------------------------

    def get_pixel_script(self) -> str:
        """Return the personalized pixel snippet, or an empty string.

        Cached snippets are only trusted while they still reference the
        partner's loader URL; anything else is evicted and fetched again.
        """
        script = ""
        if self.connector.caches_pixel_script:
            cached = self.cache.get(self.cache_key)
            if cached and self.connector.is_valid_pixel_script(cached):
                script = cached
            elif cached:
                logger.warning("Cached pixel script failed validation, fetching again")
                self.cache.delete(self.cache_key)

        if not script:
            script = self.connector.fetch_pixel_script(self.proxy)
            if not self.connector.is_valid_pixel_script(script):
                if script:
                    logger.warning("Fetched pixel script failed validation")
                return ""
            if self.connector.caches_pixel_script:
                self.cache.set(self.cache_key, script, self.connector.config.pixel_script_ttl)

        return self.connector.personalize_script(script)

    def maybe_inject(self) -> str:
        """HTML for the page head."""
        if not self._may_render():
            return ""
        return self.get_pixel_script()

    # ------------------------------------------------------------------
    # Footer tracking data
    # ------------------------------------------------------------------

    def get_pixel_data(self, page: PageContext) -> dict[str, Any]:
        """Currency and prices of the products shown on the page."""
        products = {str(p.id): {"price": p.price} for p in page.listed_products}
        if page.product_id is not None and str(page.product_id) not in products:
            product = self.store.get_product(page.product_id)
            if product is not None:
                products[str(product.id)] = {"price": product.price}

        return {
            "currency_minor_unit": currency_minor_unit(self.config.currency),
            "currency": self.config.currency,
            "products": products,
        }

    def build_tracking_data(self, page: PageContext) -> dict[str, Any]:
        """Tracking data for one page render.

        At most one of ``VIEW_CONTENT``, ``START_CHECKOUT`` and ``PAGE_VIEW``
        is present: product pages get ViewContent, the checkout (but not the
        order-received page) gets StartCheckout when the cart has items, any
        other page gets PageView.
        """
        data: dict[str, Any] = {
            "pixel_data": self.get_pixel_data(page),
            "event_id_el_name": self.config.event_id_field,
        }

        if page.page_type is PageType.PRODUCT:
            block = self._view_content_block(page)
            if block:
                data["VIEW_CONTENT"] = block
        elif page.page_type is PageType.CHECKOUT:
            block = self._start_checkout_block(page, page.cart)
            if block:
                data["START_CHECKOUT"] = block
        elif not page.page_type.is_checkout:
            data["PAGE_VIEW"] = True

        return data

    def _event_id(self, page: PageContext, kind: EventKind) -> str:
        if kind not in page.event_ids:
            page.event_ids[kind] = self.event_ids.new_action_id()
        return page.event_ids[kind]

    def _view_content_block(self, page: PageContext) -> dict[str, Any] | None:
        if page.product_id is None:
            return None
        product = self.store.get_product(page.product_id)
        if product is None:
            return None
        return {
            "price": product.price,
            "currency": self.config.currency,
            "item_ids": [str(product.id)],
            "event_id": self._event_id(page, EventKind.VIEW_CONTENT),
        }

    def _start_checkout_block(self, page: PageContext, cart: Cart | None) -> dict[str, Any] | None:
        if cart is None or cart.is_empty:
            return None
        return {
            "currency": cart.currency or self.config.currency,
            "price": round(cart.total, 2),
            "item_ids": [str(line.tracked_product_id) for line in cart.items],
            "number_items": str(cart.item_count),
            "event_id": self._event_id(page, EventKind.START_CHECKOUT),
        }

    def populate_tracking_data(self, page: PageContext) -> str:
        """Inline script for the page footer."""
        if not self._may_render():
            return ""
        template = self.env.get_template("tracking_data.js.j2")
        return template.render(
            name=self.connector.tracking_data_name,
            data=self.build_tracking_data(page),
        )

    def render_event_id_field(self) -> str:
        """Hidden add-to-cart field filled with a fresh UUID on submit."""
        if not self._may_render():
            return ""
        template = self.env.get_template("event_id_field.html.j2")
        return template.render(field_name=self.config.event_id_field)

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    def render_purchase_event(
        self,
        page: PageContext,
        request: RequestContext | None = None,
    ) -> str:
        """Inline purchase call for the order-received page.

        Emitted once per order: the pixel flag is claimed before the call is
        rendered, so reloads of the page render nothing.
        """
        if page.page_type is not PageType.ORDER_RECEIVED or page.order_id is None:
            return ""
        if not self._may_render():
            return ""
        if not self.connector.supports(EventKind.PURCHASE):
            return ""

        order = self.store.get_order(page.order_id)
        if order is None or not order.order_key:
            return ""
        if not self.states.mark_pixel_tracked(order.id):
            logger.debug(f"Pixel purchase of order {order.id} already rendered")
            return ""

        user = self.identifier.from_request(request)
        if self.config.collect_pii:
            user = self.identifier.with_billing(user, order.billing)

        payload = self.connector.purchase_pixel_payload(
            order,
            self.event_ids.purchase_id(order),
            user,
            self.config.collect_pii,
        )
        template = self.env.get_template("purchase_event.html.j2")
        return template.render(
            function=self.connector.pixel_function,
            event_name=self.connector.event_name(EventKind.PURCHASE),
            payload=payload,
        )
