"""
Event payload builders - turn commerce data into ConversionEvent records.

Each builder handles one event kind:
- PageViewBuilder: any storefront page
- ViewContentBuilder: single product page
- AddToCartBuilder: product added to the cart
- StartCheckoutBuilder: visitor reached checkout
- PurchaseBuilder: order placed

Builders raise a PayloadBuildError subclass when the domain entity cannot be
resolved; callers skip the send instead of reporting a malformed event.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

from adbridge.conversions.commerce import Cart, CommerceStore, Product
from adbridge.conversions.exceptions import (
    EmptyCartError,
    InvalidQuantityError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from adbridge.conversions.schema import (
    ConversionEvent,
    EventKind,
    LineItem,
    UserContext,
)


def event_time_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


class EventPayloadBuilder(ABC):
    """Base class for event payload builders."""

    kind: EventKind

    def __init__(self, store: CommerceStore, currency: str = "USD"):
        """
        Initialize builder.

        Args:
            store: Storefront access used to resolve products and orders
            currency: Store currency for events without their own currency
        """
        self.store = store
        self.currency = currency

    @abstractmethod
    def build(
        self,
        domain_input: Any,
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        """
        Build a ConversionEvent.

        Args:
            domain_input: Kind-specific input (product id, cart, order id...)
            correlation_id: Id shared with the client-side twin event
            user: Visitor identifiers
            source_url: Page the event originated from

        Returns:
            The built event
        """
        pass  # pragma: no cover

    def _resolve_product(self, product_id: int) -> Product:
        product = self.store.get_product(product_id) if product_id else None
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} not found")
        return product


class PageViewBuilder(EventPayloadBuilder):
    """Build a PageView event. Needs no domain input."""

    kind = EventKind.PAGE_VIEW

    def build(
        self,
        domain_input: Any = None,
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        return ConversionEvent(
            kind=self.kind,
            correlation_id=correlation_id,
            user=user or UserContext(),
            event_time=event_time_ms(),
            source_url=source_url,
            currency=self.currency,
        )


class ViewContentBuilder(EventPayloadBuilder):
    """Build a ViewContent event from a product id."""

    kind = EventKind.VIEW_CONTENT

    def build(
        self,
        domain_input: int,
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        product = self._resolve_product(domain_input)
        return ConversionEvent(
            kind=self.kind,
            correlation_id=correlation_id,
            user=user or UserContext(),
            event_time=event_time_ms(),
            source_url=source_url,
            currency=self.currency,
            value=product.price,
            items=(LineItem(id=str(product.id), name=product.name, price=product.price),),
            item_count=1,
            content_type="product_group" if product.is_product_group else "product",
        )


class AddToCartBuilder(EventPayloadBuilder):
    """Build an AddToCart event from ``(product_id, quantity)``."""

    kind = EventKind.ADD_TO_CART

    def build(
        self,
        domain_input: tuple[int, int],
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        product_id, quantity = domain_input
        if quantity < 1:
            raise InvalidQuantityError(f"Quantity must be at least 1, got {quantity}")

        product = self._resolve_product(product_id)
        return ConversionEvent(
            kind=self.kind,
            correlation_id=correlation_id,
            user=user or UserContext(),
            event_time=event_time_ms(),
            source_url=source_url,
            currency=self.currency,
            value=round(product.price * quantity, 2),
            items=(
                LineItem(
                    id=str(product.id),
                    name=product.name,
                    quantity=quantity,
                    price=product.price,
                ),
            ),
            item_count=quantity,
        )


class StartCheckoutBuilder(EventPayloadBuilder):
    """Build a StartCheckout event from a cart snapshot."""

    kind = EventKind.START_CHECKOUT

    def build(
        self,
        domain_input: Cart | None,
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        cart = domain_input
        if cart is None or cart.is_empty:
            raise EmptyCartError("Cannot start checkout with an empty cart")

        items = tuple(
            LineItem(
                id=str(line.tracked_product_id),
                name=line.product.name,
                quantity=line.quantity,
                price=line.product.price,
            )
            for line in cart.items
        )
        return ConversionEvent(
            kind=self.kind,
            correlation_id=correlation_id,
            user=user or UserContext(),
            event_time=event_time_ms(),
            source_url=source_url,
            currency=cart.currency or self.currency,
            value=round(cart.total, 2),
            items=items,
            item_count=cart.item_count,
        )


class PurchaseBuilder(EventPayloadBuilder):
    """Build a Purchase event from an order id.

    Every line item of the order is included; ad platforms use the full
    list for attribution.
    """

    kind = EventKind.PURCHASE

    def build(
        self,
        domain_input: int,
        *,
        correlation_id: str,
        user: UserContext | None = None,
        source_url: str = "",
    ) -> ConversionEvent:
        order = self.store.get_order(domain_input) if domain_input else None
        if order is None:
            raise OrderNotFoundError(f"Order {domain_input} not found")

        items = tuple(
            LineItem(
                id=str(item.product_id),
                name=item.name,
                quantity=item.quantity,
                price=item.price,
            )
            for item in order.items
        )
        return ConversionEvent(
            kind=self.kind,
            correlation_id=correlation_id,
            user=user or UserContext(),
            event_time=event_time_ms(),
            source_url=source_url or order.received_url,
            currency=order.currency,
            value=order.total,
            items=items,
            item_count=order.item_count,
            order_id=str(order.id),
        )


_BUILDERS: dict[EventKind, type[EventPayloadBuilder]] = {
    EventKind.PAGE_VIEW: PageViewBuilder,
    EventKind.VIEW_CONTENT: ViewContentBuilder,
    EventKind.ADD_TO_CART: AddToCartBuilder,
    EventKind.START_CHECKOUT: StartCheckoutBuilder,
    EventKind.PURCHASE: PurchaseBuilder,
}


def get_builder(
    kind: EventKind,
    store: CommerceStore,
    currency: str = "USD",
) -> EventPayloadBuilder:
    """Return the builder for an event kind."""
    return _BUILDERS[kind](store, currency=currency)
