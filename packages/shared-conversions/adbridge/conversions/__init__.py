"""
AdBridge Conversions - partner-agnostic conversion events.

Provides:
- The ConversionEvent schema and event criticality
- Commerce records and the CommerceStore seam to the storefront
- Payload builders for each event kind
- Correlation ids shared between pixel and Conversions API reports
- Visitor identity extraction and PII hashing

Usage:
    from adbridge.conversions import EventIdRegistry, EventKind, get_builder

    builder = get_builder(EventKind.PURCHASE, store)
    event = builder.build(
        42,
        correlation_id=EventIdRegistry.correlation_id_for(
            EventKind.PURCHASE, order=store.get_order(42)
        ),
    )
"""

from adbridge.conversions.builders import (
    AddToCartBuilder,
    EventPayloadBuilder,
    PageViewBuilder,
    PurchaseBuilder,
    StartCheckoutBuilder,
    ViewContentBuilder,
    get_builder,
)
from adbridge.conversions.commerce import (
    BillingDetails,
    Cart,
    CartItem,
    CommerceStore,
    InMemoryCommerceStore,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductType,
)
from adbridge.conversions.context import PageContext, PageType, RequestContext
from adbridge.conversions.event_ids import EventIdRegistry
from adbridge.conversions.exceptions import (
    EmptyCartError,
    InvalidQuantityError,
    OrderNotFoundError,
    PayloadBuildError,
    ProductNotFoundError,
)
from adbridge.conversions.identity import UserIdentifier
from adbridge.conversions.schema import (
    ConversionEvent,
    Criticality,
    DeliveryOutcome,
    EventKind,
    LineItem,
    UserContext,
)

__all__ = [
    # Schema
    "ConversionEvent",
    "Criticality",
    "DeliveryOutcome",
    "EventKind",
    "LineItem",
    "UserContext",
    # Commerce
    "BillingDetails",
    "Cart",
    "CartItem",
    "CommerceStore",
    "InMemoryCommerceStore",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "ProductType",
    "PageContext",
    "PageType",
    "RequestContext",
    # Builders
    "EventPayloadBuilder",
    "PageViewBuilder",
    "ViewContentBuilder",
    "AddToCartBuilder",
    "StartCheckoutBuilder",
    "PurchaseBuilder",
    "get_builder",
    # Ids and identity
    "EventIdRegistry",
    "UserIdentifier",
    # Exceptions
    "PayloadBuildError",
    "ProductNotFoundError",
    "OrderNotFoundError",
    "EmptyCartError",
    "InvalidQuantityError",
]
