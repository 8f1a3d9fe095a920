"""Commerce records and store interface.

The storefront runtime (orders, products, carts and order metadata) lives
outside this package. These records describe only what the tracking
pipeline reads from it, and ``CommerceStore`` is the seam through which it
is read and through which per-order tracking flags are persisted.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ProductType(str, Enum):
    """Storefront product types."""

    SIMPLE = "simple"
    VARIABLE = "variable"
    VARIATION = "variation"
    GROUPED = "grouped"
    EXTERNAL = "external"


class OrderStatus(str, Enum):
    """Order statuses relevant to tracking."""

    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


# Statuses an order reaches once it has been paid for
PAID_STATUSES = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.ON_HOLD}
)


@dataclass
class Product:
    """A catalog product."""

    id: int
    name: str
    price: float = 0.0
    product_type: ProductType = ProductType.SIMPLE
    parent_id: int | None = None
    categories: list[str] = field(default_factory=list)

    @property
    def is_product_group(self) -> bool:
        """Return True for variations and grouped products."""
        return self.product_type in (ProductType.VARIATION, ProductType.GROUPED)


@dataclass
class OrderItem:
    """A purchased line item, captured at checkout time."""

    product_id: int
    name: str
    quantity: int = 1
    price: float = 0.0
    categories: list[str] = field(default_factory=list)


@dataclass
class BillingDetails:
    """Billing identity attached to an order (raw, unhashed)."""

    email: str = ""
    phone: str = ""
    first_name: str = ""
    last_name: str = ""
    city: str = ""
    postcode: str = ""
    country: str = ""


@dataclass
class Order:
    """A placed order."""

    id: int
    order_key: str
    currency: str = "USD"
    total: float = 0.0
    items: list[OrderItem] = field(default_factory=list)
    billing: BillingDetails = field(default_factory=BillingDetails)
    received_url: str = ""
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def item_count(self) -> int:
        """Total quantity across all line items."""
        return sum(item.quantity for item in self.items)

    @property
    def is_paid(self) -> bool:
        """Return True if the order reached a paid status."""
        return self.status in PAID_STATUSES


@dataclass
class CartItem:
    """A line in the shopping cart."""

    product: Product
    quantity: int = 1
    variation_id: int | None = None

    @property
    def tracked_product_id(self) -> int:
        """Variation id when the line is a variation, else the product id."""
        return self.variation_id or self.product.id


@dataclass
class Cart:
    """Snapshot of the visitor's cart."""

    items: list[CartItem] = field(default_factory=list)
    total: float = 0.0
    currency: str = "USD"

    @property
    def item_count(self) -> int:
        """Total quantity across all cart lines."""
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        """Return True if the cart holds no items."""
        return self.item_count <= 0


class CommerceStore(ABC):
    """Read access to the storefront plus durable order metadata.

    ``compare_and_set_order_meta`` must be atomic for a given order and key;
    the tracking state machine relies on it to claim an order exactly once.
    """

    @abstractmethod
    def get_order(self, order_id: int) -> Order | None:
        """Return the order or None if it does not exist."""
        pass  # pragma: no cover

    @abstractmethod
    def get_product(self, product_id: int) -> Product | None:
        """Return the product or None if it does not exist."""
        pass  # pragma: no cover

    @abstractmethod
    def latest_paid_order(self) -> Order | None:
        """Return the most recently created paid order, if any."""
        pass  # pragma: no cover

    @abstractmethod
    def get_order_meta(self, order_id: int, key: str) -> Any:
        """Return an order metadata value, or None when unset."""
        pass  # pragma: no cover

    @abstractmethod
    def update_order_meta(self, order_id: int, key: str, value: Any) -> None:
        """Unconditionally write an order metadata value."""
        pass  # pragma: no cover

    @abstractmethod
    def compare_and_set_order_meta(
        self,
        order_id: int,
        key: str,
        expected: Iterable[Any],
        value: Any,
    ) -> bool:
        """Write ``value`` only if the current value is one of ``expected``.

        Returns:
            True if the value was written.
        """
        pass  # pragma: no cover


class InMemoryCommerceStore(CommerceStore):
    """Thread-safe in-memory store.

    Example:
        >>> store = InMemoryCommerceStore()
        >>> store.add_product(Product(id=7, name="Mug", price=12.0))
        >>> store.get_product(7).name
        'Mug'
    """

    def __init__(
        self,
        orders: Iterable[Order] = (),
        products: Iterable[Product] = (),
    ):
        self._orders: dict[int, Order] = {order.id: order for order in orders}
        self._products: dict[int, Product] = {p.id: p for p in products}
        self._lock = threading.Lock()

    def add_order(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order

    def add_product(self, product: Product) -> None:
        with self._lock:
            self._products[product.id] = product

    def get_order(self, order_id: int) -> Order | None:
        return self._orders.get(order_id)

    def get_product(self, product_id: int) -> Product | None:
        return self._products.get(product_id)

    def latest_paid_order(self) -> Order | None:
        paid = [order for order in self._orders.values() if order.is_paid]
        if not paid:
            return None
        return max(paid, key=lambda order: order.created_at)

    def get_order_meta(self, order_id: int, key: str) -> Any:
        order = self._orders.get(order_id)
        if order is None:
            return None
        return order.meta.get(key)

    def update_order_meta(self, order_id: int, key: str, value: Any) -> None:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                logger.warning(f"Cannot update meta '{key}' of missing order {order_id}")
                return
            order.meta[key] = value

    def compare_and_set_order_meta(
        self,
        order_id: int,
        key: str,
        expected: Iterable[Any],
        value: Any,
    ) -> bool:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return False
            if order.meta.get(key) not in set(expected):
                return False
            order.meta[key] = value
            return True
