"""Request and page context handed in by the storefront runtime."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from adbridge.conversions.commerce import Cart, Product
    from adbridge.conversions.schema import EventKind


class PageType(str, Enum):
    """Storefront page being rendered."""

    PRODUCT = "product"
    CHECKOUT = "checkout"
    ORDER_RECEIVED = "order_received"
    OTHER = "other"

    @property
    def is_checkout(self) -> bool:
        """The order-received page is part of the checkout flow."""
        return self in (PageType.CHECKOUT, PageType.ORDER_RECEIVED)


@dataclass
class RequestContext:
    """The incoming HTTP request, as far as tracking needs it.

    Header names are matched case-insensitively.
    """

    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    form: dict[str, Any] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    remote_addr: str = ""
    is_ajax: bool = False
    is_rest: bool = False
    session_token: str = ""

    @property
    def is_async(self) -> bool:
        """Return True for background AJAX or REST requests."""
        return self.is_ajax or self.is_rest

    def header(self, name: str, default: str = "") -> str:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default


@dataclass
class PageContext:
    """The page currently being rendered."""

    page_type: PageType = PageType.OTHER
    product_id: int | None = None
    order_id: int | None = None
    cart: Cart | None = None
    listed_products: list[Product] = field(default_factory=list)
    # Correlation ids generated server-side for events rendered on this page
    event_ids: dict[EventKind, str] = field(default_factory=dict)
