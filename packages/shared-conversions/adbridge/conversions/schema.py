"""
Conversion event schema - partner-agnostic record of a tracked commerce event.

A ConversionEvent is what both reporting channels describe:
- the browser pixel fires it client-side
- the Conversions API call reports it server-side

Both reports carry the same ``correlation_id`` so the ad platform can merge
them into a single conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Criticality(str, Enum):
    """Business importance of an event kind.

    Drives the dispatch path (queued vs immediate) and the log severity
    used when a delivery fails.
    """

    CRITICAL = "critical"
    HIGH = "high"
    LOW = "low"

    @property
    def is_queued(self) -> bool:
        """Return True if events of this level go through the job queue."""
        return self in (Criticality.CRITICAL, Criticality.HIGH)


class EventKind(str, Enum):
    """Kind of conversion event."""

    PAGE_VIEW = "page_view"
    VIEW_CONTENT = "view_content"
    ADD_TO_CART = "add_to_cart"
    START_CHECKOUT = "start_checkout"
    PURCHASE = "purchase"

    @property
    def criticality(self) -> Criticality:
        """Criticality derived from the event kind."""
        return _CRITICALITY[self]


_CRITICALITY = {
    EventKind.PURCHASE: Criticality.CRITICAL,
    EventKind.ADD_TO_CART: Criticality.HIGH,
    EventKind.START_CHECKOUT: Criticality.HIGH,
    EventKind.VIEW_CONTENT: Criticality.LOW,
    EventKind.PAGE_VIEW: Criticality.LOW,
}


@dataclass(frozen=True)
class LineItem:
    """A product reference inside an event."""

    id: str
    name: str = ""
    quantity: int = 1
    price: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineItem:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            quantity=int(data.get("quantity", 1)),
            price=float(data.get("price", 0.0)),
        )


@dataclass(frozen=True)
class UserContext:
    """Visitor identifiers attached to server-side events.

    ``partner_ids`` holds raw partner cookies and click ids (keyed by the
    partner's field name). ``hashed`` holds SHA-256 hashed PII keyed by the
    short field names ad platforms expect (``em``, ``ph``, ...).
    """

    ip_address: str = ""
    user_agent: str = ""
    partner_ids: dict[str, str] = field(default_factory=dict)
    hashed: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "partner_ids": dict(self.partner_ids),
            "hashed": dict(self.hashed),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserContext:
        data = data or {}
        return cls(
            ip_address=data.get("ip_address", ""),
            user_agent=data.get("user_agent", ""),
            partner_ids=dict(data.get("partner_ids") or {}),
            hashed=dict(data.get("hashed") or {}),
        )


@dataclass(frozen=True)
class ConversionEvent:
    """
    Transport-ready record of one real-world commerce event.

    Immutable once built. ``to_dict``/``from_dict`` give the JSON form used
    to carry an event through the durable job queue.

    Example:
        event = ConversionEvent(
            kind=EventKind.PURCHASE,
            correlation_id="wc_order_abc123",
            currency="USD",
            value=42.0,
            items=(LineItem(id="7", name="Mug"),),
            item_count=1,
            order_id="42",
        )
    """

    kind: EventKind
    correlation_id: str
    user: UserContext = field(default_factory=UserContext)
    event_time: int = 0  # milliseconds since epoch
    source_url: str = ""

    currency: str = "USD"
    value: float = 0.0
    items: tuple[LineItem, ...] = ()
    item_count: int = 0

    order_id: str | None = None
    content_type: str | None = None

    @property
    def criticality(self) -> Criticality:
        return self.kind.criticality

    @property
    def item_ids(self) -> list[str]:
        """Non-empty item ids, in order."""
        return [item.id for item in self.items if item.id]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "kind": self.kind.value,
            "correlation_id": self.correlation_id,
            "user": self.user.to_dict(),
            "event_time": self.event_time,
            "source_url": self.source_url,
            "currency": self.currency,
            "value": self.value,
            "items": [item.to_dict() for item in self.items],
            "item_count": self.item_count,
            "order_id": self.order_id,
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversionEvent:
        """Create a ConversionEvent from its dictionary form.

        Raises:
            ValueError: If ``kind`` or ``correlation_id`` is missing or the
                kind is unknown.
        """
        if "kind" not in data:
            raise ValueError("Missing required field: kind")
        if "correlation_id" not in data:
            raise ValueError("Missing required field: correlation_id")

        return cls(
            kind=EventKind(data["kind"]),
            correlation_id=str(data["correlation_id"]),
            user=UserContext.from_dict(data.get("user")),
            event_time=int(data.get("event_time", 0)),
            source_url=data.get("source_url", ""),
            currency=data.get("currency", "USD"),
            value=float(data.get("value", 0.0)),
            items=tuple(LineItem.from_dict(item) for item in data.get("items", [])),
            item_count=int(data.get("item_count", 0)),
            order_id=data.get("order_id"),
            content_type=data.get("content_type"),
        )


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one attempt to deliver an event to the ad partner."""

    success: bool
    status_code: int | None = None
    error: str | None = None
    error_body: Any = None

    @classmethod
    def succeeded(cls, status_code: int) -> DeliveryOutcome:
        return cls(success=True, status_code=status_code)

    @classmethod
    def failed(
        cls,
        status_code: int | None,
        error: str,
        error_body: Any = None,
    ) -> DeliveryOutcome:
        return cls(
            success=False,
            status_code=status_code,
            error=error,
            error_body=error_body,
        )
