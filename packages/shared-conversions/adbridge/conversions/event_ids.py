"""Correlation ids shared by the pixel and the Conversions API report."""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING

from adbridge.conversions.exceptions import OrderNotFoundError
from adbridge.conversions.schema import EventKind

if TYPE_CHECKING:
    from adbridge.conversions.commerce import Order

# Ids supplied by the browser must look like a UUID or similar token
_SUPPLIED_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


class EventIdRegistry:
    """Produces correlation ids for conversion events.

    - Purchase ids are derived from the order key, so every reload of the
      confirmation page and every retry of the server call yields the same
      id without extra state.
    - All other kinds use a fresh random UUID per user action. The browser
      usually generates it and sends it along; the registry only falls back
      to generating one when the supplied id is missing or malformed. These
      ids are never cached.
    """

    @staticmethod
    def new_action_id() -> str:
        """Return a fresh cryptographically random id for one user action."""
        return str(uuid.uuid4())

    @staticmethod
    def purchase_id(order: Order | None) -> str:
        """Return the deterministic purchase id for an order.

        Raises:
            OrderNotFoundError: If the order is missing or has no key.
        """
        if order is None or not order.order_key:
            raise OrderNotFoundError("Cannot derive a purchase id without an order key")
        return order.order_key

    @classmethod
    def correlation_id_for(
        cls,
        kind: EventKind,
        order: Order | None = None,
        supplied: str | None = None,
    ) -> str:
        """Return the correlation id for an event.

        Args:
            kind: Event kind.
            order: The order, required for purchases.
            supplied: Id generated by the caller for this action, if any.

        Returns:
            The correlation id.
        """
        if kind is EventKind.PURCHASE:
            return cls.purchase_id(order)

        supplied = (supplied or "").strip()
        if supplied and _SUPPLIED_ID_PATTERN.match(supplied):
            return supplied
        return cls.new_action_id()
