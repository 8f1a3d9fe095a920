"""Durable per-order tracking state and plugin options."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from adbridge.conversions.commerce import CommerceStore

logger = logging.getLogger(__name__)


class OrderTrackingState(str, Enum):
    """Server-side tracking state of an order's Purchase event."""

    UNTRACKED = ""
    QUEUED = "queued"
    TRACKED = "tracked"

    @classmethod
    def from_meta(cls, value: Any) -> OrderTrackingState:
        if value in (None, ""):
            return cls.UNTRACKED
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown order tracking state {value!r}, treating as tracked")
            return cls.TRACKED


class OrderStateStore:
    """Reads and transitions order tracking state stored as order metadata.

    The server channel moves ``Untracked -> Queued -> Tracked`` and never
    leaves ``Tracked``. The pixel channel is an independent boolean flag.
    """

    def __init__(self, store: CommerceStore, conversion_key: str, pixel_key: str):
        self.store = store
        self.conversion_key = conversion_key
        self.pixel_key = pixel_key

    def get(self, order_id: int) -> OrderTrackingState:
        return OrderTrackingState.from_meta(
            self.store.get_order_meta(order_id, self.conversion_key)
        )

    def mark_queued(self, order_id: int) -> bool:
        """Atomically move an order from Untracked to Queued.

        Returns:
            True if this caller won the transition.
        """
        return self.store.compare_and_set_order_meta(
            order_id,
            self.conversion_key,
            expected=(None, OrderTrackingState.UNTRACKED.value),
            value=OrderTrackingState.QUEUED.value,
        )

    def revert_queued(self, order_id: int) -> bool:
        """Move a Queued order back to Untracked after a failed enqueue."""
        return self.store.compare_and_set_order_meta(
            order_id,
            self.conversion_key,
            expected=(OrderTrackingState.QUEUED.value,),
            value=OrderTrackingState.UNTRACKED.value,
        )

    def mark_tracked(self, order_id: int) -> None:
        self.store.update_order_meta(
            order_id, self.conversion_key, OrderTrackingState.TRACKED.value
        )

    def is_pixel_tracked(self, order_id: int) -> bool:
        return bool(self.store.get_order_meta(order_id, self.pixel_key))

    def mark_pixel_tracked(self, order_id: int) -> bool:
        """Set the pixel flag unless already set.

        Returns:
            True if this caller set the flag.
        """
        return self.store.compare_and_set_order_meta(
            order_id, self.pixel_key, expected=(None, "", False), value=True
        )


class OptionStore(ABC):
    """Installation-wide key/value options."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass  # pragma: no cover

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass  # pragma: no cover

    @abstractmethod
    def add(self, key: str, value: Any) -> bool:
        """Set ``key`` only if it is not present. Returns True if added."""
        pass  # pragma: no cover


class InMemoryOptionStore(OptionStore):
    def __init__(self, options: dict[str, Any] | None = None):
        self._options: dict[str, Any] = dict(options or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        return self._options.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._options[key] = value

    def add(self, key: str, value: Any) -> bool:
        with self._lock:
            if key in self._options:
                return False
            self._options[key] = value
            return True
