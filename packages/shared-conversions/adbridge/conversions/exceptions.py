"""Exceptions raised while building conversion event payloads."""

from __future__ import annotations


class PayloadBuildError(Exception):
    """Base exception for payloads that cannot be built."""

    pass


class ProductNotFoundError(PayloadBuildError):
    """Raised when a product id does not resolve to a product."""

    pass


class OrderNotFoundError(PayloadBuildError):
    """Raised when an order id does not resolve to an order."""

    pass


class EmptyCartError(PayloadBuildError):
    """Raised when a checkout event is requested for an empty cart."""

    pass


class InvalidQuantityError(PayloadBuildError):
    """Raised when an add-to-cart quantity is lower than one."""

    pass
