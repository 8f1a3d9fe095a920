"""Shared pytest fixtures for AdBridge packages."""

from datetime import UTC, datetime

import pytest

from adbridge.conversions.commerce import (
    BillingDetails,
    Cart,
    CartItem,
    InMemoryCommerceStore,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductType,
)
from adbridge.conversions.context import RequestContext


@pytest.fixture
def sample_products():
    """Products of a small storefront."""
    return [
        Product(id=7, name="Coffee Mug", price=12.5, categories=["Kitchen"]),
        Product(id=8, name="Tea Towel", price=6.0, categories=["Kitchen", "Textiles"]),
        Product(id=9, name="T-Shirt", price=20.0, product_type=ProductType.VARIABLE),
        Product(
            id=10,
            name="T-Shirt - Blue",
            price=22.0,
            product_type=ProductType.VARIATION,
            parent_id=9,
        ),
    ]


@pytest.fixture
def sample_order():
    """Order #42 with two line items."""
    return Order(
        id=42,
        order_key="abc123",
        currency="USD",
        total=31.0,
        items=[
            OrderItem(product_id=7, name="Coffee Mug", quantity=2, price=12.5, categories=["Kitchen"]),
            OrderItem(product_id=8, name="Tea Towel", quantity=1, price=6.0, categories=["Kitchen"]),
        ],
        billing=BillingDetails(
            email=" Jane.Doe@Example.com ",
            phone="+1 (555) 010-2000",
            first_name="Jane",
            last_name="O'Doe",
            city="New York",
            postcode="10001-1234",
            country="US",
        ),
        received_url="https://shop.example.com/checkout/order-received/42/?key=abc123",
        status=OrderStatus.PROCESSING,
        created_at=datetime(2025, 1, 15, 10, 30, tzinfo=UTC),
    )


@pytest.fixture
def commerce_store(sample_products, sample_order):
    """In-memory store holding the sample products and order #42."""
    return InMemoryCommerceStore(orders=[sample_order], products=sample_products)


@pytest.fixture
def sample_cart(sample_products):
    """Cart with a mug and a blue T-shirt variation."""
    mug, _, shirt, blue = sample_products
    return Cart(
        items=[
            CartItem(product=mug, quantity=2),
            CartItem(product=shirt, quantity=1, variation_id=blue.id),
        ],
        total=47.0,
        currency="USD",
    )


@pytest.fixture
def request_context():
    """Classic (non-async) storefront request."""
    return RequestContext(
        headers={
            "User-Agent": "Mozilla/5.0 (X11; Linux x86_64)",
            "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
        },
        cookies={
            "_rdt_uuid": "1700000000000.rdt-uuid",
            "rdtCid": "reddit-click",
            "_scid": "snap-cookie",
            "ScCid": "snap-click",
        },
        remote_addr="10.0.0.1",
        session_token="session-abc",
    )
