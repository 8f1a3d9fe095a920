"""Tests for commerce records and the in-memory store."""

import threading
from datetime import UTC, datetime

from adbridge.conversions.commerce import (
    Cart,
    CartItem,
    InMemoryCommerceStore,
    Order,
    OrderStatus,
    Product,
)


class TestCart:
    """Test Cart helpers."""

    def test_empty_cart(self):
        """Test a cart without lines is empty."""
        assert Cart().is_empty
        assert Cart().item_count == 0

    def test_item_count_sums_quantities(self, sample_cart):
        """Test item_count adds up line quantities."""
        assert sample_cart.item_count == 3
        assert not sample_cart.is_empty

    def test_tracked_product_id_prefers_variation(self):
        """Test a variation line reports the variation id."""
        line = CartItem(product=Product(id=9, name="T-Shirt"), variation_id=10)

        assert line.tracked_product_id == 10


class TestInMemoryCommerceStore:
    """Test InMemoryCommerceStore."""

    def test_latest_paid_order(self, commerce_store):
        """Test only paid orders are considered, newest first."""
        commerce_store.add_order(
            Order(
                id=50,
                order_key="pending",
                status=OrderStatus.PENDING,
                created_at=datetime(2025, 2, 1, tzinfo=UTC),
            )
        )
        commerce_store.add_order(
            Order(
                id=51,
                order_key="newest",
                status=OrderStatus.COMPLETED,
                created_at=datetime(2025, 1, 20, tzinfo=UTC),
            )
        )

        assert commerce_store.latest_paid_order().id == 51

    def test_no_paid_orders(self):
        """Test None is returned without paid orders."""
        assert InMemoryCommerceStore().latest_paid_order() is None

    def test_order_meta(self, commerce_store):
        """Test meta values are stored on the order."""
        commerce_store.update_order_meta(42, "_key", "value")

        assert commerce_store.get_order_meta(42, "_key") == "value"
        assert commerce_store.get_order_meta(404, "_key") is None

    def test_compare_and_set(self, commerce_store):
        """Test the write only happens from an expected value."""
        assert commerce_store.compare_and_set_order_meta(42, "_state", (None, ""), "queued")
        assert not commerce_store.compare_and_set_order_meta(42, "_state", (None, ""), "queued")
        assert commerce_store.get_order_meta(42, "_state") == "queued"

    def test_compare_and_set_missing_order(self, commerce_store):
        """Test a missing order is never written."""
        assert not commerce_store.compare_and_set_order_meta(404, "_state", (None,), "queued")

    def test_compare_and_set_single_winner(self, commerce_store):
        """Test concurrent writers see exactly one success."""
        results = []
        barrier = threading.Barrier(8)

        def claim():
            barrier.wait()
            results.append(
                commerce_store.compare_and_set_order_meta(42, "_state", (None, ""), "queued")
            )

        threads = [threading.Thread(target=claim) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
