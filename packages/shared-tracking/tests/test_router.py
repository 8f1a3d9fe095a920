"""Tests for TrackingEventRouter."""

import json
from unittest.mock import MagicMock

import pytest

from adbridge.conversions.context import PageContext, PageType, RequestContext
from adbridge.conversions.schema import EventKind
from adbridge.tracking.exceptions import InvalidRequestPayloadError
from adbridge.tracking.router import (
    HOOK_ADD_TO_CART,
    HOOK_ADD_TO_CART_FORM,
    HOOK_CHECKOUT_REACHED,
    HOOK_ORDER_COMPLETED,
    HOOK_RENDER_FOOTER,
    HOOK_RENDER_HEAD,
    AsyncEventRequest,
)
from adbridge.tracking.tracker import TEST_PURCHASE_OPTION


@pytest.fixture
def async_request(nonces):
    """Build an AJAX request carrying a valid nonce."""

    def factory(payload, nonce=None):
        return RequestContext(
            form={
                "security": nonce if nonce is not None else nonces.create(session_token="session-abc"),
                "payload": json.dumps(payload),
            },
            headers={"User-Agent": "Mozilla/5.0"},
            remote_addr="203.0.113.7",
            is_ajax=True,
            session_token="session-abc",
        )

    return factory


class TestRegistration:
    """Test hook registration."""

    def test_all_hooks_registered(self, service):
        """Test every hook has a listener when both channels are enabled."""
        for hook in (
            HOOK_ORDER_COMPLETED,
            HOOK_ADD_TO_CART,
            HOOK_CHECKOUT_REACHED,
            HOOK_RENDER_HEAD,
            HOOK_RENDER_FOOTER,
            HOOK_ADD_TO_CART_FORM,
            "reddit_for_woocommerce_conversion_sent",
            "reddit_for_woocommerce_ad_account_connected",
        ):
            assert service.bus.has_listeners(hook), hook

    def test_conversions_disabled(self, make_service, tracking_config):
        """Test server hooks are not registered when conversions are off."""
        tracking_config.conversions_enabled = False
        service = make_service(tracking_config, consent=True)

        assert not service.bus.has_listeners(HOOK_ORDER_COMPLETED)
        assert service.bus.has_listeners(HOOK_RENDER_HEAD)

    def test_pixel_disabled(self, make_service, tracking_config):
        """Test pixel hooks are not registered when the pixel is off."""
        tracking_config.pixel_enabled = False
        service = make_service(tracking_config, consent=True)

        assert not service.bus.has_listeners(HOOK_RENDER_FOOTER)
        assert service.bus.has_listeners(HOOK_ORDER_COMPLETED)

    def test_ad_account_connected_sends_test_purchase(self, service, transport):
        """Test connecting the ad account triggers the test purchase."""
        service.bus.publish("reddit_for_woocommerce_ad_account_connected")

        assert len(transport.requests) == 1
        assert service.tracker.options.get(TEST_PURCHASE_OPTION) is True


class TestSyncHooks:
    """Test synchronous hook handlers."""

    def test_purchase_hook(self, service, request_context):
        """Test the order-completed hook queues the purchase."""
        service.bus.publish(HOOK_ORDER_COMPLETED, 42, request_context)

        assert len(service.queue.pending) == 1

    def test_purchase_handler_never_raises(self, service):
        """Test tracker errors do not escape."""
        service.router.tracker = MagicMock()
        service.router.tracker.track_purchase.side_effect = RuntimeError("boom")

        assert service.router.handle_purchase(42) is False

    def test_form_add_to_cart_uses_field_id(self, service, request_context):
        """Test the hidden field id becomes the correlation id."""
        request_context.form["reddit_for_woocommerce_event_id"] = "f47ac10b-58cc-4372-a567-0e02b2c3d479"

        service.bus.publish(HOOK_ADD_TO_CART, 7, 1, None, request_context)

        (job,) = service.queue.pending
        assert job.payload["event"]["correlation_id"] == "f47ac10b-58cc-4372-a567-0e02b2c3d479"

    def test_variation_preferred(self, service, request_context):
        """Test the variation id is tracked for variable products."""
        service.router.handle_add_to_cart(9, 1, variation_id=10, request=request_context)

        assert service.queue.pending[0].payload["event"]["items"][0]["id"] == "10"

    def test_async_request_skipped(self, service):
        """Test the sync handler defers async requests."""
        request = RequestContext(is_rest=True)

        assert service.router.handle_add_to_cart(7, 1, request=request) is False
        assert service.queue.pending == []

    def test_checkout_shares_id_with_pixel(self, make_service, snapchat_tracking_config, sample_cart):
        """Test the server and pixel StartCheckout carry the same id."""
        service = make_service(snapchat_tracking_config, consent=True)
        page = PageContext(page_type=PageType.CHECKOUT, cart=sample_cart)

        service.bus.publish(HOOK_CHECKOUT_REACHED, page)
        data = service.pixel.build_tracking_data(page)

        (job,) = service.queue.pending
        assert job.payload["event"]["correlation_id"] == data["START_CHECKOUT"]["event_id"]
        assert page.event_ids[EventKind.START_CHECKOUT] == data["START_CHECKOUT"]["event_id"]

    def test_checkout_hook_ignores_other_pages(self, service, sample_cart):
        """Test only the checkout page starts a checkout."""
        page = PageContext(page_type=PageType.ORDER_RECEIVED, cart=sample_cart)

        assert service.router.handle_start_checkout(page) is False

    def test_render_footer(self, service):
        """Test the footer hook renders tracking data and the purchase call."""
        page = PageContext(page_type=PageType.ORDER_RECEIVED, order_id=42)

        (html,) = service.bus.publish(HOOK_RENDER_FOOTER, page)

        assert "redditAdsTrackingData" in html
        assert 'rdt("track", "PURCHASE"' in html


class TestAsyncEndpoint:
    """Test the AJAX/REST endpoint."""

    def test_add_to_cart(self, service, async_request):
        """Test an async add to cart is queued with the browser id."""
        request = async_request({"productId": 7, "quantity": 2, "conversionId": "evt-async"})

        assert service.router.handle_async_add_to_cart(request) == {"success": True}
        (job,) = service.queue.pending
        assert job.payload["event"]["correlation_id"] == "evt-async"
        assert job.payload["event"]["item_count"] == 2

    def test_view_content_uses_products_id(self, service, transport, async_request):
        """Test the view content payload reads products.id."""
        request = async_request({"products": {"id": "7"}, "conversionId": "evt-view"})

        assert service.router.handle_async_view_content(request) == {"success": True}
        metadata = transport.json_bodies[0]["data"]["events"][0]["metadata"]
        assert metadata["conversion_id"] == "evt-view"

    def test_page_view(self, service, transport, async_request):
        """Test an async page view is sent immediately."""
        request = async_request({"conversionId": "evt-page"})

        assert service.router.handle_async_page_view(request) == {"success": True}
        assert len(transport.requests) == 1

    def test_invalid_nonce(self, service, async_request):
        """Test a forged nonce is rejected."""
        request = async_request({"productId": 7}, nonce="0000000000")

        assert service.router.handle_async_add_to_cart(request) == {"success": False}
        assert service.queue.pending == []

    def test_malformed_payload(self, service, async_request):
        """Test an invalid payload is rejected."""
        request = async_request({"productId": "not-a-number"})

        assert service.router.handle_async_add_to_cart(request) == {"success": False}

    def test_purchase_not_accepted(self, service, async_request):
        """Test purchases cannot be reported asynchronously."""
        request = async_request({"conversionId": "x"})

        assert service.router.handle_async_event("purchase", request) == {"success": False}

    def test_unknown_kind(self, service, async_request):
        """Test an unknown kind is rejected."""
        assert service.router.handle_async_event("refund", async_request({})) == {"success": False}

    def test_sync_and_async_paths_count_once(self, service, async_request):
        """Test one click through both paths is tracked once."""
        request = async_request({"productId": 7, "quantity": 1, "conversionId": "evt-click"})

        service.bus.publish(HOOK_ADD_TO_CART, 7, 1, None, request)
        service.router.handle_async_add_to_cart(request)

        assert len(service.queue.pending) == 1


class TestAsyncEventRequest:
    """Test AsyncEventRequest parsing."""

    def test_missing_payload(self):
        """Test a request without payload is rejected."""
        with pytest.raises(InvalidRequestPayloadError):
            AsyncEventRequest.from_request(RequestContext())

    def test_invalid_json(self):
        """Test broken JSON is rejected."""
        with pytest.raises(InvalidRequestPayloadError):
            AsyncEventRequest.from_request(RequestContext(form={"payload": "{"}))

    def test_dict_payload(self):
        """Test an already decoded payload is accepted."""
        body = AsyncEventRequest.from_request(
            RequestContext(form={"payload": {"productId": "7", "conversionId": "evt"}})
        )

        assert body.resolved_product_id == 7
        assert body.quantity == 1
        assert body.conversion_id == "evt"
