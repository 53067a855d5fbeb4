"""
Tests for the collaborator HTTP clients.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from flower_checkout.checkout.models import Cart, CartItem
from flower_checkout.clients import (
    AnalyticsClient,
    AuthClient,
    CustomerClient,
    CustomerContact,
    OrderServiceClient,
    PaymentGatewayClient,
)
from flower_checkout.exceptions import (
    AuthenticationError,
    OrderCreationError,
    PaymentInitializationError,
)


def http_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


CART = Cart(items=[CartItem(product_id="p-1", name="Tulips", unit_price=450.0, quantity=1)])
CONTACT = CustomerContact(customer_id=None, name="Ayşe", email="ayse@cicekci.com.tr", phone="+905551234567")


class TestOrderServiceClient:
    @patch("flower_checkout.clients.requests.post")
    def test_create_order(self, mock_post):
        mock_post.return_value = http_response(200, {
            "success": True,
            "order": {"id": 77, "orderNumber": "FL-77", "status": "pending_payment"},
        })

        order = OrderServiceClient("http://orders.test/api/").create_order({"status": "pending_payment"})

        assert order.id == "77"
        assert order.order_number == "FL-77"
        assert mock_post.call_args.args[0] == "http://orders.test/api/orders"

    @patch("flower_checkout.clients.requests.post")
    def test_refusal_carries_reason(self, mock_post):
        mock_post.return_value = http_response(400, {"error": "Product out of stock"})
        with pytest.raises(OrderCreationError, match="Product out of stock"):
            OrderServiceClient().create_order({})

    @patch("flower_checkout.clients.requests.post")
    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.Timeout()
        with pytest.raises(OrderCreationError):
            OrderServiceClient().create_order({})

    @patch("flower_checkout.clients.requests.post")
    def test_missing_order_id(self, mock_post):
        mock_post.return_value = http_response(200, {"success": True, "order": {}})
        with pytest.raises(OrderCreationError):
            OrderServiceClient().create_order({})

    @patch("flower_checkout.clients.requests.post")
    def test_reminder_action_is_fire_and_forget(self, mock_post):
        mock_post.side_effect = requests.ConnectionError()
        assert OrderServiceClient().report_reminder_action("ord-1", "shown") is False

    @patch("flower_checkout.clients.requests.post")
    def test_reminder_action_posts_action(self, mock_post):
        mock_post.return_value = http_response(200, {"success": True})
        assert OrderServiceClient("http://orders.test").report_reminder_action("ord-1", "dismiss")
        assert mock_post.call_args.args[0] == "http://orders.test/orders/ord-1/reminder-action"
        assert mock_post.call_args.kwargs["json"] == {"action": "dismiss"}

    def test_unknown_reminder_action(self):
        with pytest.raises(ValueError):
            OrderServiceClient().report_reminder_action("ord-1", "snooze")


class TestPaymentGatewayClient:
    @patch("flower_checkout.clients.requests.post")
    def test_initialize_returns_opaque_content(self, mock_post):
        mock_post.return_value = http_response(200, {
            "success": True,
            "threeDSHtmlContent": "<html>bank</html>",
            "paymentId": "pay-9",
        })

        redirect = PaymentGatewayClient().initialize("ord-1", CART, CONTACT, {"date": "2026-10-20"})

        assert redirect.content == "<html>bank</html>"
        assert redirect.payment_id == "pay-9"
        body = mock_post.call_args.kwargs["json"]
        assert body["orderId"] == "ord-1"
        assert body["totalAmount"] == 450.0
        assert body["customer"]["phone"] == "+905551234567"

    @patch("flower_checkout.clients.requests.post")
    def test_missing_content(self, mock_post):
        mock_post.return_value = http_response(200, {"success": True})
        with pytest.raises(PaymentInitializationError):
            PaymentGatewayClient().initialize("ord-1", CART, CONTACT)

    @patch("flower_checkout.clients.requests.post")
    def test_gateway_error(self, mock_post):
        mock_post.return_value = http_response(502)
        with pytest.raises(PaymentInitializationError):
            PaymentGatewayClient().initialize("ord-1", CART, CONTACT)


class TestAnalyticsClient:
    @patch("flower_checkout.clients.requests.post")
    def test_failures_never_raise(self, mock_post):
        mock_post.side_effect = requests.Timeout()
        assert AnalyticsClient().checkout_started("s-1", CART) is False

    @patch("flower_checkout.clients.requests.post")
    def test_event_payload(self, mock_post):
        mock_post.return_value = http_response(200, {"ok": True})
        assert AnalyticsClient().checkout_started("s-1", CART) is True
        body = mock_post.call_args.kwargs["json"]
        assert body["event"] == "checkout_started"
        assert body["itemCount"] == 1


class TestAuthAndCustomerClients:
    @patch("flower_checkout.clients.requests.post")
    def test_verify_login_builds_profile(self, mock_post):
        mock_post.return_value = http_response(200, {"customer": {
            "id": 42,
            "name": "Mehmet Demir",
            "email": "mehmet@cicekci.com.tr",
            "addresses": [{"id": "addr-1", "district": "Şişli", "province": "İstanbul"}],
        }})

        profile = AuthClient().verify_login("5321112233", "123456")

        assert profile.customer_id == "42"
        assert profile.default_address().district == "Şişli"

    @patch("flower_checkout.clients.requests.post")
    def test_verify_login_rejected(self, mock_post):
        mock_post.return_value = http_response(401, {"error": "Invalid code"})
        with pytest.raises(AuthenticationError):
            AuthClient().verify_login("5321112233", "000000")

    @patch("flower_checkout.clients.requests.post")
    def test_start_login_failure(self, mock_post):
        mock_post.side_effect = requests.ConnectionError()
        with pytest.raises(AuthenticationError):
            AuthClient().start_login("5321112233")

    @patch("flower_checkout.clients.requests.post")
    def test_add_address_failure_returns_false(self, mock_post):
        mock_post.return_value = http_response(500)
        assert CustomerClient().add_address("42", {"title": "Home"}) is False

    @patch("flower_checkout.clients.requests.get")
    def test_get_profile(self, mock_get):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {"customer": {"name": "Mehmet Demir", "addresses": []}}
        mock_get.return_value = response

        profile = CustomerClient().get_profile("42")

        assert profile.customer_id == "42"
        assert profile.name == "Mehmet Demir"

    @patch("flower_checkout.clients.requests.get")
    def test_get_profile_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError()
        with pytest.raises(AuthenticationError):
            CustomerClient().get_profile("42")
