"""
HTTP clients for the checkout engine's external collaborators.

- OrderServiceClient: creates orders and records reminder actions
- PaymentGatewayClient: initializes a card payment and returns the opaque
  3-D Secure redirect payload
- AnalyticsClient: "checkout started" events
- AuthClient: start/verify endpoints of the one-time-code login
- CustomerClient: member address book

Every call carries a timeout. Calls whose result the checkout depends on
raise a CollaboratorError subclass; fire-and-forget calls log and return False.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .config import (
    ANALYTICS_API_URL,
    AUTH_API_URL,
    CUSTOMER_API_URL,
    FIRE_AND_FORGET_TIMEOUT,
    ORDER_API_URL,
    ORDER_API_TIMEOUT,
    PAYMENT_API_URL,
    PAYMENT_INIT_TIMEOUT,
)
from .checkout.models import Cart, MemberProfile, Order, SavedAddress
from .exceptions import (
    AuthenticationError,
    CollaboratorError,
    OrderCreationError,
    PaymentInitializationError,
)

logger = logging.getLogger(__name__)

REMINDER_ACTIONS = ("shown", "resume", "dismiss")


def _post_json(url: str, payload: dict, timeout: float) -> dict:
    """POST JSON and return the decoded body. Raises CollaboratorError on any failure."""
    try:
        response = requests.post(url, json=payload, timeout=timeout)
    except requests.Timeout as e:
        raise CollaboratorError(f"Timed out calling {url}") from e
    except requests.RequestException as e:
        raise CollaboratorError(f"Request to {url} failed: {e}") from e

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code >= 400:
        reason = body.get("error") if isinstance(body, dict) else None
        raise CollaboratorError(reason or f"{url} returned HTTP {response.status_code}")

    if not isinstance(body, dict):
        raise CollaboratorError(f"{url} returned an unexpected body")
    return body


def _member_profile(customer: dict, fallback_id: Optional[str] = None) -> MemberProfile:
    return MemberProfile(
        customer_id=str(customer.get("id") or fallback_id),
        name=customer.get("name") or "",
        email=customer.get("email") or "",
        phone=customer.get("phone") or "",
        addresses=[
            SavedAddress.model_validate(address)
            for address in customer.get("addresses") or []
        ],
    )


@dataclass(frozen=True)
class RedirectPayload:
    """Opaque 3-D Secure page content handed to the browser as-is."""
    content: str
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class CustomerContact:
    """Buyer identity sent with the payment initialization."""
    customer_id: Optional[str]
    name: str
    email: str
    phone: Optional[str]


class OrderServiceClient:
    """Client for the external Order service."""

    def __init__(self, base_url: str = ORDER_API_URL, timeout: float = ORDER_API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def create_order(self, payload: dict) -> Order:
        """
        Create an order. Not idempotent: every call may create a new order.

        Raises:
            OrderCreationError: with the service's reason string when it refuses.
        """
        try:
            body = _post_json(f"{self.base_url}/orders", payload, self.timeout)
        except CollaboratorError as e:
            raise OrderCreationError(str(e)) from e

        order = body.get("order") if isinstance(body.get("order"), dict) else body
        if not body.get("success", True) or not order.get("id"):
            raise OrderCreationError(body.get("error") or "Order service returned no order")

        return Order(
            id=str(order["id"]),
            order_number=order.get("orderNumber") or order.get("order_number") or order["id"],
            status=order.get("status") or payload.get("status") or "pending_payment",
        )

    def report_reminder_action(self, order_id: str, action: str) -> bool:
        """Record a resume-reminder action. Fire-and-forget."""
        if action not in REMINDER_ACTIONS:
            raise ValueError(f"Unknown reminder action: {action}")
        try:
            _post_json(
                f"{self.base_url}/orders/{order_id}/reminder-action",
                {"action": action},
                FIRE_AND_FORGET_TIMEOUT,
            )
            return True
        except CollaboratorError as e:
            logger.warning("Reminder action %s for order %s not recorded: %s", action, order_id, e)
            return False


class PaymentGatewayClient:
    """Client for the payment initialization endpoint (credit card only)."""

    def __init__(self, base_url: str = PAYMENT_API_URL, timeout: float = PAYMENT_INIT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def initialize(
        self,
        order_id: str,
        cart: Cart,
        customer: CustomerContact,
        delivery: Optional[dict] = None,
    ) -> RedirectPayload:
        payload = {
            "orderId": order_id,
            "cartItems": [item.model_dump() for item in cart.items],
            "customer": {
                "id": customer.customer_id,
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
            },
            "deliveryInfo": delivery or {},
            "totalAmount": cart.total_price(),
        }
        try:
            body = _post_json(f"{self.base_url}/payment/initialize", payload, self.timeout)
        except CollaboratorError as e:
            raise PaymentInitializationError(str(e)) from e

        content = body.get("threeDSHtmlContent") or body.get("checkoutFormContent")
        if not body.get("success") or not content:
            raise PaymentInitializationError(body.get("error") or "Payment initialization failed")

        return RedirectPayload(content=content, payment_id=body.get("paymentId"))


class AnalyticsClient:
    """Checkout funnel analytics. Failures never reach the customer."""

    def __init__(self, base_url: str = ANALYTICS_API_URL):
        self.base_url = base_url.rstrip("/")

    def checkout_started(self, session_id: str, cart: Cart) -> bool:
        try:
            _post_json(
                f"{self.base_url}/analytics/checkout-flow",
                {
                    "event": "checkout_started",
                    "sessionId": session_id,
                    "itemCount": cart.total_items(),
                    "value": cart.total_price(),
                },
                FIRE_AND_FORGET_TIMEOUT,
            )
            return True
        except CollaboratorError as e:
            logger.warning("checkout_started event not recorded: %s", e)
            return False


class AuthClient:
    """One-time-code login. Issuance and verification happen remotely."""

    def __init__(self, base_url: str = AUTH_API_URL, timeout: float = ORDER_API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def start_login(self, identifier: str) -> None:
        try:
            _post_json(f"{self.base_url}/customers/login/start", {"identifier": identifier}, self.timeout)
        except CollaboratorError as e:
            raise AuthenticationError(str(e)) from e

    def verify_login(self, identifier: str, code: str) -> MemberProfile:
        try:
            body = _post_json(
                f"{self.base_url}/customers/login/verify",
                {"identifier": identifier, "code": code},
                self.timeout,
            )
        except CollaboratorError as e:
            raise AuthenticationError(str(e)) from e

        customer: dict[str, Any] = body.get("customer") or {}
        if not customer.get("id"):
            raise AuthenticationError(body.get("error") or "Verification returned no customer")
        return _member_profile(customer)


class CustomerClient:
    """Member profiles and address book."""

    def __init__(self, base_url: str = CUSTOMER_API_URL, timeout: float = ORDER_API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def add_address(self, customer_id: str, address: dict) -> bool:
        try:
            _post_json(f"{self.base_url}/customers/{customer_id}/addresses", address, self.timeout)
            return True
        except CollaboratorError as e:
            logger.warning("Address for customer %s not saved: %s", customer_id, e)
            return False

    def get_profile(self, customer_id: str) -> MemberProfile:
        """
        Load a signed-in member's profile and saved addresses.

        Raises:
            AuthenticationError: when the customer is unknown or the call fails.
        """
        url = f"{self.base_url}/customers/{customer_id}"
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise AuthenticationError(f"Customer {customer_id} unavailable: {e}") from e

        customer = body.get("customer", body) if isinstance(body, dict) else {}
        return _member_profile(customer, fallback_id=customer_id)
