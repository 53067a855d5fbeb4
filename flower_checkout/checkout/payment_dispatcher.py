"""
Payment dispatch.

Turns a checkout on the payment step into an order:

1. Re-check the identity gate, terms acceptance and the recipient step
   against a freshly fetched configuration. Earlier gating can be stale:
   an off day or a closed district may have been published since.
2. Create the order. The Order service does not deduplicate, so only one
   dispatch per session may be in flight at a time.
3. Branch on the payment method:
   - bank_transfer: the order waits for the transfer; a summary is kept
     for the confirmation view and the cart and form stay as they are
   - credit_card: initialize the payment, write the abandonment marker,
     then hand the opaque 3-D Secure payload to the caller for redirect

A failure at step 2 or 3 leaves the checkout on payment with submission
re-enabled. No marker is written unless both an order and a redirect
payload exist.
"""

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..clients import CustomerClient, OrderServiceClient, PaymentGatewayClient, RedirectPayload
from ..exceptions import DispatchInProgress, InvalidTransition, OrderCreationError, PaymentInitializationError
from ..remote_config import DeliveryConfigProvider
from .delivery_calendar import normalize_time_slot
from .identity import CheckoutIdentityResolver
from .messages import CheckoutMessages
from .models import (
    AbandonmentMarker,
    BankTransferSummary,
    CheckoutSession,
    CheckoutStep,
    IdentityKind,
    Order,
    PaymentMethod,
    PaymentOutcome,
)
from .parsers import normalize_tr_mobile_digits
from .recipient_validator import FieldError
from .region_policy import province_label
from .state_machine import CheckoutStateMachine

logger = logging.getLogger(__name__)


class DispatchStatus(str, Enum):
    REDIRECT = "redirect"
    AWAITING_BANK_TRANSFER = "awaiting_bank_transfer"
    VALIDATION_FAILED = "validation_failed"
    ORDER_FAILED = "order_failed"
    PAYMENT_INIT_FAILED = "payment_init_failed"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    step: CheckoutStep
    order: Optional[Order] = None
    redirect: Optional[RedirectPayload] = None
    summary: Optional[BankTransferSummary] = None
    errors: dict = field(default_factory=dict)
    first_error_field: Optional[str] = None
    message: Optional[str] = None


def build_order_payload(session: CheckoutSession, method: Optional[PaymentMethod] = None) -> dict:
    """Snapshot of cart, recipient, message and identity for the Order service."""
    recipient = session.recipient
    method = method or session.payment.method
    identity = session.identity

    payload = {
        "items": [
            {
                "productId": item.product_id,
                "name": item.name,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
            }
            for item in session.cart.items
        ],
        "totalAmount": session.cart.total_price(),
        "paymentMethod": method.value,
        "status": "awaiting_payment" if method == PaymentMethod.BANK_TRANSFER else "pending_payment",
        "customerId": identity.customer_id,
        "recipient": {
            "name": recipient.name.strip(),
            "phone": normalize_tr_mobile_digits(recipient.phone),
            "province": province_label(recipient.district, recipient.region),
            "district": recipient.district,
            "neighborhood": recipient.neighborhood,
            "address": recipient.full_address(),
            "notes": recipient.notes,
        },
        "delivery": {
            "date": recipient.delivery_date,
            "timeSlot": normalize_time_slot(recipient.delivery_time_slot),
        },
        "message": {
            "content": session.message.content,
            "senderName": session.message.sender_name,
            "isGift": session.message.is_gift,
        },
    }
    if identity.kind == IdentityKind.GUEST and identity.guest:
        payload["guest"] = {
            "email": identity.guest.email,
            "phone": normalize_tr_mobile_digits(identity.guest.phone),
        }
    return payload


def order_fingerprint(payload: dict) -> str:
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class PaymentDispatcher:
    """
    Shared by all sessions; one dispatch per session may run at a time.
    """

    def __init__(
        self,
        config_provider: DeliveryConfigProvider,
        order_service: Optional[OrderServiceClient] = None,
        payment_gateway: Optional[PaymentGatewayClient] = None,
        customer_client: Optional[CustomerClient] = None,
        identity: Optional[CheckoutIdentityResolver] = None,
    ):
        self.config_provider = config_provider
        self.order_service = order_service or OrderServiceClient()
        self.payment_gateway = payment_gateway or PaymentGatewayClient()
        self.customer_client = customer_client or CustomerClient()
        self.identity = identity or CheckoutIdentityResolver()
        self._in_flight: set[str] = set()
        self._guard = threading.Lock()

    def is_in_flight(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._in_flight

    def _claim(self, session_id: str) -> None:
        with self._guard:
            if session_id in self._in_flight:
                raise DispatchInProgress(f"Checkout {session_id} is already submitting")
            self._in_flight.add(session_id)

    def _release(self, session_id: str) -> None:
        with self._guard:
            self._in_flight.discard(session_id)

    def dispatch(
        self,
        machine: CheckoutStateMachine,
        method: Optional[PaymentMethod] = None,
        accept_terms: Optional[bool] = None,
    ) -> DispatchResult:
        """
        Submit the checkout.

        A method and terms acceptance passed here are applied only once this
        session holds the in-flight claim, so a rejected repeat submission
        never changes the selection of the one that is running.

        Raises:
            InvalidTransition: when the checkout is not on the payment step.
            DispatchInProgress: when this session is already submitting.
        """
        session = machine.session
        if session.step != CheckoutStep.PAYMENT:
            raise InvalidTransition(f"Cannot pay from {session.step.value}")

        self._claim(session.session_id)
        session.payment.is_processing = True
        try:
            if method is not None:
                machine.select_payment(method, bool(accept_terms))
            return self._dispatch(machine, session.payment.method)
        finally:
            session.payment.is_processing = False
            self._release(session.session_id)

    def _dispatch(self, machine: CheckoutStateMachine, method: PaymentMethod) -> DispatchResult:
        session = machine.session

        problem = self._payment_step_problem(machine)
        if problem:
            return DispatchResult(
                status=DispatchStatus.VALIDATION_FAILED,
                step=session.step,
                errors={problem.field: problem},
                first_error_field=problem.field,
                message=problem.message,
            )

        validation = machine.validate_recipient(self.config_provider.refresh())
        if not validation.ok:
            logger.info("Checkout %s sent back to recipient step on re-validation", session.session_id)
            machine.go_to(CheckoutStep.RECIPIENT)
            return DispatchResult(
                status=DispatchStatus.VALIDATION_FAILED,
                step=session.step,
                errors=dict(validation.errors),
                first_error_field=validation.first_error_field,
                message=validation.first_error.message,
            )

        payload = build_order_payload(session, method)
        fingerprint = order_fingerprint(payload)
        order = self._reusable_order(session, method, fingerprint)
        if order is None:
            try:
                order = self.order_service.create_order(payload)
            except OrderCreationError as e:
                logger.error("Order creation failed for checkout %s: %s", session.session_id, e)
                return DispatchResult(
                    status=DispatchStatus.ORDER_FAILED,
                    step=session.step,
                    message=CheckoutMessages.ORDER_FAILED,
                )
            session.order = order
            session.order_fingerprint = fingerprint
            logger.info("Order %s created for checkout %s", order.order_number, session.session_id)
            self._save_address_to_book(session)
        else:
            logger.info("Retrying payment for existing order %s", order.order_number)

        if method == PaymentMethod.BANK_TRANSFER:
            return self._complete_bank_transfer(machine, order)
        return self._start_card_payment(machine, order)

    @staticmethod
    def _reusable_order(session: CheckoutSession, method: PaymentMethod, fingerprint: str) -> Optional[Order]:
        """
        A pending card order whose payment never got initialized is reused
        when nothing in the order snapshot has changed since.
        """
        order = session.order
        if order is None or order.status != "pending_payment":
            return None
        if method != PaymentMethod.CREDIT_CARD:
            return None
        if session.order_fingerprint != fingerprint:
            return None
        return order

    def _payment_step_problem(self, machine: CheckoutStateMachine) -> Optional[FieldError]:
        session = machine.session
        if session.cart.is_empty():
            return FieldError("cart", "empty", CheckoutMessages.EMPTY_CART)
        gate = self.identity.gate(session.identity)
        if not gate.open:
            return FieldError(gate.field or "identity", "identity", gate.reason or "", "identity")
        if not session.payment.accept_terms:
            return FieldError("accept_terms", "required", CheckoutMessages.TERMS_REQUIRED)
        return None

    def _complete_bank_transfer(self, machine: CheckoutStateMachine, order: Order) -> DispatchResult:
        session = machine.session
        order = order.model_copy(update={"status": "awaiting_payment"})
        summary = BankTransferSummary(
            order_id=order.id,
            order_number=order.order_number,
            total=session.cart.total_price(),
            items=[item.model_copy() for item in session.cart.items],
        )
        machine.persistence.save_bank_transfer_summary(summary)
        # Cart, form and draft are kept for the summary view
        machine.mark_succeeded(order, clear_draft=False)
        return DispatchResult(
            status=DispatchStatus.AWAITING_BANK_TRANSFER,
            step=session.step,
            order=order,
            summary=summary,
        )

    def _start_card_payment(self, machine: CheckoutStateMachine, order: Order) -> DispatchResult:
        session = machine.session
        contact = self.identity.customer_contact(session.identity, session.recipient, session.member)
        delivery = {
            "date": session.recipient.delivery_date,
            "timeSlot": normalize_time_slot(session.recipient.delivery_time_slot),
            "district": session.recipient.district,
        }
        try:
            redirect = self.payment_gateway.initialize(order.id, session.cart, contact, delivery)
        except PaymentInitializationError as e:
            # The order stays pending; an unchanged retry initializes against it again
            logger.error("Payment initialization failed for order %s: %s", order.id, e)
            return DispatchResult(
                status=DispatchStatus.PAYMENT_INIT_FAILED,
                step=session.step,
                order=order,
                message=CheckoutMessages.PAYMENT_INIT_FAILED,
            )

        machine.persistence.write_marker(AbandonmentMarker(
            order_id=order.id,
            order_number=order.order_number,
            payment_id=redirect.payment_id,
            method=PaymentMethod.CREDIT_CARD,
        ))
        return DispatchResult(
            status=DispatchStatus.REDIRECT,
            step=session.step,
            order=order,
            redirect=redirect,
        )

    def _save_address_to_book(self, session: CheckoutSession) -> None:
        if not (session.save_address_to_book and session.identity.is_authenticated):
            return
        if session.recipient.saved_address_id:
            return
        recipient = session.recipient
        self.customer_client.add_address(session.identity.customer_id, {
            "title": session.address_title or recipient.district,
            "recipientName": recipient.name,
            "recipientPhone": normalize_tr_mobile_digits(recipient.phone),
            "province": province_label(recipient.district, recipient.region),
            "district": recipient.district,
            "neighborhood": recipient.neighborhood,
            "street": recipient.street,
            "buildingNumber": recipient.building_number,
            "apartment": recipient.apartment,
        })

    def handle_return(
        self,
        machine: CheckoutStateMachine,
        succeeded: bool,
        message: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> DispatchResult:
        """
        Handle the browser coming back from the 3-D Secure page.

        The outcome is the payment collaborator's verdict relayed by its
        callback, never something the customer reports. A success must carry
        the payment id the gateway issued for the pending payment.

        Success drops the marker and the draft and completes the checkout.
        Failure records the outcome for the next load and keeps the marker,
        so the customer can still resume.

        Raises:
            InvalidTransition: a success whose payment id does not match the
                pending payment.
        """
        session = machine.session
        marker = machine.persistence.read_marker()

        if succeeded:
            if marker is not None and marker.payment_id and payment_id != marker.payment_id:
                logger.warning(
                    "Payment confirmation for checkout %s does not match its pending payment", session.session_id
                )
                raise InvalidTransition("Payment confirmation does not match the pending payment")
            machine.persistence.clear_marker()
            machine.persistence.clear_draft()
            if session.step == CheckoutStep.SUCCESS:
                return DispatchResult(status=DispatchStatus.PAID, step=session.step, order=session.order)
            if session.step != CheckoutStep.PAYMENT:
                # The bank confirmed the payment; where the page was left no longer matters
                session.step = CheckoutStep.PAYMENT
            order = session.order
            if order is None and marker is not None:
                order = Order(id=marker.order_id, order_number=marker.order_number or marker.order_id)
            machine.mark_succeeded(order, clear_draft=True)
            return DispatchResult(status=DispatchStatus.PAID, step=session.step, order=session.order)

        failure = message or CheckoutMessages.PAYMENT_FAILED
        machine.persistence.record_outcome(PaymentOutcome(message=failure))
        logger.info("Card payment for checkout %s did not complete", session.session_id)
        return DispatchResult(
            status=DispatchStatus.PAYMENT_FAILED,
            step=session.step,
            order=session.order,
            message=failure,
        )
