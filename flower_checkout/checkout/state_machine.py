"""
Checkout state machine.

Steps: cart -> recipient -> message -> payment -> success (terminal).

Forward transitions are gated:
- cart -> recipient: the cart has at least one item
- recipient -> message: RecipientFormValidator passes on the full snapshot
- message -> payment: always (the optional sender-name gate is off by default)
- payment -> success: only through PaymentDispatcher / mark_succeeded()

Backward transitions are never validated. A host back gesture arrives as a
NavigationIntent.BACK: anywhere past the cart it becomes exactly one step
back and the interception stays armed for the next gesture; on the cart it
is left to the host.

Every change is mirrored to SessionPersistence, which applies its own
write gate.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..clients import AnalyticsClient, OrderServiceClient
from ..config import REQUIRE_SENDER_NAME
from ..exceptions import InvalidTransition
from ..remote_config import DeliveryConfig, DeliveryConfigProvider
from .identity import CheckoutIdentityResolver, IdentityGate, LoginResult
from .messages import CheckoutMessages
from .models import (
    STEP_ORDER,
    BankTransferSummary,
    Cart,
    CheckoutSession,
    CheckoutStep,
    GiftMessage,
    IdentityKind,
    MemberProfile,
    Order,
    PaymentMethod,
    PaymentOutcome,
    RecipientDetails,
    SavedAddress,
)
from .persistence import SessionPersistence
from .recipient_validator import FieldError, RecipientFormValidator, RecipientValidation
from .region_policy import AddressResolution, RegionAvailabilityPolicy

logger = logging.getLogger(__name__)


class NavigationIntent(str, Enum):
    BACK = "back"


class NavigationOutcome(str, Enum):
    INTERCEPTED = "intercepted"  # translated into one backward step
    NATIVE = "native"  # left to the host (leave the page)


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    step: CheckoutStep
    errors: dict = field(default_factory=dict)
    first_error_field: Optional[str] = None

    @property
    def first_error(self) -> Optional[FieldError]:
        if self.first_error_field is None:
            return None
        return self.errors.get(self.first_error_field)


@dataclass(frozen=True)
class ResumeOffer:
    """A payment attempt that left the page without coming back."""
    order_id: str
    order_number: Optional[str | int]
    method: PaymentMethod
    started_at: datetime


@dataclass(frozen=True)
class LoadResult:
    resume_offer: Optional[ResumeOffer] = None
    payment_outcome: Optional[PaymentOutcome] = None
    restored_from: Optional[str] = None  # "saved_address" or "draft"
    address_warning: Optional[str] = None


class CheckoutStateMachine:
    """
    Drives one CheckoutSession through its steps.

    Args:
        session: The aggregate; mutated in place.
        persistence: Client-local storage for this session's namespace.
        config_provider: Source of the delivery calendar and region policies.
        identity: Guest/member resolver.
        analytics: Receives "checkout started" on every entry to payment.
        order_service: Receives resume-reminder actions.
        require_sender_name: Extra message -> payment gate.
    """

    def __init__(
        self,
        session: CheckoutSession,
        persistence: SessionPersistence,
        config_provider: DeliveryConfigProvider,
        identity: Optional[CheckoutIdentityResolver] = None,
        analytics: Optional[AnalyticsClient] = None,
        order_service: Optional[OrderServiceClient] = None,
        require_sender_name: bool = REQUIRE_SENDER_NAME,
    ):
        self.session = session
        self.persistence = persistence
        self.config_provider = config_provider
        self.identity = identity or CheckoutIdentityResolver()
        self.analytics = analytics or AnalyticsClient()
        self.order_service = order_service or OrderServiceClient()
        self.require_sender_name = require_sender_name

    @property
    def step(self) -> CheckoutStep:
        return self.session.step

    # =========================================================================
    # Forward
    # =========================================================================

    def advance(self) -> TransitionResult:
        """Try to move one step forward. Field problems come back in the result."""
        step = self.session.step
        if step == CheckoutStep.SUCCESS:
            raise InvalidTransition("Checkout is already complete")
        if step == CheckoutStep.PAYMENT:
            raise InvalidTransition("Payment completes through the payment dispatcher")

        if step == CheckoutStep.CART:
            if self.session.cart.is_empty():
                return self._blocked({"cart": FieldError("cart", "empty", CheckoutMessages.EMPTY_CART)})
            return self._move_to(CheckoutStep.RECIPIENT)

        if step == CheckoutStep.RECIPIENT:
            validation = self.validate_recipient()
            if not validation.ok:
                return TransitionResult(
                    ok=False,
                    step=step,
                    errors=dict(validation.errors),
                    first_error_field=validation.first_error_field,
                )
            return self._move_to(CheckoutStep.MESSAGE)

        if self.require_sender_name and not self.session.message.sender_name.strip():
            return self._blocked({
                "sender_name": FieldError("sender_name", "required", CheckoutMessages.SENDER_NAME_REQUIRED)
            })
        return self._move_to(CheckoutStep.PAYMENT)

    def validate_recipient(self, config: Optional[DeliveryConfig] = None) -> RecipientValidation:
        """
        Validate the recipient step against `config`, or the current snapshot.

        Getting the snapshot waits for the first configuration load (or its
        fallback), so the answer is never based on half-loaded settings.
        """
        config = config or self.config_provider.get()
        regions = self.config_provider.regions(config)
        validator = RecipientFormValidator(self.config_provider.calendar(config), regions)
        return validator.validate(self.session.recipient, self.saved_address_warning(regions))

    def saved_address_warning(self, regions: RegionAvailabilityPolicy) -> Optional[str]:
        address = self._selected_saved_address()
        if address is None:
            return None
        return regions.resolve_saved_address(address).warning

    def _selected_saved_address(self) -> Optional[SavedAddress]:
        address_id = self.session.recipient.saved_address_id
        if not address_id or self.session.member is None:
            return None
        return self.session.member.find_address(address_id)

    def _blocked(self, errors: dict) -> TransitionResult:
        return TransitionResult(
            ok=False,
            step=self.session.step,
            errors=errors,
            first_error_field=next(iter(errors)),
        )

    def _move_to(self, step: CheckoutStep) -> TransitionResult:
        self.session.step = step
        if step == CheckoutStep.PAYMENT:
            self._on_enter_payment()
        self._mirror()
        logger.info("Checkout %s moved to %s", self.session.session_id, step.value)
        return TransitionResult(ok=True, step=step)

    def _on_enter_payment(self) -> None:
        self.session.identity = self.identity.prefill_guest_phone(
            self.session.identity, self.session.recipient
        )
        # Fires on every entry, including after going back and forward again
        self.analytics.checkout_started(self.session.session_id, self.session.cart)

    # =========================================================================
    # Backward and navigation intents
    # =========================================================================

    def go_back(self) -> TransitionResult:
        """One step back. Never validates; on the cart or after success there is nowhere to go."""
        step = self.session.step
        if step in (CheckoutStep.CART, CheckoutStep.SUCCESS):
            return TransitionResult(ok=False, step=step)
        previous = STEP_ORDER[STEP_ORDER.index(step) - 1]
        self.session.step = previous
        self._mirror()
        return TransitionResult(ok=True, step=previous)

    def go_to(self, target: CheckoutStep) -> TransitionResult:
        """Jump back to an earlier step (the stepper). Forward jumps are refused."""
        step = self.session.step
        if step == CheckoutStep.SUCCESS:
            raise InvalidTransition("Checkout is already complete")
        if STEP_ORDER.index(target) > STEP_ORDER.index(step):
            raise InvalidTransition(f"Cannot jump forward from {step.value} to {target.value}")
        if target != step:
            self.session.step = target
            self._mirror()
        return TransitionResult(ok=True, step=target)

    @property
    def is_intercepting(self) -> bool:
        """Whether the next back gesture will be consumed by the checkout."""
        return self.session.step not in (CheckoutStep.CART, CheckoutStep.SUCCESS)

    def handle_navigation(self, intent: NavigationIntent) -> NavigationOutcome:
        if intent != NavigationIntent.BACK:
            raise ValueError(f"Unsupported navigation intent: {intent}")
        if not self.is_intercepting:
            return NavigationOutcome.NATIVE
        self.go_back()
        return NavigationOutcome.INTERCEPTED

    # =========================================================================
    # Completion
    # =========================================================================

    def mark_succeeded(self, order: Optional[Order] = None, clear_draft: bool = True) -> None:
        if self.session.step != CheckoutStep.PAYMENT:
            raise InvalidTransition(f"Cannot complete checkout from {self.session.step.value}")
        if order is not None:
            self.session.order = order
        self.session.step = CheckoutStep.SUCCESS
        self.session.payment.is_processing = False
        if clear_draft:
            self.persistence.clear_draft()
        logger.info("Checkout %s succeeded", self.session.session_id)

    def bank_transfer_summary(self) -> Optional[BankTransferSummary]:
        return self.persistence.load_bank_transfer_summary()

    # =========================================================================
    # Form updates
    # =========================================================================

    def update_cart(self, cart: Cart) -> None:
        """Replace the cart snapshot. An empty cart wipes storage and returns to the cart step."""
        self.session.cart = cart
        if self.persistence.on_cart_changed(cart):
            if self.session.step != CheckoutStep.SUCCESS:
                self.session.step = CheckoutStep.CART
            return
        self._mirror()

    def update_recipient(
        self,
        recipient: RecipientDetails,
        save_address_to_book: Optional[bool] = None,
        address_title: Optional[str] = None,
    ) -> None:
        self.session.recipient = recipient
        if save_address_to_book is not None:
            self.session.save_address_to_book = save_address_to_book
        if address_title is not None:
            self.session.address_title = address_title
        self._mirror()

    def select_saved_address(self, address_id: str) -> AddressResolution:
        """
        Fill the recipient from a saved address.

        Unsupported addresses are still applied so the customer sees their
        data; validation keeps blocking until they choose another one.
        """
        member = self.session.member
        address = member.find_address(address_id) if member else None
        if address is None:
            raise KeyError(address_id)
        regions = self.config_provider.regions()
        self.session.recipient = self._recipient_from_address(address, self.session.recipient, regions)
        self._mirror()
        return regions.resolve_saved_address(address)

    def update_message(self, message: GiftMessage) -> None:
        self.session.message = message
        self._mirror()

    def select_payment(self, method: PaymentMethod, accept_terms: bool) -> None:
        self.session.payment.method = method
        self.session.payment.accept_terms = accept_terms

    @staticmethod
    def _recipient_from_address(
        address: SavedAddress,
        base: RecipientDetails,
        regions: RegionAvailabilityPolicy,
    ) -> RecipientDetails:
        # Delivery date, time slot and notes are not part of an address
        return base.model_copy(update={
            "name": address.recipient_name,
            "phone": address.recipient_phone,
            "region": regions.region_for_district(address.district) or "",
            "district": address.district,
            "neighborhood": address.neighborhood,
            "street": address.street,
            "building_number": address.building_number,
            "apartment": address.apartment,
            "saved_address_id": address.id,
        })

    # =========================================================================
    # Identity
    # =========================================================================

    def identity_gate(self) -> IdentityGate:
        return self.identity.gate(self.session.identity)

    def choose_guest(self, email: str = "", phone: str = "") -> IdentityGate:
        self.session.identity = self.identity.choose_guest(self.session.identity, email, phone)
        self._mirror()
        return self.identity_gate()

    def choose_member(self) -> IdentityGate:
        self.session.identity = self.identity.choose_member(self.session.identity)
        return self.identity_gate()

    def sign_in(self, profile: MemberProfile) -> None:
        """Resolve an already-authenticated member; the identity choice is skipped."""
        self.session.identity = self.identity.authenticate(profile.customer_id)
        self.session.member = profile

    def start_login(self, identifier: str) -> Optional[str]:
        return self.identity.start_login(identifier)

    def verify_login(self, identifier: str, code: str) -> LoginResult:
        result = self.identity.verify_code(self.session.identity, identifier, code)
        if result.ok:
            self.session.identity = result.identity
            self.session.member = result.profile
        return result

    # =========================================================================
    # Load / resume
    # =========================================================================

    def load(self) -> LoadResult:
        """
        Restore what a previous visit left behind.

        - A pending payment marker becomes a ResumeOffer; "shown" is reported
          to the Order service once per marker.
        - The last failed payment outcome is returned and forgotten.
        - The form comes from the member's saved address when there is one,
          otherwise from the draft as it was saved.

        Off days and region settings are fetched again first. An empty cart
        restores nothing and wipes what the previous visit stored.
        """
        self.config_provider.refresh()
        if self.persistence.on_cart_changed(self.session.cart):
            return LoadResult()

        offer = self.resume_offer(report=True)
        outcome = self.persistence.consume_outcome()
        restored_from, warning = self._restore_form()
        return LoadResult(
            resume_offer=offer,
            payment_outcome=outcome,
            restored_from=restored_from,
            address_warning=warning,
        )

    def resume_offer(self, report: bool = False) -> Optional[ResumeOffer]:
        marker = self.persistence.read_marker()
        if marker is None:
            return None
        if report and not marker.reminder_shown_reported:
            self.order_service.report_reminder_action(marker.order_id, "shown")
            marker = self.persistence.mark_reminder_shown(marker)
        return ResumeOffer(
            order_id=marker.order_id,
            order_number=marker.order_number,
            method=marker.method,
            started_at=marker.started_at,
        )

    def _restore_form(self) -> tuple[Optional[str], Optional[str]]:
        draft = self.persistence.load_draft()
        member = self.session.member
        address = member.default_address() if member and self.session.identity.is_authenticated else None

        if draft is not None:
            self.session.message = draft.message
            self.session.save_address_to_book = draft.save_address_to_book
            self.session.address_title = draft.address_title

        if address is not None:
            regions = self.config_provider.regions()
            base = draft.recipient if draft is not None else self.session.recipient
            self.session.recipient = self._recipient_from_address(address, base, regions)
            return "saved_address", regions.resolve_saved_address(address).warning

        if draft is None:
            return None, None

        self.session.recipient = draft.recipient
        if draft.guest is not None and not self.session.identity.is_authenticated:
            self.session.identity = self.session.identity.model_copy(
                update={"kind": IdentityKind.GUEST, "guest": draft.guest}
            )
        return "draft", None

    def resume_payment(self) -> TransitionResult:
        """Go back to payment for the order behind the marker, and drop the marker."""
        marker = self.persistence.read_marker()
        if marker is None:
            raise InvalidTransition("There is no pending payment to resume")
        if self.session.step == CheckoutStep.SUCCESS or self.session.cart.is_empty():
            raise InvalidTransition("Nothing left to pay for")

        self.persistence.clear_marker()
        self.order_service.report_reminder_action(marker.order_id, "resume")
        return self._move_to(CheckoutStep.PAYMENT)

    def dismiss_resume(self) -> bool:
        """Drop the marker and keep the cart. Returns False when there was nothing to dismiss."""
        marker = self.persistence.read_marker()
        if marker is None:
            return False
        self.persistence.clear_marker()
        self.order_service.report_reminder_action(marker.order_id, "dismiss")
        return True

    def _mirror(self) -> None:
        self.persistence.save_draft(self.session)
