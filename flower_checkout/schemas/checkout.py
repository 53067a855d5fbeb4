"""
Checkout Schemas for Flower Checkout
====================================

Request and response models for the checkout session endpoints.

Endpoint Coverage:
------------------
- POST /checkout/sessions: Start a checkout (restores draft, offers resume)
- GET /checkout/sessions/{id}: Current state
- PUT /checkout/sessions/{id}/cart|recipient|message|identity: Form updates
- POST /checkout/sessions/{id}/advance|navigate|steps/{step}: Step changes
- POST /checkout/sessions/{id}/login/start|login/verify: Inline member login
- POST /checkout/sessions/{id}/payment: Submit; POST .../payment/return: 3-D Secure return
- POST /checkout/sessions/{id}/resume|dismiss: Answer a resume offer

Validation problems are returned as data (FieldErrorOut lists) with HTTP 200,
so the storefront can render them next to the fields; HTTP errors are kept
for unknown sessions (404) and impossible transitions (409).
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..checkout.models import (
    BankTransferSummary,
    CartItem,
    Cart,
    CheckoutIdentity,
    CheckoutStep,
    GiftMessage,
    Order,
    PaymentMethod,
    PaymentSelection,
    RecipientDetails,
)
from ..checkout.state_machine import NavigationIntent, NavigationOutcome


# =============================================================================
# Shared output pieces
# =============================================================================

class FieldErrorOut(BaseModel):
    field: str
    code: str
    message: str
    kind: str = "validation"


class IdentityGateOut(BaseModel):
    open: bool
    reason: Optional[str] = None
    field: Optional[str] = None


class ResumeOfferOut(BaseModel):
    """A card payment that left for 3-D Secure and never came back."""
    order_id: str
    order_number: Optional[str | int] = None
    method: PaymentMethod
    started_at: datetime


class PaymentOutcomeOut(BaseModel):
    status: str
    message: str


class CheckoutSessionOut(BaseModel):
    """
    Full checkout state as the storefront renders it.

    Attributes:
        is_intercepting: Whether the next back gesture should be sent to
            /navigate instead of leaving the page
        identity_gate: Current payment gate answer (side-effect free)
        resume_offer: Pending payment the customer may resume or dismiss
        bank_transfer_summary: Confirmation data after a bank-transfer order
    """
    session_id: str
    client_id: str
    step: CheckoutStep
    cart: Cart
    total: float
    recipient: RecipientDetails
    message: GiftMessage
    identity: CheckoutIdentity
    payment: PaymentSelection
    order: Optional[Order] = None
    is_intercepting: bool
    identity_gate: IdentityGateOut
    resume_offer: Optional[ResumeOfferOut] = None
    bank_transfer_summary: Optional[BankTransferSummary] = None


# =============================================================================
# Requests
# =============================================================================

class CheckoutStartRequest(BaseModel):
    """
    Start a checkout.

    Attributes:
        client_id: Browser storage id; drafts and pending payments are kept per client
        cart: Cart snapshot from the storefront
        customer_id: Set when the customer is already signed in
    """
    client_id: Optional[str] = None
    cart: Cart = Field(default_factory=Cart)
    customer_id: Optional[str] = None


class CartUpdateRequest(BaseModel):
    items: List[CartItem] = Field(default_factory=list)


class RecipientUpdateRequest(RecipientDetails):
    save_address_to_book: Optional[bool] = None
    address_title: Optional[str] = None


class SavedAddressSelectRequest(BaseModel):
    address_id: str


class IdentityRequest(BaseModel):
    kind: Literal["guest", "member"]
    email: str = ""
    phone: str = ""


class NavigateRequest(BaseModel):
    intent: NavigationIntent = NavigationIntent.BACK


class LoginStartRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="E-mail or mobile number")


class LoginVerifyRequest(BaseModel):
    identifier: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)


class PaymentRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    accept_terms: bool = False


class PaymentReturnRequest(BaseModel):
    """
    Verdict relayed from the payment collaborator's 3-D Secure callback.

    Attributes:
        succeeded: Whether the gateway completed the payment
        payment_id: Gateway payment id; required for a success
        message: Gateway failure reason, shown on the next visit
    """
    succeeded: bool
    payment_id: Optional[str] = None
    message: Optional[str] = None


# =============================================================================
# Responses
# =============================================================================

class CheckoutStartResponse(BaseModel):
    session: CheckoutSessionOut
    payment_outcome: Optional[PaymentOutcomeOut] = None
    restored_from: Optional[str] = None
    address_warning: Optional[str] = None


class TransitionResponse(BaseModel):
    ok: bool
    step: CheckoutStep
    errors: List[FieldErrorOut] = []
    first_error_field: Optional[str] = None
    session: CheckoutSessionOut


class NavigateResponse(BaseModel):
    outcome: NavigationOutcome
    step: CheckoutStep
    is_intercepting: bool


class AddressSelectResponse(BaseModel):
    supported: bool
    warning: Optional[str] = None
    session: CheckoutSessionOut


class IdentityResponse(BaseModel):
    gate: IdentityGateOut
    session: CheckoutSessionOut


class LoginResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    session: CheckoutSessionOut


class DispatchResponse(BaseModel):
    """
    Result of submitting the payment step.

    status is one of: redirect, awaiting_bank_transfer, validation_failed,
    order_failed, payment_init_failed, paid, payment_failed. For "redirect"
    the storefront navigates away carrying redirect_content unchanged.
    """
    status: str
    step: CheckoutStep
    order: Optional[Order] = None
    redirect_content: Optional[str] = None
    payment_id: Optional[str] = None
    summary: Optional[BankTransferSummary] = None
    errors: List[FieldErrorOut] = []
    first_error_field: Optional[str] = None
    message: Optional[str] = None
