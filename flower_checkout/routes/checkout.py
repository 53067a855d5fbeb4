"""
Checkout Routes for Flower Checkout
===================================

This module exposes the checkout engine over HTTP. Each request loads the
CheckoutSession, runs one engine operation on it and saves it back.

Endpoints:
----------
- POST /checkout/sessions: Start a checkout
- GET /checkout/sessions/{id}: Current state
- PUT /checkout/sessions/{id}/cart: Replace the cart snapshot
- PUT /checkout/sessions/{id}/recipient: Update recipient details
- POST /checkout/sessions/{id}/saved-address: Fill recipient from the address book
- PUT /checkout/sessions/{id}/message: Update the card message
- PUT /checkout/sessions/{id}/identity: Choose guest or member
- POST /checkout/sessions/{id}/advance: One step forward (validated)
- POST /checkout/sessions/{id}/navigate: Host back gesture
- POST /checkout/sessions/{id}/steps/{step}: Jump back to an earlier step
- POST /checkout/sessions/{id}/login/start: Send a one-time code
- POST /checkout/sessions/{id}/login/verify: Verify the code
- POST /checkout/sessions/{id}/payment: Submit
- POST /checkout/sessions/{id}/payment/return: Back from 3-D Secure
- POST /checkout/sessions/{id}/resume: Resume a pending payment
- POST /checkout/sessions/{id}/dismiss: Dismiss a pending payment

Checkout Flow:
--------------
1. The storefront starts a checkout with its client id and cart snapshot.
   The response carries any restored draft, resume offer or failed payment.
2. Form updates are saved as they happen; /advance validates and moves on.
3. /payment either returns a 3-D Secure payload to navigate to, or a bank
   transfer confirmation.

Rate Limiting:
--------------
Starting a checkout and submitting payment are rate limited
(default: 60/minute per client address).
"""

import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..checkout.models import (
    Cart,
    CheckoutSession,
    CheckoutStep,
    GiftMessage,
    MemberProfile,
    PaymentMethod,
    RecipientDetails,
)
from ..checkout.payment_dispatcher import DispatchResult
from ..checkout.recipient_validator import FIELD_ORDER
from ..checkout.state_machine import CheckoutStateMachine, TransitionResult
from ..config import RATE_LIMIT_ENABLED, get_rate_limit_checkout
from ..db import get_db
from ..exceptions import AuthenticationError, DispatchInProgress, InvalidTransition
from ..schemas.checkout import (
    AddressSelectResponse,
    CartUpdateRequest,
    CheckoutSessionOut,
    CheckoutStartRequest,
    CheckoutStartResponse,
    DispatchResponse,
    FieldErrorOut,
    IdentityGateOut,
    IdentityRequest,
    IdentityResponse,
    LoginResponse,
    LoginStartRequest,
    LoginVerifyRequest,
    NavigateRequest,
    NavigateResponse,
    PaymentOutcomeOut,
    PaymentRequest,
    PaymentReturnRequest,
    RecipientUpdateRequest,
    ResumeOfferOut,
    SavedAddressSelectRequest,
    TransitionResponse,
)
from ..services.engine import CheckoutEngine, get_engine
from ..services.session import get_session, save_session


logger = logging.getLogger(__name__)

# Router definition
checkout_router = APIRouter(prefix="/checkout", tags=["Checkout"])

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


# =============================================================================
# Helper Functions
# =============================================================================

def _load_session(db: Session, session_id: str) -> CheckoutSession:
    session = get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return session


def _errors_out(errors: dict) -> List[FieldErrorOut]:
    """Field errors in the order the storefront scrolls through them."""
    def position(error) -> int:
        return FIELD_ORDER.index(error.field) if error.field in FIELD_ORDER else len(FIELD_ORDER)

    return [
        FieldErrorOut(field=e.field, code=e.code, message=e.message, kind=e.kind)
        for e in sorted(errors.values(), key=position)
    ]


def _session_out(machine: CheckoutStateMachine) -> CheckoutSessionOut:
    session = machine.session
    offer = machine.resume_offer()
    summary = None
    if session.step == CheckoutStep.SUCCESS and session.payment.method == PaymentMethod.BANK_TRANSFER:
        summary = machine.bank_transfer_summary()

    return CheckoutSessionOut(
        session_id=session.session_id,
        client_id=session.client_id,
        step=session.step,
        cart=session.cart,
        total=session.cart.total_price(),
        recipient=session.recipient,
        message=session.message,
        identity=session.identity,
        payment=session.payment,
        order=session.order,
        is_intercepting=machine.is_intercepting,
        identity_gate=IdentityGateOut(**asdict(machine.identity_gate())),
        resume_offer=ResumeOfferOut(**asdict(offer)) if offer else None,
        bank_transfer_summary=summary,
    )


def _transition_out(machine: CheckoutStateMachine, result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        ok=result.ok,
        step=result.step,
        errors=_errors_out(result.errors),
        first_error_field=result.first_error_field,
        session=_session_out(machine),
    )


def _dispatch_out(result: DispatchResult) -> DispatchResponse:
    return DispatchResponse(
        status=result.status.value,
        step=result.step,
        order=result.order,
        redirect_content=result.redirect.content if result.redirect else None,
        payment_id=result.redirect.payment_id if result.redirect else None,
        summary=result.summary,
        errors=_errors_out(result.errors),
        first_error_field=result.first_error_field,
        message=result.message,
    )


# =============================================================================
# Session Endpoints
# =============================================================================

@checkout_router.post("/sessions", response_model=CheckoutStartResponse, status_code=201)
@limiter.limit(get_rate_limit_checkout)
def start_checkout(
    request: Request,
    req: CheckoutStartRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutStartResponse:
    """
    Start a checkout.

    A signed-in customer (customer_id) skips the guest/member choice. The
    previous visit's draft, pending payment and failed payment are restored
    from the client's storage.
    """
    session = CheckoutSession(cart=req.cart)
    session.client_id = req.client_id or session.session_id
    machine = engine.machine(session)

    if req.customer_id:
        try:
            profile = engine.customer_client.get_profile(req.customer_id)
        except AuthenticationError as e:
            logger.warning("Profile for customer %s unavailable: %s", req.customer_id, e)
            profile = MemberProfile(customer_id=req.customer_id)
        machine.sign_in(profile)

    loaded = machine.load()
    save_session(db, session)
    logger.info("Checkout %s started (restored from %s)", session.session_id, loaded.restored_from)

    outcome = loaded.payment_outcome
    return CheckoutStartResponse(
        session=_session_out(machine),
        payment_outcome=PaymentOutcomeOut(status=outcome.status, message=outcome.message) if outcome else None,
        restored_from=loaded.restored_from,
        address_warning=loaded.address_warning,
    )


@checkout_router.get("/sessions/{session_id}", response_model=CheckoutSessionOut)
def get_checkout(
    session_id: str,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutSessionOut:
    """Current checkout state."""
    session = _load_session(db, session_id)
    return _session_out(engine.machine(session))


# =============================================================================
# Form Endpoints
# =============================================================================

@checkout_router.put("/sessions/{session_id}/cart", response_model=CheckoutSessionOut)
def update_cart(
    session_id: str,
    req: CartUpdateRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutSessionOut:
    """Replace the cart snapshot. Emptying the cart clears the saved draft."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    machine.update_cart(Cart(items=req.items))
    save_session(db, session)
    return _session_out(machine)


@checkout_router.put("/sessions/{session_id}/recipient", response_model=CheckoutSessionOut)
def update_recipient(
    session_id: str,
    req: RecipientUpdateRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutSessionOut:
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    recipient = RecipientDetails(**req.model_dump(exclude={"save_address_to_book", "address_title"}))
    machine.update_recipient(recipient, req.save_address_to_book, req.address_title)
    save_session(db, session)
    return _session_out(machine)


@checkout_router.post("/sessions/{session_id}/saved-address", response_model=AddressSelectResponse)
def select_saved_address(
    session_id: str,
    req: SavedAddressSelectRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> AddressSelectResponse:
    """Fill the recipient from one of the member's saved addresses."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        resolution = machine.select_saved_address(req.address_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Saved address not found")
    save_session(db, session)
    return AddressSelectResponse(
        supported=resolution.supported,
        warning=resolution.warning,
        session=_session_out(machine),
    )


@checkout_router.put("/sessions/{session_id}/message", response_model=CheckoutSessionOut)
def update_message(
    session_id: str,
    req: GiftMessage,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutSessionOut:
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    machine.update_message(req)
    save_session(db, session)
    return _session_out(machine)


@checkout_router.put("/sessions/{session_id}/identity", response_model=IdentityResponse)
def choose_identity(
    session_id: str,
    req: IdentityRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> IdentityResponse:
    """Continue as a guest (with contact details) or as a member (login follows)."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    if req.kind == "guest":
        gate = machine.choose_guest(req.email, req.phone)
    else:
        gate = machine.choose_member()
    save_session(db, session)
    return IdentityResponse(gate=IdentityGateOut(**asdict(gate)), session=_session_out(machine))


# =============================================================================
# Step Endpoints
# =============================================================================

@checkout_router.post("/sessions/{session_id}/advance", response_model=TransitionResponse)
def advance(
    session_id: str,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> TransitionResponse:
    """Move one step forward. Validation problems come back with ok=false."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        result = machine.advance()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_session(db, session)
    return _transition_out(machine, result)


@checkout_router.post("/sessions/{session_id}/navigate", response_model=NavigateResponse)
def navigate(
    session_id: str,
    req: NavigateRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> NavigateResponse:
    """
    Host back gesture.

    "intercepted" means the checkout went one step back and the storefront
    must stay on the page; "native" means the storefront lets the browser go back.
    """
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    outcome = machine.handle_navigation(req.intent)
    save_session(db, session)
    return NavigateResponse(outcome=outcome, step=session.step, is_intercepting=machine.is_intercepting)


@checkout_router.post("/sessions/{session_id}/steps/{step}", response_model=TransitionResponse)
def go_to_step(
    session_id: str,
    step: CheckoutStep,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> TransitionResponse:
    """Jump back to an earlier step. Forward jumps are refused with 409."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        result = machine.go_to(step)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_session(db, session)
    return _transition_out(machine, result)


# =============================================================================
# Login Endpoints
# =============================================================================

@checkout_router.post("/sessions/{session_id}/login/start", response_model=LoginResponse)
def login_start(
    session_id: str,
    req: LoginStartRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> LoginResponse:
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    error = machine.start_login(req.identifier)
    return LoginResponse(ok=error is None, error=error, session=_session_out(machine))


@checkout_router.post("/sessions/{session_id}/login/verify", response_model=LoginResponse)
def login_verify(
    session_id: str,
    req: LoginVerifyRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> LoginResponse:
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    result = machine.verify_login(req.identifier, req.code)
    if result.ok:
        save_session(db, session)
    return LoginResponse(ok=result.ok, error=result.error, session=_session_out(machine))


# =============================================================================
# Payment Endpoints
# =============================================================================

@checkout_router.post("/sessions/{session_id}/payment", response_model=DispatchResponse)
@limiter.limit(get_rate_limit_checkout)
def submit_payment(
    request: Request,
    session_id: str,
    req: PaymentRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> DispatchResponse:
    """
    Submit the checkout.

    Returns 409 while a previous submission for the same session is still
    creating its order.
    """
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        result = engine.dispatcher.dispatch(machine, req.method, req.accept_terms)
    except DispatchInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_session(db, session)
    return _dispatch_out(result)


@checkout_router.post("/sessions/{session_id}/payment/return", response_model=DispatchResponse)
def payment_return(
    session_id: str,
    req: PaymentReturnRequest,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> DispatchResponse:
    """
    Record the 3-D Secure verdict.

    Only the payment collaborator's callback handler calls this, relaying
    the gateway's result and payment id; it is not exposed to the storefront.
    A success whose payment id does not match the pending payment is a 409.
    """
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        result = engine.dispatcher.handle_return(machine, req.succeeded, req.message, req.payment_id)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_session(db, session)
    return _dispatch_out(result)


@checkout_router.post("/sessions/{session_id}/resume", response_model=TransitionResponse)
def resume_payment(
    session_id: str,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> TransitionResponse:
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    try:
        result = machine.resume_payment()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    save_session(db, session)
    return _transition_out(machine, result)


@checkout_router.post("/sessions/{session_id}/dismiss", response_model=CheckoutSessionOut)
def dismiss_payment(
    session_id: str,
    db: Session = Depends(get_db),
    engine: CheckoutEngine = Depends(get_engine),
) -> CheckoutSessionOut:
    """Dismiss the resume offer. The cart is kept."""
    session = _load_session(db, session_id)
    machine = engine.machine(session)
    machine.dismiss_resume()
    save_session(db, session)
    return _session_out(machine)
