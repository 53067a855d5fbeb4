"""
Pydantic models for the checkout aggregate.

The CheckoutSession is the single source of truth for one customer's
in-progress checkout:
- CheckoutSession (root)
  - Cart (items)
  - RecipientDetails
  - GiftMessage
  - CheckoutIdentity (undecided | guest | member)
  - PaymentSelection
  - MemberProfile (signed-in members only)
  - Order (once created)

Orders, abandonment markers and saved addresses are records exchanged with
collaborators or persisted storage.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal
import uuid

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckoutStep(str, Enum):
    """Steps of the checkout flow, in forward order."""
    CART = "cart"
    RECIPIENT = "recipient"
    MESSAGE = "message"
    PAYMENT = "payment"
    SUCCESS = "success"  # terminal


STEP_ORDER: list[CheckoutStep] = [
    CheckoutStep.CART,
    CheckoutStep.RECIPIENT,
    CheckoutStep.MESSAGE,
    CheckoutStep.PAYMENT,
    CheckoutStep.SUCCESS,
]


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"


class IdentityKind(str, Enum):
    UNDECIDED = "undecided"
    GUEST = "guest"
    MEMBER = "member"


# =============================================================================
# Cart
# =============================================================================

class CartItem(BaseModel):
    """A single line in the cart."""
    product_id: str
    name: str
    unit_price: float = 0.0
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class Cart(BaseModel):
    """Cart snapshot. The cart itself is owned elsewhere; checkout only reads it."""
    items: list[CartItem] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(item.quantity > 0 for item in self.items)

    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def total_price(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)


# =============================================================================
# Members and saved addresses
# =============================================================================

class SavedAddress(BaseModel):
    """An address from a member's address book."""
    id: str
    title: str = ""
    recipient_name: str = ""
    recipient_phone: str = ""
    province: str = ""
    district: str = ""
    neighborhood: str = ""
    street: str = ""
    building_number: str = ""
    apartment: str = ""
    is_default: bool = False


class MemberProfile(BaseModel):
    """What the authentication collaborator knows about a signed-in member."""
    customer_id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    addresses: list[SavedAddress] = Field(default_factory=list)

    def default_address(self) -> SavedAddress | None:
        if not self.addresses:
            return None
        for address in self.addresses:
            if address.is_default:
                return address
        return self.addresses[0]

    def find_address(self, address_id: str) -> SavedAddress | None:
        for address in self.addresses:
            if address.id == address_id:
                return address
        return None


# =============================================================================
# Recipient / message / identity / payment
# =============================================================================

class RecipientDetails(BaseModel):
    """Everything collected on the recipient (delivery) step."""
    name: str = ""
    phone: str = ""
    region: str = ""  # "avrupa" or "anadolu"
    district: str = ""
    neighborhood: str = ""
    street: str = ""
    building_number: str = ""
    apartment: str = ""  # optional
    delivery_date: str = ""  # ISO YYYY-MM-DD, store-local
    delivery_time_slot: str = ""
    notes: str = ""
    saved_address_id: str | None = None

    def full_address(self) -> str:
        """Single-line street address as the Order service stores it."""
        parts = [self.street.strip()]
        if self.building_number.strip():
            parts.append(f"No: {self.building_number.strip()}")
        if self.apartment.strip():
            parts.append(f"Daire: {self.apartment.strip()}")
        return ", ".join(p for p in parts if p)


class GiftMessage(BaseModel):
    """Optional card message printed with the bouquet."""
    content: str = ""
    sender_name: str = ""
    is_gift: bool = True


class GuestContact(BaseModel):
    email: str = ""
    phone: str = ""


class CheckoutIdentity(BaseModel):
    """Who is checking out: nobody decided yet, a guest, or a signed-in member."""
    kind: IdentityKind = IdentityKind.UNDECIDED
    guest: GuestContact | None = None
    customer_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.kind == IdentityKind.MEMBER and bool(self.customer_id)


class PaymentSelection(BaseModel):
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    accept_terms: bool = False
    is_processing: bool = False


# =============================================================================
# Records exchanged with collaborators and storage
# =============================================================================

class Order(BaseModel):
    """Opaque order produced by the Order service."""
    id: str
    order_number: str | int
    status: str = "pending_payment"


class AbandonmentMarker(BaseModel):
    """Written the moment a payment attempt leaves the page."""
    started_at: datetime = Field(default_factory=_utcnow)
    order_id: str
    order_number: str | int | None = None
    payment_id: str | None = None
    method: PaymentMethod
    reminder_shown_reported: bool = False


class PaymentOutcome(BaseModel):
    """Last terminal payment-attempt outcome, consumed once on the next load."""
    status: Literal["failed"] = "failed"
    message: str = ""
    recorded_at: datetime = Field(default_factory=_utcnow)


class BankTransferSummary(BaseModel):
    """Local copy of a bank-transfer order for the confirmation view."""
    order_id: str
    order_number: str | int
    total: float
    items: list[CartItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Aggregate root
# =============================================================================

class CheckoutSession(BaseModel):
    """
    The checkout aggregate for one browsing session.

    client_id namespaces client-local storage (draft, marker, outcome); it
    outlives any single checkout session started from the same browser.
    """
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    client_id: str = ""
    step: CheckoutStep = CheckoutStep.CART
    cart: Cart = Field(default_factory=Cart)
    recipient: RecipientDetails = Field(default_factory=RecipientDetails)
    message: GiftMessage = Field(default_factory=GiftMessage)
    identity: CheckoutIdentity = Field(default_factory=CheckoutIdentity)
    payment: PaymentSelection = Field(default_factory=PaymentSelection)
    member: MemberProfile | None = None
    order: Order | None = None
    order_fingerprint: str | None = None  # payload hash of `order`
    save_address_to_book: bool = False
    address_title: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def storage_namespace(self) -> str:
        return self.client_id or self.session_id
