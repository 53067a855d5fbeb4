"""
Client-local persistence of an in-progress checkout.

Four keys per browsing session:
- checkout_draft: recipient, message and guest contact fields, with a write
  timestamp. Never payment method or processing flags.
- pending_payment: the AbandonmentMarker of a payment attempt that left the page
- last_payment_outcome: the last failed attempt, read once on the next load
- bank_transfer_summary: local copy of a bank-transfer order

Write gating: the draft is only written while the cart is non-empty and
the checkout is not in success. An emptied cart wipes everything so stale
recipient data never comes back.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from ..config import (
    STORAGE_KEY_ABANDONMENT_MARKER,
    STORAGE_KEY_BANK_TRANSFER_SUMMARY,
    STORAGE_KEY_DRAFT,
    STORAGE_KEY_PAYMENT_OUTCOME,
)
from ..services.storage import ClientStorage
from .models import (
    AbandonmentMarker,
    BankTransferSummary,
    Cart,
    CheckoutSession,
    CheckoutStep,
    GiftMessage,
    GuestContact,
    PaymentOutcome,
    RecipientDetails,
)

logger = logging.getLogger(__name__)


class CheckoutDraft(BaseModel):
    """The persisted subset of a CheckoutSession."""
    recipient: RecipientDetails = Field(default_factory=RecipientDetails)
    message: GiftMessage = Field(default_factory=GiftMessage)
    guest: Optional[GuestContact] = None
    save_address_to_book: bool = False
    address_title: str = ""
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "CheckoutDraft":
        return cls(
            recipient=session.recipient.model_copy(),
            message=session.message.model_copy(),
            guest=session.identity.guest.model_copy() if session.identity.guest else None,
            save_address_to_book=session.save_address_to_book,
            address_title=session.address_title,
        )


class SessionPersistence:
    """Load/save/clear of one browsing session's checkout keys."""

    def __init__(self, storage: ClientStorage, namespace: str):
        self.storage = storage
        self.namespace = namespace

    @classmethod
    def for_session(cls, storage: ClientStorage, session: CheckoutSession) -> "SessionPersistence":
        return cls(storage, session.storage_namespace)

    def _read(self, key: str, model: type[BaseModel]):
        raw = self.storage.get(self.namespace, key)
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            # Unreadable leftovers from an older schema are dropped, not fatal
            logger.warning("Discarding unreadable %s for %s: %s", key, self.namespace, e)
            self.storage.delete(self.namespace, key)
            return None

    def _write(self, key: str, value: BaseModel) -> None:
        self.storage.set(self.namespace, key, value.model_dump_json())

    # -------------------------------------------------------------------------
    # Draft
    # -------------------------------------------------------------------------

    @staticmethod
    def can_write_draft(session: CheckoutSession) -> bool:
        return not session.cart.is_empty() and session.step != CheckoutStep.SUCCESS

    def save_draft(self, session: CheckoutSession) -> bool:
        """Mirror the form fields. Returns False when the write gate is closed."""
        if not self.can_write_draft(session):
            return False
        self._write(STORAGE_KEY_DRAFT, CheckoutDraft.from_session(session))
        return True

    def load_draft(self) -> Optional[CheckoutDraft]:
        return self._read(STORAGE_KEY_DRAFT, CheckoutDraft)

    def clear_draft(self) -> None:
        self.storage.delete(self.namespace, STORAGE_KEY_DRAFT)

    def on_cart_changed(self, cart: Cart) -> bool:
        """Wipe every key once the cart is empty. Returns True if it did."""
        if not cart.is_empty():
            return False
        self.clear_all()
        logger.info("Cart emptied, cleared checkout storage for %s", self.namespace)
        return True

    # -------------------------------------------------------------------------
    # Abandonment marker
    # -------------------------------------------------------------------------

    def write_marker(self, marker: AbandonmentMarker) -> None:
        self._write(STORAGE_KEY_ABANDONMENT_MARKER, marker)

    def read_marker(self) -> Optional[AbandonmentMarker]:
        return self._read(STORAGE_KEY_ABANDONMENT_MARKER, AbandonmentMarker)

    def clear_marker(self) -> None:
        self.storage.delete(self.namespace, STORAGE_KEY_ABANDONMENT_MARKER)

    def mark_reminder_shown(self, marker: AbandonmentMarker) -> AbandonmentMarker:
        updated = marker.model_copy(update={"reminder_shown_reported": True})
        self.write_marker(updated)
        return updated

    # -------------------------------------------------------------------------
    # Payment outcome
    # -------------------------------------------------------------------------

    def record_outcome(self, outcome: PaymentOutcome) -> None:
        self._write(STORAGE_KEY_PAYMENT_OUTCOME, outcome)

    def consume_outcome(self) -> Optional[PaymentOutcome]:
        """Return the last outcome and delete it, so it is only ever shown once."""
        outcome = self._read(STORAGE_KEY_PAYMENT_OUTCOME, PaymentOutcome)
        if outcome is not None:
            self.storage.delete(self.namespace, STORAGE_KEY_PAYMENT_OUTCOME)
        return outcome

    # -------------------------------------------------------------------------
    # Bank transfer summary
    # -------------------------------------------------------------------------

    def save_bank_transfer_summary(self, summary: BankTransferSummary) -> None:
        self._write(STORAGE_KEY_BANK_TRANSFER_SUMMARY, summary)

    def load_bank_transfer_summary(self) -> Optional[BankTransferSummary]:
        return self._read(STORAGE_KEY_BANK_TRANSFER_SUMMARY, BankTransferSummary)

    def clear_all(self) -> None:
        for key in (
            STORAGE_KEY_DRAFT,
            STORAGE_KEY_ABANDONMENT_MARKER,
            STORAGE_KEY_PAYMENT_OUTCOME,
            STORAGE_KEY_BANK_TRANSFER_SUMMARY,
        ):
            self.storage.delete(self.namespace, key)
