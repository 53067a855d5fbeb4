"""
Checkout identity resolution.

From "undecided" the customer goes one of two ways:
- guest: needs a valid e-mail and a valid Turkish mobile before payment opens
- member: needs an authenticated session; until the inline one-time-code
  login completes, the payment gate stays closed

A customer who is already signed in when checkout starts never sees the
choice at all; the member identity is resolved up front.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..clients import AuthClient, CustomerContact
from ..exceptions import AuthenticationError
from .messages import CheckoutMessages
from .models import (
    CheckoutIdentity,
    GuestContact,
    IdentityKind,
    MemberProfile,
    RecipientDetails,
)
from .parsers import to_e164, validate_email_address, validate_phone_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityGate:
    """Whether the payment step may be used, and if not, why and where."""
    open: bool
    reason: Optional[str] = None
    field: Optional[str] = None  # "identity", "guest_email", "guest_phone" or "login"


@dataclass(frozen=True)
class LoginResult:
    identity: CheckoutIdentity
    profile: Optional[MemberProfile] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CheckoutIdentityResolver:
    """
    Guest/member branch logic.

    Every method returns a new CheckoutIdentity rather than mutating the
    one passed in; gate() has no side effects at all.
    """

    def __init__(self, auth_client: Optional[AuthClient] = None):
        self.auth_client = auth_client or AuthClient()

    @staticmethod
    def is_bypassed(identity: CheckoutIdentity) -> bool:
        """A signed-in member skips the guest/member choice entirely."""
        return identity.is_authenticated

    def choose_guest(self, identity: CheckoutIdentity, email: str = "", phone: str = "") -> CheckoutIdentity:
        if self.is_bypassed(identity):
            return identity
        return CheckoutIdentity(
            kind=IdentityKind.GUEST,
            guest=GuestContact(email=(email or "").strip(), phone=(phone or "").strip()),
        )

    def choose_member(self, identity: CheckoutIdentity) -> CheckoutIdentity:
        if self.is_bypassed(identity):
            return identity
        return CheckoutIdentity(kind=IdentityKind.MEMBER)

    @staticmethod
    def authenticate(customer_id: str) -> CheckoutIdentity:
        return CheckoutIdentity(kind=IdentityKind.MEMBER, customer_id=str(customer_id))

    def start_login(self, identifier: str) -> Optional[str]:
        """Ask the authentication collaborator to send a one-time code. Returns an error or None."""
        try:
            self.auth_client.start_login(identifier)
        except AuthenticationError as e:
            logger.warning("Login start failed: %s", e)
            return CheckoutMessages.LOGIN_FAILED
        return None

    def verify_code(self, identity: CheckoutIdentity, identifier: str, code: str) -> LoginResult:
        """
        Complete the inline login. This is the only way out of an
        unauthenticated member branch; a failure leaves the identity as it was.
        """
        try:
            profile = self.auth_client.verify_login(identifier, code)
        except AuthenticationError as e:
            logger.info("One-time code rejected: %s", e)
            return LoginResult(identity=identity, error=CheckoutMessages.LOGIN_FAILED)

        logger.info("Member %s signed in during checkout", profile.customer_id)
        return LoginResult(identity=self.authenticate(profile.customer_id), profile=profile)

    def gate(self, identity: CheckoutIdentity) -> IdentityGate:
        """Payment gate. Pure: the same identity always yields the same answer."""
        if identity.kind == IdentityKind.MEMBER:
            if identity.customer_id:
                return IdentityGate(open=True)
            return IdentityGate(False, CheckoutMessages.MEMBER_LOGIN_REQUIRED, "login")

        if identity.kind == IdentityKind.GUEST:
            guest = identity.guest or GuestContact()
            _, email_error = validate_email_address(guest.email)
            if email_error:
                return IdentityGate(False, email_error, "guest_email")
            _, phone_error = validate_phone_number(guest.phone)
            if phone_error:
                return IdentityGate(False, CheckoutMessages.GUEST_PHONE_INVALID, "guest_phone")
            return IdentityGate(open=True)

        return IdentityGate(False, CheckoutMessages.IDENTITY_UNDECIDED, "identity")

    @staticmethod
    def prefill_guest_phone(identity: CheckoutIdentity, recipient: RecipientDetails) -> CheckoutIdentity:
        """Copy the recipient's phone into an empty guest phone field."""
        if identity.kind != IdentityKind.GUEST or not recipient.phone.strip():
            return identity
        guest = identity.guest or GuestContact()
        if guest.phone.strip():
            return identity
        return identity.model_copy(update={"guest": guest.model_copy(update={"phone": recipient.phone})})

    @staticmethod
    def customer_contact(
        identity: CheckoutIdentity,
        recipient: RecipientDetails,
        profile: Optional[MemberProfile] = None,
    ) -> CustomerContact:
        """Buyer record for the payment collaborator. Member profile values win."""
        guest = identity.guest or GuestContact()
        if identity.is_authenticated and profile is not None:
            name = profile.name or recipient.name
            email = profile.email or guest.email
            phone = profile.phone or recipient.phone
        else:
            name = recipient.name
            email = guest.email
            phone = guest.phone or recipient.phone

        return CustomerContact(
            customer_id=identity.customer_id,
            name=name.strip(),
            email=email.strip(),
            phone=to_e164(phone),
        )
