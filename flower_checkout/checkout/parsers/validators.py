"""
Input Validation Functions.

This module contains validation functions for customer-provided contact data:
Turkish mobile numbers (recipient and guest) and guest e-mail addresses.
"""

import re
import logging

import phonenumbers
from phonenumbers.phonenumberutil import NumberParseException
from email_validator import validate_email, EmailNotValidError

from ..messages import CheckoutMessages

logger = logging.getLogger(__name__)

TR_MOBILE_PATTERN = re.compile(r"^5\d{9}$")


def normalize_tr_mobile_digits(phone: str | None) -> str:
    """
    Reduce a phone number to the bare 10-digit Turkish mobile form.

    Strips the "90" country code and the leading trunk "0", then caps at
    10 digits. Extra digits are cut off the end; the number is never
    shifted by keeping the last 10 digits.

    Examples:
        "+90 555 123 45 67" -> "5551234567"
        "0555 123 45 67"    -> "5551234567"
        "055512345678"      -> "5551234567"
    """
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("90") and len(digits) >= 12:
        digits = digits[2:]
    if digits.startswith("0") and len(digits) >= 11:
        digits = digits[1:]
    if len(digits) > 10:
        digits = digits[:10]
    return digits


def is_valid_tr_mobile(phone: str | None) -> bool:
    return bool(TR_MOBILE_PATTERN.match(normalize_tr_mobile_digits(phone)))


def format_phone_number(phone: str | None) -> str:
    """Display form "5XX XXX XX XX" (partial input is grouped as far as it goes)."""
    digits = normalize_tr_mobile_digits(phone)
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]} {digits[3:]}"
    if len(digits) <= 8:
        return f"{digits[:3]} {digits[3:6]} {digits[6:]}"
    return f"{digits[:3]} {digits[3:6]} {digits[6:8]} {digits[8:10]}"


def validate_phone_number(phone: str | None) -> tuple[str | None, str | None]:
    """
    Validate a Turkish mobile number.

    Returns:
        Tuple of (normalized_digits, error_message).
        If valid: ("5XXXXXXXXX", None)
        If invalid: (None, user-friendly error message)
    """
    digits = normalize_tr_mobile_digits(phone)
    if not digits:
        return (None, CheckoutMessages.PHONE_REQUIRED)
    if digits[0] != "5":
        return (None, CheckoutMessages.PHONE_MUST_START_WITH_5)
    if not TR_MOBILE_PATTERN.match(digits):
        return (None, CheckoutMessages.PHONE_INVALID)
    return (digits, None)


def to_e164(phone: str | None) -> str | None:
    """
    Format a Turkish mobile number in E.164 (e.g. "+905551234567").

    Used for the payment collaborator's buyer record. Returns None when the
    number can't be parsed.
    """
    digits = normalize_tr_mobile_digits(phone)
    if not digits:
        return None
    try:
        parsed_number = phonenumbers.parse(digits, "TR")
    except NumberParseException as e:
        logger.warning("Phone formatting failed: %s", e)
        return None
    return phonenumbers.format_number(parsed_number, phonenumbers.PhoneNumberFormat.E164)


def validate_email_address(email: str | None) -> tuple[str | None, str | None]:
    """
    Validate an e-mail address using the email-validator library.

    Only syntax is checked (no DNS/MX lookups); the top-level domain must
    have at least two characters, so "a@b" and "a@b.c" are rejected.

    Returns:
        Tuple of (normalized_email, error_message).
    """
    value = (email or "").strip()
    if not value:
        return (None, CheckoutMessages.GUEST_EMAIL_INVALID)

    try:
        result = validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        logger.debug("Email validation failed: %s", e)
        return (None, CheckoutMessages.GUEST_EMAIL_INVALID)

    tld = result.domain.rsplit(".", 1)[-1] if "." in result.domain else ""
    if len(tld) < 2:
        return (None, CheckoutMessages.GUEST_EMAIL_INVALID)

    return (result.normalized, None)
