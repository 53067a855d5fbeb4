"""
Parsers package: deterministic validation of customer-entered contact data.
"""

from .validators import (
    format_phone_number,
    is_valid_tr_mobile,
    normalize_tr_mobile_digits,
    to_e164,
    validate_email_address,
    validate_phone_number,
)

__all__ = [
    "format_phone_number",
    "is_valid_tr_mobile",
    "normalize_tr_mobile_digits",
    "to_e164",
    "validate_email_address",
    "validate_phone_number",
]
