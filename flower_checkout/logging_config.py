"""
Logging configuration for the flower checkout application.

Usage:
    from flower_checkout.logging_config import setup_logging
    setup_logging()  # Call once at application startup

Environment variables:
    LOG_LEVEL: Set to DEBUG, INFO, WARNING, ERROR, or CRITICAL (default: INFO)

Recipient and guest contact details must never reach the logs at INFO or
above. Modules log ids and order numbers only; ContactRedactionFilter is the
backstop for anything that slips through (an e-mail inside a collaborator
error message, a phone number echoed back by the Order service).
"""
import logging
import os
import re
import sys

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
# Turkish mobiles in the shapes customers type them: 05551234567, +90 555 123 45 67, 555-123-45-67
_TR_MOBILE = re.compile(r"(?<![\w+])(?:\+?90[ -]?|0)?5\d{2}[ -]?\d{3}[ -]?\d{2}[ -]?\d{2}(?!\w)")

EMAIL_PLACEHOLDER = "<email>"
PHONE_PLACEHOLDER = "<phone>"


def redact_contact_details(text: str) -> str:
    text = _EMAIL.sub(EMAIL_PLACEHOLDER, text)
    return _TR_MOBILE.sub(PHONE_PLACEHOLDER, text)


class ContactRedactionFilter(logging.Filter):
    """Masks e-mail addresses and mobile numbers in records at INFO and above."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno < logging.INFO:
            return True
        message = record.getMessage()
        redacted = redact_contact_details(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: str = None) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If not provided, reads from LOG_LEVEL env var, defaults to INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if level not in valid_levels:
        level = "INFO"

    numeric_level = getattr(logging, level)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, ContactRedactionFilter) for f in handler.filters):
            handler.addFilter(ContactRedactionFilter())

    logging.getLogger("flower_checkout").setLevel(numeric_level)

    # Collaborator calls go through requests/urllib3; keep them quiet unless debugging
    if level != "DEBUG":
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured at %s level", level)
