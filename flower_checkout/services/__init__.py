"""
Services Package for Flower Checkout
====================================

Infrastructure used by the HTTP surface and the checkout engine.

Available Services:
-------------------
- **session**: CheckoutSession cache with database persistence
- **storage**: Client-local key/value storage backends (memory, database)
- **engine**: Process-wide wiring of the checkout engine and its collaborators

Usage:
------
    from flower_checkout.services.session import get_session, save_session
    from flower_checkout.services.storage import DatabaseStorage
"""

from . import storage
from . import session

__all__ = ["storage", "session"]
