"""
Routes Package for Flower Checkout
==================================

API route definitions organized by domain. Each module defines a FastAPI
APIRouter with related endpoints grouped together.

- checkout.py: Checkout sessions, steps, identity and payment
- delivery.py: Delivery window, date selection and district availability

Router Registration:
--------------------
All routers are registered in main.py under /api/v1 and at the root.
"""

from .checkout import checkout_router
from .delivery import delivery_router

__all__ = ["checkout_router", "delivery_router"]
