"""
Schemas Package for Flower Checkout
===================================

Pydantic models used for API request validation and response serialization.

Schema Organization:
--------------------
- **checkout.py**: Checkout session, step, identity and payment schemas
- **delivery.py**: Delivery window, date selection and region schemas

Naming Conventions:
-------------------
- *Out: Response models - what the API returns
- *Request: Request bodies - what the client sends
- *Response: Composite response structures
"""

from .checkout import (
    FieldErrorOut,
    IdentityGateOut,
    ResumeOfferOut,
    PaymentOutcomeOut,
    CheckoutSessionOut,
    CheckoutStartRequest,
    CartUpdateRequest,
    RecipientUpdateRequest,
    SavedAddressSelectRequest,
    IdentityRequest,
    NavigateRequest,
    LoginStartRequest,
    LoginVerifyRequest,
    PaymentRequest,
    PaymentReturnRequest,
    CheckoutStartResponse,
    TransitionResponse,
    NavigateResponse,
    AddressSelectResponse,
    IdentityResponse,
    LoginResponse,
    DispatchResponse,
)

from .delivery import (
    BlockedDateOut,
    DeliveryWindowOut,
    DateSelectionRequest,
    DateSelectionOut,
    RegionOut,
)

__all__ = [
    "FieldErrorOut",
    "IdentityGateOut",
    "ResumeOfferOut",
    "PaymentOutcomeOut",
    "CheckoutSessionOut",
    "CheckoutStartRequest",
    "CartUpdateRequest",
    "RecipientUpdateRequest",
    "SavedAddressSelectRequest",
    "IdentityRequest",
    "NavigateRequest",
    "LoginStartRequest",
    "LoginVerifyRequest",
    "PaymentRequest",
    "PaymentReturnRequest",
    "CheckoutStartResponse",
    "TransitionResponse",
    "NavigateResponse",
    "AddressSelectResponse",
    "IdentityResponse",
    "LoginResponse",
    "DispatchResponse",
    "BlockedDateOut",
    "DeliveryWindowOut",
    "DateSelectionRequest",
    "DateSelectionOut",
    "RegionOut",
]
