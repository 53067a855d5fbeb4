"""Checkout engine exceptions.

Raised by the collaborator clients and the engine when an operation cannot
proceed. Field-level validation problems are never exceptions; they are
returned as FieldError values. The HTTP layer catches these and translates
them into responses.
"""


class CheckoutError(Exception):
    """Base class for checkout engine errors."""


class CollaboratorError(CheckoutError):
    """A remote collaborator failed, timed out or returned an unusable answer."""


class OrderCreationError(CollaboratorError):
    """The Order service did not create the order."""


class PaymentInitializationError(CollaboratorError):
    """The payment collaborator did not return a 3-D Secure redirect payload."""


class AuthenticationError(CollaboratorError):
    """The login/one-time-code sub-flow was rejected."""


class InvalidTransition(CheckoutError):
    """A step change was requested that the state machine never allows."""


class DispatchInProgress(CheckoutError):
    """A payment dispatch is already running for this checkout session."""


class SessionNotFound(CheckoutError):
    """The requested checkout session does not exist."""
