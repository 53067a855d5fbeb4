"""
Checkout engine wiring.

One CheckoutEngine per process holds the long-lived collaborators: the
delivery configuration provider, client storage, the collaborator clients
and the payment dispatcher (whose in-flight guard must be shared by every
request). Routes get it through the get_engine() dependency; tests replace
it with app.dependency_overrides.
"""

import logging
import threading
from typing import Optional

from ..checkout.identity import CheckoutIdentityResolver
from ..checkout.models import CheckoutSession
from ..checkout.payment_dispatcher import PaymentDispatcher
from ..checkout.persistence import SessionPersistence
from ..checkout.state_machine import CheckoutStateMachine
from ..clients import (
    AnalyticsClient,
    AuthClient,
    CustomerClient,
    OrderServiceClient,
    PaymentGatewayClient,
)
from ..config import REQUIRE_SENDER_NAME
from ..remote_config import DeliveryConfigProvider
from .storage import ClientStorage, DatabaseStorage


logger = logging.getLogger(__name__)


class CheckoutEngine:
    def __init__(
        self,
        config_provider: Optional[DeliveryConfigProvider] = None,
        storage: Optional[ClientStorage] = None,
        order_service: Optional[OrderServiceClient] = None,
        payment_gateway: Optional[PaymentGatewayClient] = None,
        analytics: Optional[AnalyticsClient] = None,
        auth_client: Optional[AuthClient] = None,
        customer_client: Optional[CustomerClient] = None,
        require_sender_name: bool = REQUIRE_SENDER_NAME,
    ):
        self.config_provider = config_provider or DeliveryConfigProvider()
        self.storage = storage or DatabaseStorage()
        self.order_service = order_service or OrderServiceClient()
        self.payment_gateway = payment_gateway or PaymentGatewayClient()
        self.analytics = analytics or AnalyticsClient()
        self.customer_client = customer_client or CustomerClient()
        self.identity = CheckoutIdentityResolver(auth_client or AuthClient())
        self.require_sender_name = require_sender_name
        self.dispatcher = PaymentDispatcher(
            config_provider=self.config_provider,
            order_service=self.order_service,
            payment_gateway=self.payment_gateway,
            customer_client=self.customer_client,
            identity=self.identity,
        )

    def persistence(self, session: CheckoutSession) -> SessionPersistence:
        return SessionPersistence.for_session(self.storage, session)

    def machine(self, session: CheckoutSession) -> CheckoutStateMachine:
        return CheckoutStateMachine(
            session=session,
            persistence=self.persistence(session),
            config_provider=self.config_provider,
            identity=self.identity,
            analytics=self.analytics,
            order_service=self.order_service,
            require_sender_name=self.require_sender_name,
        )


_engine: Optional[CheckoutEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> CheckoutEngine:
    """FastAPI dependency returning the process-wide engine."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = CheckoutEngine()
            logger.info("Checkout engine initialized")
        return _engine
