import os

# Must be set before the app modules read their configuration
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import flower_checkout.db as db
from flower_checkout.checkout.delivery_calendar import BlockedDateSet
from flower_checkout.checkout.models import (
    Cart,
    CartItem,
    CheckoutSession,
    Order,
    RecipientDetails,
)
from flower_checkout.checkout.region_policy import RegionAvailability
from flower_checkout.clients import (
    AnalyticsClient,
    AuthClient,
    CustomerClient,
    OrderServiceClient,
    PaymentGatewayClient,
    RedirectPayload,
)
from flower_checkout.main import app
from flower_checkout.models import Base
from flower_checkout.remote_config import DeliveryConfigProvider
from flower_checkout.routes.checkout import limiter
from flower_checkout.services.engine import CheckoutEngine, get_engine
from flower_checkout.services.session import clear_cache
from flower_checkout.services.storage import MemoryStorage

# A Monday: the delivery window is Tue 2026-10-20 .. Mon 2026-10-26,
# with Sunday 2026-10-25 inside it.
TODAY = date(2026, 10, 19)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def config_provider():
    """Delivery configuration with the default region rules and no off days."""
    return DeliveryConfigProvider.static(
        blocked=BlockedDateSet(),
        regions=RegionAvailability.fallback(),
        today=lambda: TODAY,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def order_service():
    service = Mock(spec=OrderServiceClient)
    service.create_order.return_value = Order(id="ord-1", order_number="FL-1001")
    service.report_reminder_action.return_value = True
    return service


@pytest.fixture
def payment_gateway():
    gateway = Mock(spec=PaymentGatewayClient)
    gateway.initialize.return_value = RedirectPayload(
        content="<form id='3ds'>...</form>", payment_id="pay-1"
    )
    return gateway


@pytest.fixture
def analytics():
    client = Mock(spec=AnalyticsClient)
    client.checkout_started.return_value = True
    return client


@pytest.fixture
def auth_client():
    return Mock(spec=AuthClient)


@pytest.fixture
def customer_client():
    client = Mock(spec=CustomerClient)
    client.add_address.return_value = True
    return client


@pytest.fixture
def engine(config_provider, storage, order_service, payment_gateway, analytics, auth_client, customer_client):
    """Checkout engine wired to in-memory storage and mocked collaborators."""
    return CheckoutEngine(
        config_provider=config_provider,
        storage=storage,
        order_service=order_service,
        payment_gateway=payment_gateway,
        analytics=analytics,
        auth_client=auth_client,
        customer_client=customer_client,
        require_sender_name=False,
    )


@pytest.fixture
def cart():
    return Cart(items=[
        CartItem(product_id="p-1", name="Red Roses Bouquet", unit_price=899.90, quantity=1),
        CartItem(product_id="p-2", name="Greeting Card", unit_price=49.90, quantity=2),
    ])


@pytest.fixture
def valid_recipient():
    return RecipientDetails(
        name="Ayşe Yılmaz",
        phone="0555 123 45 67",
        region="avrupa",
        district="Beşiktaş",
        neighborhood="Levent",
        street="Nispetiye Caddesi",
        building_number="12",
        apartment="4",
        delivery_date="2026-10-20",
        delivery_time_slot="11:00-17:00",
        notes="Ring the bell twice",
    )


@pytest.fixture
def session(cart):
    return CheckoutSession(client_id="browser-1", cart=cart)


@pytest.fixture
def db_session():
    """In-memory SQLite session with the checkout tables created."""
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    sess = TestingSessionLocal()
    clear_cache()
    yield sess
    sess.close()
    clear_cache()


@pytest.fixture
def client(engine):
    """Shared FastAPI TestClient using an in-memory SQLite DB.

    Uses StaticPool so all connections share the same in-memory database.
    The checkout engine is replaced by the mocked one from the engine fixture.
    """
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    # Patch the db module used by the app
    db.engine = test_engine
    db.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=test_engine)

    # Override FastAPI DB dependency
    def override_get_db():
        db_sess = TestingSessionLocal()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    app.dependency_overrides[get_engine] = lambda: engine
    limiter.enabled = False

    # Clear session cache before each test
    clear_cache()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

    # Clear session cache after each test
    clear_cache()
