import os
from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["PI_API_KEY"] = "pi_test_key"
os.environ["APP_WALLET_SECRET"] = "wallet_test_secret"
os.environ["PI_API_BASE_URL"] = "https://pi.test/v2"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.dependencies import get_gateway, get_poll_policy
from app.main import app
from app.models.database import Base, get_db
from app.models.exchange_rate import ExchangeRate
from app.models.order import Order
from app.models.product import Product
from app.services.pi_gateway import PaymentStatus, PiGatewayClient
from app.services.refunds import PollPolicy

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def gateway() -> MagicMock:
    """Pi gateway double; tests configure return values per scenario."""
    mock = MagicMock(spec=PiGatewayClient)
    mock.get_payment_status.side_effect = lambda payment_id: PaymentStatus(payment_id=payment_id)
    mock.create_outbound_payment.return_value = "a2u_payment_1"
    mock.list_incomplete_outbound_payments.return_value = []
    return mock


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poll_policy(fake_clock: FakeClock) -> PollPolicy:
    return PollPolicy(
        attempts=5,
        interval_seconds=1.0,
        deadline_seconds=25.0,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )


@pytest.fixture(scope="function")
def client(db: Session, gateway: MagicMock, poll_policy: PollPolicy) -> Generator[TestClient, None, None]:
    """Create a test client with database, gateway and polling overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_poll_policy] = lambda: poll_policy
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"x-admin-token": "test-admin-token"}


@pytest.fixture
def test_order(db: Session) -> Order:
    """A Pi-paid order with a known payer, total RM100."""
    order = Order(
        order_id="ORD1",
        customer_name="Aina Binti Ali",
        customer_address="12 Jalan Gaya",
        postcode="88000",
        region="Sabah",
        country="Malaysia",
        phone="60123456789",
        product_name="Tenom Coffee 500g",
        quantity=2,
        total_amount=Decimal("100.00"),
        shipping_method="Standard Courier",
        payment_method="Pi Network",
        order_status="Paid",
        external_payment_id="u2a_payment_1",
        external_tx_id="tx_paid_1",
        user_external_id="pi-uid-1",
        has_refund=False,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def pending_order(db: Session) -> Order:
    order = Order(
        order_id="ORD2",
        customer_name="Ben Lee",
        phone="60198765432",
        product_name="Sabah Tea",
        quantity=1,
        total_amount=Decimal("40.00"),
        order_status="Pending Payment",
        user_external_id="pi-uid-2",
        has_refund=False,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def fpx_order(db: Session) -> Order:
    """An order paid outside Pi, so no payer id to refund to."""
    order = Order(
        order_id="ORD3",
        customer_name="Chong Wei",
        product_name="Sabah Tea",
        quantity=1,
        total_amount=Decimal("40.00"),
        payment_method="FPX",
        order_status="Paid",
        has_refund=False,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def exchange_rate(db: Session) -> ExchangeRate:
    rate = ExchangeRate(currency="PI", rate=Decimal("2.0"))
    db.add(rate)
    db.commit()
    db.refresh(rate)
    return rate


@pytest.fixture
def test_product(db: Session) -> Product:
    product = Product(
        name="Tenom Coffee 500g",
        description="Single origin",
        price=Decimal("25.00"),
        stock=40,
        weight=Decimal("0.5"),
        image_url="https://cdn.example.com/coffee.jpg",
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product
