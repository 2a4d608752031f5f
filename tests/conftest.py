import os
import shutil
import tempfile

# Must be set before checkout.config builds its Settings
TEST_LOG_DIR = tempfile.mkdtemp(prefix="checkout-test-logs-")
os.environ["DATABASE_URL"] = "sqlite:///./test_temp.db"
os.environ["LOG_DIR"] = TEST_LOG_DIR
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

from decimal import Decimal
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from checkout.config import get_settings
from checkout.database import Base, engine as app_engine, get_db
from checkout.gateways import StripeGateway, PayPalGateway
from checkout.main import app as fastapi_app
from checkout.models import Order, OrderItem, Payment, User, OrderStatus, PaymentMethod, PaymentStatus
from checkout.routes import get_gateways

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

PAYPAL_BASE_URL = "https://api-m.sandbox.paypal.com"


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_files():
    yield
    engine.dispose()
    app_engine.dispose()
    Path(engine.url.database).unlink(missing_ok=True)
    shutil.rmtree(TEST_LOG_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session():
    db = TestingSessionLocal()
    db.add(User(id=1, email="buyer@example.com", name="Buyer"))
    db.commit()
    try:
        yield db
    finally:
        db.close()


class PayPalStub:
    """Serves the PayPal REST endpoints the gateway uses and records calls."""

    def __init__(self):
        self.requests = []
        self.fail_create = False
        self.fail_capture = False
        self.order_id = "5O190127TN364715T"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "A21AAF", "token_type": "Bearer"})
        if path == "/v2/checkout/orders":
            if self.fail_create:
                return httpx.Response(500, json={"name": "INTERNAL_SERVER_ERROR"})
            return httpx.Response(201, json={"id": self.order_id, "status": "CREATED"})
        if path.endswith("/capture"):
            if self.fail_capture:
                return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"})
            return httpx.Response(201, json={"id": path.split("/")[-2], "status": "COMPLETED"})
        return httpx.Response(404)


@pytest.fixture
def paypal_stub():
    return PayPalStub()


@pytest.fixture
def gateways(paypal_stub):
    return {
        PaymentMethod.STRIPE: StripeGateway("sk_test_123", "usd"),
        PaymentMethod.PAYPAL: PayPalGateway(
            "client-id",
            "client-secret",
            PAYPAL_BASE_URL,
            transport=httpx.MockTransport(paypal_stub),
        ),
    }


@pytest.fixture
def client(session, gateways):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_gateways] = lambda: gateways
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def _make_token(permissions=("view_orders",)):
    return jwt.encode(
        {"sub": "1", "permissions": list(permissions)},
        get_settings().jwt_secret,
        algorithm="HS256",
    )


@pytest.fixture
def make_token():
    return _make_token


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {_make_token()}"}


@pytest.fixture
def make_order(session):
    """Insert an order with one item and, optionally, a payment row."""
    def factory(total="100.00", status=OrderStatus.PENDING, payment=None):
        order = Order(user_id=1, total_amount=Decimal(total), status=status)
        session.add(order)
        session.flush()
        session.add(OrderItem(order_id=order.id, variant_id=5, quantity=2, price_at_time=Decimal(total) / 2))
        if payment is not None:
            fields = {"amount": Decimal(total), "payment_status": PaymentStatus.PENDING, **payment}
            session.add(Payment(order_id=order.id, **fields))
        session.commit()
        return order.id
    return factory
