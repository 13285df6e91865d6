import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["BREVO_API_KEY"] = ""
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = ""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import storefront.models  # noqa: F401
from storefront.database import get_session
from storefront.dependencies.providers import get_gateway, get_remediator, get_shipping_client
from storefront.exceptions import GatewayOrderError
from storefront.main import app
from storefront.models.cart import CartItem
from storefront.models.coupon import Coupon
from storefront.schemas.checkout_schemas import ShippingQuote
from storefront.services.payment_gateway import RazorpayGateway, RemoteOrder
from storefront.services.shipping_service import validate_pincode
from storefront.utils.money import to_minor_units

GATEWAY_KEY_ID = "rzp_test_key"
GATEWAY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "whsec_test"


class FakeGateway(RazorpayGateway):
    """Real signature checks, no network."""

    def __init__(self):
        super().__init__(GATEWAY_KEY_ID, GATEWAY_SECRET, WEBHOOK_SECRET)
        self.created = []
        self.fail_create = False
        self.lookup_result = None

    def create_remote_order(self, amount, currency, local_order_id):
        if self.fail_create:
            raise GatewayOrderError()
        remote = RemoteOrder(
            remote_order_id=f"order_rp_{len(self.created) + 1}",
            amount_minor=to_minor_units(amount),
            currency=currency,
        )
        self.created.append((local_order_id, remote))
        return remote

    def find_order_payment(self, local_order_id, remote_order_id=None, since=None):
        return self.lookup_result


class FakeShippingClient:
    def __init__(self):
        self.options = [
            ShippingQuote(courier_id="10", courier_name="Delhivery", cost=Decimal("100.00"), estimated_days=4),
            ShippingQuote(courier_id="24", courier_name="Xpressbees", cost=Decimal("120.00"), estimated_days=3),
        ]
        self.calls = []

    def quotes(self, delivery_pincode, weight, cod=False):
        delivery_pincode = validate_pincode(delivery_pincode)
        self.calls.append((delivery_pincode, weight, cod))
        return list(self.options)


class FakeRemediator:
    def __init__(self):
        self.calls = 0
        self.fail = False

    def __call__(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("admin connection refused")


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="gateway")
def gateway_fixture():
    return FakeGateway()


@pytest.fixture(name="shipping")
def shipping_fixture():
    return FakeShippingClient()


@pytest.fixture(name="remediator")
def remediator_fixture():
    return FakeRemediator()


@pytest.fixture(name="client")
def client_fixture(session, gateway, shipping, remediator):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_shipping_client] = lambda: shipping
    app.dependency_overrides[get_remediator] = lambda: remediator

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def add_cart(session):
    def _add(cart_id="cart-1", lines=(("sku-1", "Notebook", "250.00", 2),)):
        for product_id, name, price, quantity in lines:
            session.add(
                CartItem(
                    cart_id=cart_id,
                    product_id=product_id,
                    name=name,
                    unit_price=Decimal(price),
                    quantity=quantity,
                )
            )
        session.commit()
        return cart_id

    return _add


@pytest.fixture
def add_coupon(session):
    def _add(code="SUMMER20", percent="20", **fields):
        coupon = Coupon(code=code, discount_percent=Decimal(percent), **fields)
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon

    return _add


@pytest.fixture
def customer():
    return {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "address": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    }


@pytest.fixture
def expired():
    return datetime.utcnow() - timedelta(days=1)
