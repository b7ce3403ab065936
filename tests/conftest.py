import hashlib
import hmac
import json
import os
from decimal import Decimal
from typing import Generator
from unittest.mock import patch

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["GATEWAY_KEY_ID"] = "rzp_test_key"
os.environ["GATEWAY_KEY_SECRET"] = "gateway_test_secret"
os.environ["GATEWAY_WEBHOOK_SECRET"] = "gateway_webhook_secret"
os.environ["GATEWAY_API_BASE_URL"] = "https://gateway.test/v1"
os.environ["PAYMENT_SUCCESS_REDIRECT_URL"] = "http://shop.test/orders?payment=success"
os.environ["PAYMENT_FAILURE_REDIRECT_URL"] = "http://shop.test/orders?payment=failed"

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.main import app
from app.models import PendingOrder, Product, User
from app.models.database import Base, get_db
from app.models.user import ROLE_ADMIN, ROLE_SHOP_OWNER
from app.services.gateway_client import GatewayClient
from app.services.signature import compute_signature

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


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


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(db: Session, email: str, display_name: str, role: str | None = None) -> User:
    user = User(email=email, display_name=display_name)
    if role:
        user.role = role
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test customer."""
    return _create_user(db, "test@example.com", "Test User")


@pytest.fixture
def test_user2(db: Session) -> User:
    """Create a second test customer."""
    return _create_user(db, "test2@example.com", "Test User 2")


@pytest.fixture
def seller(db: Session) -> User:
    return _create_user(db, "seller@example.com", "Clay Works", role=ROLE_SHOP_OWNER)


@pytest.fixture
def seller2(db: Session) -> User:
    return _create_user(db, "seller2@example.com", "Wick House", role=ROLE_SHOP_OWNER)


@pytest.fixture
def admin_user(db: Session) -> User:
    return _create_user(db, "admin@example.com", "Admin", role=ROLE_ADMIN)


def _create_product(db: Session, owner: User, title: str, price: str, stock: int) -> Product:
    product = Product(
        title=title,
        shop_owner_id=owner.id,
        selling_price=Decimal(price),
        stock_quantity=stock,
        is_active=True,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def product(db: Session, seller: User) -> Product:
    """Clay lamp, 199.00, ten in stock."""
    return _create_product(db, seller, "Clay lamp", "199.00", 10)


@pytest.fixture
def product2(db: Session, seller2: User) -> Product:
    """Cotton wick, 100.00, five in stock, sold by another seller."""
    return _create_product(db, seller2, "Cotton wick", "100.00", 5)


def make_token(user: User) -> str:
    return jwt.encode(
        {"sub": str(user.id), "type": "access"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get auth headers for the test customer."""
    return {"Authorization": f"Bearer {make_token(test_user)}"}


@pytest.fixture
def auth_headers2(test_user2: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(test_user2)}"}


@pytest.fixture
def seller_headers(seller: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(seller)}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(admin_user)}"}


@pytest.fixture
def cart_payload(product: Product, product2: Product) -> dict:
    """Two clay lamps and one wick: 498.00 in total."""
    return {
        "amount": "498.00",
        "cartItems": [
            {"productId": product.id, "title": "Clay lamp", "price": "199.00", "quantity": 2, "maxStock": 10},
            {"productId": product2.id, "title": "Cotton wick", "price": "100.00", "quantity": 1, "maxStock": 5},
        ],
        "deliveryAddress": {
            "fullName": "Asha Rao",
            "phone": "9000000000",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "pincode": "560001",
        },
    }


@pytest.fixture
def make_pending_order(db: Session, test_user: User, product: Product, product2: Product):
    """Factory for pending orders already linked to a gateway reference."""

    def _make(reference_id: str = "plink_123", user: User | None = None, items: list[dict] | None = None,
              checkout_mode: str = "payment_link", order_number: str | None = None) -> PendingOrder:
        owner = user or test_user
        pending = PendingOrder(
            user_id=owner.id,
            order_number=order_number or f"ORD-1760870400000-{reference_id[-6:].upper()}",
            total_amount=Decimal("498.00"),
            delivery_address={"fullName": "Asha Rao", "city": "Bengaluru"},
            items=items if items is not None else [
                {"productId": product.id, "title": "Clay lamp", "price": "199.00", "quantity": 2},
                {"productId": product2.id, "title": "Cotton wick", "price": "100.00", "quantity": 1},
            ],
            gateway_reference_id=reference_id,
            checkout_mode=checkout_mode,
        )
        db.add(pending)
        db.commit()
        db.refresh(pending)
        return pending

    return _make


def sign_payment(reference_id: str, payment_id: str) -> str:
    return compute_signature(f"{reference_id}|{payment_id}", settings.GATEWAY_KEY_SECRET)


def webhook_body(event: str, reference_id: str, payment_id: str) -> bytes:
    if event == "payment_link.paid":
        payload = {
            "payment_link": {"entity": {"id": reference_id, "status": "paid"}},
            "payment": {"entity": {"id": payment_id, "status": "captured"}},
        }
    else:
        payload = {
            "order": {"entity": {"id": reference_id, "status": "paid"}},
            "payment": {"entity": {"id": payment_id, "order_id": reference_id, "status": "captured"}},
        }
    return json.dumps({"event": event, "payload": payload}).encode()


def webhook_headers(body: bytes, secret: str | None = None) -> dict[str, str]:
    signature = hmac.new(
        (secret or settings.GATEWAY_WEBHOOK_SECRET).encode("utf-8"),
        body,
        hashlib.sha256,
    ).hexdigest()
    return {"X-Signature": signature, "Content-Type": "application/json"}


@pytest.fixture
def signer():
    """Signing helpers shared by webhook and redirect tests."""

    class Signer:
        payment = staticmethod(sign_payment)
        webhook_body = staticmethod(webhook_body)
        webhook_headers = staticmethod(webhook_headers)

    return Signer


class FakeGateway:
    """In-memory payment gateway behind ``httpx.MockTransport``."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.next_link_id = "plink_123"
        self.next_order_id = "order_123"
        self.fail_create = False
        self.payment_links: dict[str, dict] = {}
        self.order_payments: dict[str, list[dict]] = {}

    def mark_link_paid(self, link_id: str, payment_id: str) -> None:
        self.payment_links[link_id] = {
            "id": link_id,
            "status": "paid",
            "payments": [{"payment_id": payment_id, "status": "captured"}],
        }

    def mark_link_expired(self, link_id: str) -> None:
        self.payment_links[link_id] = {"id": link_id, "status": "expired", "payments": []}

    def mark_order_paid(self, order_id: str, payment_id: str) -> None:
        self.order_payments[order_id] = [{"id": payment_id, "order_id": order_id, "status": "captured"}]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")

        if request.method == "POST" and path in {"/payment_links", "/orders"}:
            if self.fail_create:
                return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "amount invalid"}})
            body = json.loads(request.content)
            if path == "/payment_links":
                return httpx.Response(200, json={
                    "id": self.next_link_id,
                    "short_url": f"https://rzp.io/i/{self.next_link_id}",
                    "amount": body["amount"],
                    "currency": body["currency"],
                    "status": "created",
                })
            return httpx.Response(200, json={
                "id": self.next_order_id,
                "amount": body["amount"],
                "currency": body["currency"],
                "status": "created",
            })

        if request.method == "GET" and path.startswith("/payment_links/"):
            link_id = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json=self.payment_links.get(
                link_id, {"id": link_id, "status": "created", "payments": []}
            ))

        if request.method == "GET" and path.startswith("/orders/") and path.endswith("/payments"):
            order_id = path.split("/")[2]
            return httpx.Response(200, json={"items": self.order_payments.get(order_id, [])})

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def client(self) -> GatewayClient:
        return GatewayClient(
            key_id=settings.GATEWAY_KEY_ID,
            key_secret=settings.GATEWAY_KEY_SECRET,
            base_url=settings.GATEWAY_API_BASE_URL,
            transport=httpx.MockTransport(self.handler),
        )

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.removeprefix("/v1") == path]


@pytest.fixture
def gateway() -> Generator[FakeGateway, None, None]:
    """Route every gateway call made by the services to a FakeGateway."""
    fake = FakeGateway()
    with patch("app.services.payment_initiation.get_gateway_client", fake.client), \
            patch("app.services.reconciler.get_gateway_client", fake.client):
        yield fake
