import hashlib
import hmac
import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.main import app as fastapi_app
from storefront.database import Base
from storefront.models import Order, OrderItem

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_storefront.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    Base.metadata.create_all(bind=engine)
    # Every module that opens sessions talks to the test database
    monkeypatch.setattr("storefront.routes.SessionLocal", TestingSessionLocal)
    monkeypatch.setattr("storefront.order_locator.SessionLocal", TestingSessionLocal)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("RAZORPAY_WEBHOOK_SECRET", "SMTP_USER", "SMTP_PASS", "SMTP_HOST", "SMTP_PORT",
                 "MERCHANT_EMAIL", "JWT_SECRET", "WEBHOOK_LOOKUP_ATTEMPTS",
                 "WEBHOOK_LOOKUP_INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def webhook_env(monkeypatch):
    monkeypatch.setenv("RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("SMTP_USER", "store@example.com")
    monkeypatch.setenv("SMTP_PASS", "app-password")
    monkeypatch.setenv("MERCHANT_EMAIL", "merchant@example.com")


@pytest.fixture
def client():
    with TestClient(fastapi_app) as c:
        yield c


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def payment_captured(order_id="order_abc", amount=150000, email=None, notes=None) -> bytes:
    entity = {
        "id": "pay_123",
        "entity": "payment",
        "order_id": order_id,
        "amount": amount,
        "currency": "INR",
        "notes": notes if notes is not None else {},
    }
    if email:
        entity["email"] = email
    return json.dumps({"event": "payment.captured", "payload": {"payment": {"entity": entity}}}).encode()


def seed_order(gateway_order_id="order_abc", user_id="user_1", email="buyer@example.com",
               total_amount=Decimal("1350.00"), items=None, email_sent=False) -> str:
    if items is None:
        items = [
            ("prod_1", "Neo-Stomp Sneakers", Decimal("500.00"), 2),
            ("prod_2", "SonicWave Buds", Decimal("300.00"), 1),
        ]
    db = TestingSessionLocal()
    order = Order(
        user_id=user_id,
        total_amount=total_amount,
        status="pending",
        shipping_full_name="Asha Rao",
        shipping_phone="9876543210",
        shipping_street="12 MG Road",
        shipping_city="Bengaluru",
        shipping_postal_code="560001",
        shipping_email=email,
        gateway_order_id=gateway_order_id,
        gateway_payment_id="pay_123",
        payment_method="Razorpay",
        email_sent=email_sent,
    )
    order.items = [
        OrderItem(product_id=pid, name=name, price=price, quantity=qty, image=f"https://cdn.example.com/{pid}.png")
        for pid, name, price, qty in items
    ]
    db.add(order)
    db.commit()
    order_id = order.id
    db.close()
    return order_id
