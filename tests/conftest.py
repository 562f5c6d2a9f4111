"""Pytest fixtures for storefront API tests."""

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, hash_password
from database import get_db, now


@pytest.fixture
def db():
    """A fresh in-memory MongoDB database."""
    client = mongomock.MongoClient()
    yield client["storefront_test"]
    client.close()


@pytest.fixture
def client(db):
    """Test client whose routes talk to the in-memory database."""
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, name="Jane Doe", email="jane@example.com", role="user", password="secret123"):
    doc = {
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": role,
        "phone": None,
        "is_email_verified": False,
        "created_at": now(),
    }
    doc["_id"] = db["user"].insert_one(doc).inserted_id
    return doc


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user['_id'])})}"}


@pytest.fixture
def customer(db):
    return make_user(db)


@pytest.fixture
def admin(db):
    return make_user(db, name="Store Admin", email="admin@example.com", role="admin")


@pytest.fixture
def customer_headers(customer):
    return bearer(customer)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def make_product(db):
    """Factory inserting a product and returning its id as a string."""

    def _make(**overrides):
        doc = {
            "name": "Widget",
            "description": "A useful widget",
            "price": 10.0,
            "original_price": None,
            "image": "https://example.com/widget.png",
            "images": [],
            "rating": 4.0,
            "reviews": 10,
            "category": "Other",
            "sku": None,
            "stock": 5,
            "is_on_sale": False,
            "is_active": True,
            "is_featured": False,
            "tags": [],
            "specifications": {},
            "created_at": now(),
            "updated_at": now(),
        }
        doc.update(overrides)
        return str(db["product"].insert_one(doc).inserted_id)

    return _make


SHIPPING = {
    "first_name": "Jane",
    "last_name": "Doe",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "phone": "555-0100",
}


def order_payload(*lines, **extra):
    payload = {
        "items": [{"product": p, "quantity": q} for p, q in lines],
        "shipping_address": dict(SHIPPING),
        "payment_method": "stripe",
    }
    payload.update(extra)
    return payload
