"""Tests for Stripe payment intents and the webhook."""

import hashlib
import hmac
import json
import time

import pytest
import stripe
from bson import ObjectId

import config

from .conftest import bearer, make_user, order_payload

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def signed(event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


@pytest.fixture
def order_id(client, customer_headers, make_product):
    pid = make_product(price=10.0, stock=5)
    response = client.post(
        "/api/orders",
        json=order_payload((pid, 2), tax_price=1.0, shipping_price=5.99),
        headers=customer_headers,
    )
    return response.json()["data"]["id"]


def intent_event(event_type: str, order_id: str) -> dict:
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {
            "object": {
                "id": "pi_123",
                "status": "succeeded",
                "receipt_email": "jane@example.com",
                "metadata": {"orderId": order_id},
            }
        },
    }


class TestCreatePaymentIntent:
    def test_create(self, client, customer, customer_headers, order_id, monkeypatch):
        calls = {}

        def fake_create(**kwargs):
            calls.update(kwargs)
            return {"id": "pi_123", "client_secret": "pi_123_secret"}

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        response = client.post(
            "/api/payments/create-payment-intent", json={"order_id": order_id}, headers=customer_headers
        )
        assert response.status_code == 200
        assert response.json() == {"client_secret": "pi_123_secret", "order_id": order_id, "amount": 26.99}
        assert calls["amount"] == 2699
        assert calls["currency"] == "usd"
        assert calls["metadata"] == {"orderId": order_id, "userId": str(customer["_id"])}

    def test_other_users_order(self, client, db, order_id):
        other = bearer(make_user(db, email="other@example.com"))
        response = client.post("/api/payments/create-payment-intent", json={"order_id": order_id}, headers=other)
        assert response.status_code == 403

    def test_missing_order(self, client, customer_headers):
        response = client.post(
            "/api/payments/create-payment-intent", json={"order_id": str(ObjectId())}, headers=customer_headers
        )
        assert response.status_code == 404

    def test_already_paid(self, client, customer_headers, admin_headers, order_id):
        client.put(f"/api/orders/{order_id}/pay", headers=admin_headers)
        response = client.post(
            "/api/payments/create-payment-intent", json={"order_id": order_id}, headers=customer_headers
        )
        assert response.status_code == 400


class TestWebhook:
    def test_payment_succeeded_marks_paid(self, client, db, webhook_secret, order_id):
        payload, headers = signed(intent_event("payment_intent.succeeded", order_id))
        response = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"received": True}

        order = db["order"].find_one({"_id": ObjectId(order_id)})
        assert order["is_paid"] is True
        assert order["status"] == "processing"
        assert order["payment_method"] == "stripe"
        assert order["payment_result"]["id"] == "pi_123"
        assert order["payment_result"]["email_address"] == "jane@example.com"

    def test_duplicate_success_event(self, client, webhook_secret, order_id):
        payload, headers = signed(intent_event("payment_intent.succeeded", order_id))
        client.post("/api/payments/webhook", content=payload, headers=headers)
        response = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert response.json() == {"received": True}

    def test_payment_failed_records_result(self, client, db, webhook_secret, order_id):
        event = intent_event("payment_intent.payment_failed", order_id)
        event["data"]["object"]["status"] = "requires_payment_method"
        payload, headers = signed(event)
        client.post("/api/payments/webhook", content=payload, headers=headers)

        order = db["order"].find_one({"_id": ObjectId(order_id)})
        assert order["is_paid"] is False
        assert order["status"] == "pending"
        assert order["payment_result"]["status"] == "requires_payment_method"

    def test_unknown_event_is_ignored(self, client, db, webhook_secret, order_id):
        before = db["order"].find_one({"_id": ObjectId(order_id)})
        payload, headers = signed(intent_event("customer.created", order_id))
        response = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert response.json() == {"received": True}
        assert db["order"].find_one({"_id": ObjectId(order_id)}) == before

    def test_unknown_order(self, client, webhook_secret):
        payload, headers = signed(intent_event("payment_intent.succeeded", str(ObjectId())))
        response = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert response.json() == {"received": True}

    def test_bad_signature(self, client, db, webhook_secret, order_id):
        payload, headers = signed(intent_event("payment_intent.succeeded", order_id), secret="whsec_wrong")
        response = client.post("/api/payments/webhook", content=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert db["order"].find_one({"_id": ObjectId(order_id)})["is_paid"] is False

    def test_missing_signature(self, client, webhook_secret, order_id):
        payload, _ = signed(intent_event("payment_intent.succeeded", order_id))
        response = client.post("/api/payments/webhook", content=payload)
        assert response.status_code == 400

    def test_malformed_body_with_valid_signature(self, client, webhook_secret):
        payload = "not json"
        timestamp = int(time.time())
        signature = hmac.new(WEBHOOK_SECRET.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
        response = client.post(
            "/api/payments/webhook",
            content=payload,
            headers={"Stripe-Signature": f"t={timestamp},v1={signature}"},
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Webhook Error"}


class TestStripeLookups:
    def test_payment_intent_lookup_error(self, client, customer_headers, monkeypatch):
        def fail(*args, **kwargs):
            raise stripe.APIConnectionError("Stripe unreachable")

        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", fail)
        response = client.get("/api/payments/payment-intent/pi_123", headers=customer_headers)
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Error retrieving payment intent"}

    def test_payment_method_list_error(self, client, customer_headers, monkeypatch):
        def fail(*args, **kwargs):
            raise stripe.APIConnectionError("Stripe unreachable")

        monkeypatch.setattr(stripe.Customer, "list", lambda **kwargs: {"data": [{"id": "cus_1"}]})
        monkeypatch.setattr(stripe.PaymentMethod, "list", fail)
        response = client.get("/api/payments/payment-methods", headers=customer_headers)
        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Error processing payment methods"}
