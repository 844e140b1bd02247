"""Integration tests for the payment webhook and fake gateway controls."""

import json

import pytest
from app import create_app
from fastapi.testclient import TestClient


@pytest.fixture()
def client(engine):
    return TestClient(create_app(engine=engine))


def _completed(session_id, event_type="checkout.session.completed"):
    return json.dumps({"type": event_type, "data": {"object": {"id": session_id}}})


class TestWebhookAPI:
    def test_completed_checkout_is_processed(self, client, engine, paid_session):
        result = paid_session()

        response = client.post(
            "/payments/webhook",
            content=_completed(result.session_id),
            headers={"Stripe-Signature": "test-signature"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processed"
        assert body["order_id"] == result.order_id
        assert body["transaction_id"]
        assert engine.get_order("token-u1", result.order_id).status == "PAID"

    def test_invalid_signature_is_401(self, client, paid_session):
        result = paid_session()
        response = client.post(
            "/payments/webhook",
            content=_completed(result.session_id),
            headers={"Stripe-Signature": "forged"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "InvalidWebhookSignature"

    def test_other_events_are_ignored(self, client, paid_session):
        result = paid_session()
        response = client.post(
            "/payments/webhook",
            content=_completed(result.session_id, "payment_intent.created"),
            headers={"Stripe-Signature": "test-signature"},
        )
        assert response.json() == {"status": "ignored", "session_id": None, "order_id": None, "transaction_id": None}


class TestGatewayConfigureAPI:
    def test_configure_fake_gateway(self, client, payments):
        response = client.post("/payments/gateway/configure", json={"should_succeed": False, "failure_reason": "Nope"})
        assert response.status_code == 200
        assert response.json() == {"gateway": "FakeGateway", "should_succeed": False, "failure_reason": "Nope"}
        assert payments.should_succeed is False

    def test_pay_unknown_fake_session_is_502(self, client):
        response = client.post("/payments/gateway/sessions/cs_missing/pay")
        assert response.status_code == 502
