"""Integration tests for the Order and Checkout API endpoints."""

import pytest
from app import create_app
from fastapi.testclient import TestClient

USER = {"Authorization": "Bearer token-u1"}
OTHER = {"Authorization": "Bearer token-u2"}
ADMIN = {"Authorization": "Bearer token-admin"}


@pytest.fixture()
def client(engine):
    return TestClient(create_app(engine=engine))


class TestCheckoutAPI:
    def test_checkout_returns_201(self, client):
        response = client.post("/orders/checkout", headers=USER)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "CHECKOUT_INITIATED"
        assert body["total_amount"] == 20.0
        assert body["items"][0]["subtotal"] == 20.0

    def test_missing_token_is_401(self, client):
        response = client.post("/orders/checkout")
        assert response.status_code == 401
        assert response.json()["error"] == "AuthenticationFailure"

    def test_empty_cart_is_400(self, client):
        response = client.post("/orders/checkout", headers=OTHER)
        assert response.status_code == 400
        assert response.json() == {"error": "EmptyCart", "message": "Cart is empty", "user_id": "U2"}

    def test_unavailable_product_is_409(self, client, products):
        products.stock["P1"] = 0
        response = client.post("/orders/checkout", headers=USER)
        assert response.status_code == 409
        assert response.json()["product_id"] == "P1"
        assert response.json()["requested_qty"] == 2

    def test_payment_session_for_order(self, client):
        order_id = client.post("/orders/checkout", headers=USER).json()["order_id"]

        response = client.post(f"/orders/{order_id}/payment-session", headers=USER)

        assert response.status_code == 201
        assert response.json()["order_id"] == order_id
        assert response.json()["checkout_url"]

    def test_client_supplied_prices_are_ignored(self, client, payments):
        order_id = client.post("/orders/checkout", headers=USER).json()["order_id"]

        session = client.post(
            f"/orders/{order_id}/payment-session",
            headers=USER,
            json={"items": [{"product_id": "P1", "name": "Trail Shoe", "price": 0.01, "quantity": 2}]},
        ).json()

        assert payments.sessions[session["session_id"]].amount_total == 2000
        assert client.get(f"/orders/{order_id}", headers=USER).json()["total_amount"] == 20.0

        client.post(f"/payments/gateway/sessions/{session['session_id']}/pay")
        confirmation = client.post(f"/checkout/sessions/{session['session_id']}/confirm", headers=USER).json()

        assert confirmation["confirmed"] is True
        assert confirmation["amount"] == 20.0

    def test_provider_failure_is_502(self, client, payments):
        order_id = client.post("/orders/checkout", headers=USER).json()["order_id"]
        payments.configure(should_succeed=False, failure_reason="Provider down")

        response = client.post(f"/orders/{order_id}/payment-session", headers=USER)

        assert response.status_code == 502
        assert response.json()["error"] == "PaymentProviderError"


class TestSessionFlowAPI:
    def test_pay_and_confirm(self, client):
        session = client.post("/checkout/sessions", headers=USER).json()
        session_id = session["session_id"]

        assert client.get(f"/checkout/sessions/{session_id}/status", headers=USER).json()["status"] == "PENDING"

        client.post(f"/payments/gateway/sessions/{session_id}/pay")
        response = client.post(f"/checkout/sessions/{session_id}/confirm", headers=USER)

        assert response.status_code == 200
        body = response.json()
        assert body["confirmed"] is True
        assert body["amount"] == 20.0
        assert body["already_processed"] is False
        assert client.get(f"/checkout/sessions/{session_id}/status", headers=USER).json()["status"] == "SUCCESS"
        assert client.get(f"/orders/{session['order_id']}", headers=USER).json()["status"] == "PAID"

    def test_replayed_confirmation(self, client):
        session_id = client.post("/checkout/sessions", headers=USER).json()["session_id"]
        client.post(f"/payments/gateway/sessions/{session_id}/pay")

        first = client.post(f"/checkout/sessions/{session_id}/confirm", headers=USER).json()
        second = client.post(f"/checkout/sessions/{session_id}/confirm", headers=USER).json()

        assert second["already_processed"] is True
        assert second["transaction_id"] == first["transaction_id"]

    def test_other_user_cannot_confirm(self, client):
        session_id = client.post("/checkout/sessions", headers=USER).json()["session_id"]
        client.post(f"/payments/gateway/sessions/{session_id}/pay")

        response = client.post(f"/checkout/sessions/{session_id}/confirm", headers=OTHER)

        assert response.status_code == 403
        assert response.json()["error"] == "OwnershipMismatch"

    def test_abandon_session(self, client):
        session = client.post("/checkout/sessions", headers=USER).json()
        response = client.post(f"/checkout/sessions/{session['session_id']}/cancel", headers=USER)
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"


class TestOrderManagementAPI:
    def _paid_order(self, client):
        session = client.post("/checkout/sessions", headers=USER).json()
        client.post(f"/payments/gateway/sessions/{session['session_id']}/pay")
        client.post(f"/checkout/sessions/{session['session_id']}/confirm", headers=USER)
        return session["order_id"]

    def test_other_users_order_is_404(self, client):
        order_id = client.post("/orders/checkout", headers=USER).json()["order_id"]
        response = client.get(f"/orders/{order_id}", headers=OTHER)
        assert response.status_code == 404
        assert response.json()["error"] == "OrderNotFound"

    def test_list_orders(self, client):
        order_id = client.post("/orders/checkout", headers=USER).json()["order_id"]
        assert [o["order_id"] for o in client.get("/orders", headers=USER).json()] == [order_id]
        assert [o["order_id"] for o in client.get("/orders/user/U1", headers=ADMIN).json()] == [order_id]
        assert client.get("/orders/user/U1", headers=OTHER).status_code == 403

    def test_status_update_requires_admin(self, client):
        order_id = self._paid_order(client)
        response = client.put(f"/orders/{order_id}/status", headers=USER, json={"status": "SHIPPED"})
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_illegal_status_update_is_409(self, client):
        order_id = self._paid_order(client)
        client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "SHIPPED"})
        client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "DELIVERED"})

        response = client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "CHECKOUT_INITIATED"})

        assert response.status_code == 409
        assert response.json()["from"] == "DELIVERED"
        assert response.json()["to"] == "CHECKOUT_INITIATED"
        assert client.get(f"/orders/{order_id}", headers=USER).json()["status"] == "DELIVERED"

    def test_unknown_status_value_is_422(self, client):
        order_id = self._paid_order(client)
        response = client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "LOST"})
        assert response.status_code == 422

    def test_cancel_paid_order_is_409(self, client):
        order_id = self._paid_order(client)
        response = client.post(f"/orders/{order_id}/cancel", headers=USER)
        assert response.status_code == 409
        assert response.json()["error"] == "NotCancellable"

    def test_refund_delivered_order(self, client):
        order_id = self._paid_order(client)
        client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "SHIPPED"})
        client.put(f"/orders/{order_id}/status", headers=ADMIN, json={"status": "DELIVERED"})

        response = client.post(f"/orders/{order_id}/refund", headers=USER)

        assert response.status_code == 200
        assert response.json()["type"] == "REFUND"
        assert response.json()["status"] == "SUCCESS"
        assert client.get(f"/orders/{order_id}", headers=USER).json()["status"] == "REFUNDED"

    def test_refund_undelivered_order_is_409(self, client):
        order_id = self._paid_order(client)
        response = client.post(f"/orders/{order_id}/refund", headers=USER)
        assert response.status_code == 409
        assert response.json()["error"] == "InvalidStatusTransition"


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_responses_carry_a_request_id(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert client.get("/health").headers["X-Request-ID"]
