"""Configurable fake payment gateway for development and testing.

This adapter simulates a hosted-checkout provider without any external
calls. Sessions live in memory and stay unpaid until ``mark_paid`` is
called, which stands in for the buyer completing the provider's page.
It can be configured at runtime to fail, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real provider credentials
"""

import json
from dataclasses import replace
from uuid import uuid4

from payments.gateway.port import (
    CheckoutSession,
    PaymentGateway,
    RefundResult,
    SessionLineItem,
    WebhookEvent,
)
from shared.errors import InvalidWebhookSignature, PaymentProviderError

WEBHOOK_TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self.sessions: dict[str, CheckoutSession] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    # -------------------------------------------------------------------
    # Simulated buyer actions
    # -------------------------------------------------------------------
    def mark_paid(self, session_id: str, payment_method: str = "card") -> CheckoutSession:
        session = self._get(session_id)
        session = replace(
            session,
            payment_status="paid",
            status="complete",
            payment_intent_id=session.payment_intent_id or f"fake_pi_{uuid4().hex[:12]}",
            payment_method=payment_method,
        )
        self.sessions[session_id] = session
        return session

    def expire(self, session_id: str) -> CheckoutSession:
        session = replace(self._get(session_id), status="expired")
        self.sessions[session_id] = session
        return session

    def _get(self, session_id: str) -> CheckoutSession:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise PaymentProviderError(f"No such checkout session: {session_id}", session_id=session_id) from None

    # -------------------------------------------------------------------
    # PaymentGateway
    # -------------------------------------------------------------------
    def create_session(
        self,
        line_items: list[SessionLineItem],
        metadata: dict[str, str],
        currency: str,
    ) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_session",
                "line_items": list(line_items),
                "metadata": dict(metadata),
                "currency": currency,
            }
        )
        if not self.should_succeed:
            raise PaymentProviderError(self.failure_reason)

        session_id = f"fake_cs_{uuid4().hex[:12]}"
        session = CheckoutSession(
            session_id=session_id,
            url=f"https://checkout.fake/pay/{session_id}",
            payment_status="unpaid",
            status="open",
            metadata=dict(metadata),
            amount_total=sum(item.unit_amount * item.quantity for item in line_items),
            currency=currency,
        )
        self.sessions[session_id] = session
        return session

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.calls.append({"method": "retrieve_session", "session_id": session_id})
        return self._get(session_id)

    def create_refund(
        self,
        payment_intent_id: str,
        amount: float,
        reason: str,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_intent_id": payment_intent_id,
                "amount": amount,
                "reason": reason,
            }
        )
        if self.should_succeed:
            return RefundResult(
                success=True,
                provider_refund_id=f"fake_re_{uuid4().hex[:12]}",
                provider_status="succeeded",
            )
        return RefundResult(
            success=False,
            provider_status="failed",
            failure_reason=self.failure_reason,
        )

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != WEBHOOK_TEST_SIGNATURE:
            raise InvalidWebhookSignature()
        body = json.loads(payload or b"{}")
        data = (body.get("data") or {}).get("object") or {}
        return WebhookEvent(type=body.get("type", ""), session_id=data.get("id"), payload=body)
