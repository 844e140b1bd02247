"""Stripe payment gateway adapter.

Uses Stripe Checkout: the order service creates a hosted session in
payment mode, the buyer pays on Stripe's page and is redirected back with
the session id. Every ``stripe.StripeError`` is surfaced as
``PaymentProviderError``; nothing here retries.
"""

import stripe
import structlog

from payments.gateway.port import (
    CheckoutSession,
    PaymentGateway,
    RefundResult,
    SessionLineItem,
    WebhookEvent,
)
from shared.errors import InvalidWebhookSignature, PaymentProviderError

logger = structlog.get_logger(__name__)


def _metadata(obj) -> dict:
    metadata = getattr(obj, "metadata", None)
    if not metadata:
        return {}
    return {str(k): str(v) for k, v in metadata.to_dict().items()}


def _payment_details(payment_intent) -> tuple[str | None, str | None]:
    """Intent id and the method type the buyer actually paid with.

    Sessions are retrieved with the payment intent and its payment method
    expanded; a bare id means nothing was paid yet, so there is no method.
    """
    if payment_intent is None or isinstance(payment_intent, str):
        return payment_intent, None
    method = getattr(payment_intent, "payment_method", None)
    if method is None or isinstance(method, str):
        return payment_intent.id, None
    return payment_intent.id, getattr(method, "type", None)


def _to_checkout_session(session) -> CheckoutSession:
    payment_intent_id, payment_method = _payment_details(getattr(session, "payment_intent", None))
    return CheckoutSession(
        session_id=session.id,
        url=getattr(session, "url", None),
        payment_status=getattr(session, "payment_status", None) or "unpaid",
        status=getattr(session, "status", None),
        metadata=_metadata(session),
        amount_total=getattr(session, "amount_total", None),
        currency=getattr(session, "currency", None),
        payment_intent_id=payment_intent_id,
        payment_method=payment_method,
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str | None, success_url: str, cancel_url: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.success_url = success_url
        self.cancel_url = cancel_url

    def create_session(
        self,
        line_items: list[SessionLineItem],
        metadata: dict[str, str],
        currency: str,
    ) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {"name": item.name},
                            "unit_amount": item.unit_amount,
                        },
                        "quantity": item.quantity,
                    }
                    for item in line_items
                ],
                metadata=metadata,
                success_url=f"{self.success_url}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=self.cancel_url,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe session creation failed", error=str(exc), metadata=metadata)
            raise PaymentProviderError("Could not create payment session", provider_error=str(exc)) from exc

        logger.info("Created Stripe checkout session", session_id=session.id, **metadata)
        return _to_checkout_session(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                api_key=self.api_key,
                expand=["payment_intent.payment_method"],
            )
        except stripe.StripeError as exc:
            logger.error("Stripe session lookup failed", session_id=session_id, error=str(exc))
            raise PaymentProviderError(
                "Could not retrieve payment session", session_id=session_id, provider_error=str(exc)
            ) from exc
        return _to_checkout_session(session)

    def create_refund(
        self,
        payment_intent_id: str,
        amount: float,
        reason: str,
    ) -> RefundResult:
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=payment_intent_id,
                amount=int(round(amount * 100)),
                metadata={"reason": reason},
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe refund failed", payment_intent_id=payment_intent_id, error=str(exc))
            return RefundResult(success=False, provider_status="failed", failure_reason=str(exc))

        status = getattr(refund, "status", None)
        if status in ("failed", "canceled"):
            return RefundResult(
                success=False,
                provider_refund_id=refund.id,
                provider_status=status,
                failure_reason=getattr(refund, "failure_reason", None) or f"Refund {status}",
            )
        return RefundResult(success=True, provider_refund_id=refund.id, provider_status=status)

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self.webhook_secret:
            raise PaymentProviderError("Webhook signing secret is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Rejected Stripe webhook", error=str(exc))
            raise InvalidWebhookSignature() from exc
        except ValueError as exc:
            raise InvalidWebhookSignature("Malformed webhook payload") from exc

        obj = event.data.object
        session_id = getattr(obj, "id", None) if event.type.startswith("checkout.session.") else None
        return WebhookEvent(type=event.type, session_id=session_id, payload={"id": event.id, "type": event.type})
