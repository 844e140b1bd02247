"""Transaction aggregate: the ledger of payment and refund attempts.

Transactions are appended when an attempt starts and moved to a terminal
status when it ends; they are never deleted. ``provider_session_id`` is
unique, which is what makes payment confirmation idempotent: the second
payment recorded for a session is rejected. Refunds carry no session id.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


class TransactionStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class TransactionType(Enum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


_TERMINAL_STATUSES = {
    TransactionStatus.SUCCESS,
    TransactionStatus.FAILED,
    TransactionStatus.REFUNDED,
    TransactionStatus.CANCELLED,
    TransactionStatus.DISPUTED,
}


@ordering.aggregate
class Transaction:
    order_id = Identifier(required=True)
    user_id = String(required=True, max_length=64)
    amount = Float(required=True)
    currency = String(max_length=8, default="usd")
    status = String(choices=TransactionStatus, default=TransactionStatus.PENDING.value)
    transaction_type = String(choices=TransactionType, required=True)
    payment_method = String(max_length=64)
    provider_session_id = String(max_length=255, unique=True)
    provider_payment_intent_id = String(max_length=255)
    provider_charge_id = String(max_length=255)
    provider_refund_id = String(max_length=255)
    failure_reason = String(max_length=500)
    created_at = DateTime()

    @classmethod
    def payment(cls, order_id, user_id, amount, currency, session_id, payment_intent_id=None, payment_method=None):
        """A successful payment confirmed by the provider for ``session_id``."""
        return cls(
            order_id=str(order_id),
            user_id=str(user_id),
            amount=amount,
            status=TransactionStatus.SUCCESS.value,
            transaction_type=TransactionType.PAYMENT.value,
            currency=currency,
            payment_method=payment_method,
            provider_session_id=session_id,
            provider_payment_intent_id=payment_intent_id,
            created_at=datetime.now(UTC),
        )

    @classmethod
    def refund(cls, order_id, user_id, amount, currency, payment_intent_id=None):
        """A refund attempt, in flight until the provider answers."""
        return cls(
            order_id=str(order_id),
            user_id=str(user_id),
            amount=amount,
            status=TransactionStatus.PROCESSING.value,
            transaction_type=TransactionType.REFUND.value,
            currency=currency,
            provider_payment_intent_id=payment_intent_id,
            created_at=datetime.now(UTC),
        )

    @property
    def current_status(self) -> TransactionStatus:
        return TransactionStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status in _TERMINAL_STATUSES

    def succeed(self, refund_id=None):
        self.status = TransactionStatus.SUCCESS.value
        if refund_id:
            self.provider_refund_id = refund_id

    def fail(self, reason):
        self.status = TransactionStatus.FAILED.value
        self.failure_reason = (reason or "")[:500]

    def mark_refunded(self):
        self.status = TransactionStatus.REFUNDED.value
