"""Payment confirmation: reconciling a paid session back into local state.

Confirmation may run several times for the same session: the buyer's
redirect, client polling and the provider webhook can all race. The
transaction keyed by the session id is the idempotency record, and its
uniqueness settles true races.

``ConfirmPayment`` writes the payment transaction and advances the order
to PAID in one unit of work. When the order can no longer move to PAID the
payment is still recorded and the mismatch is logged for reconciliation.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from payments.transaction.transaction import Transaction, TransactionStatus
from shared.errors import InvalidStatusTransition

logger = structlog.get_logger(__name__)

RECONCILIATION_REQUIRED = "Payment recorded but follow-up step failed; reconciliation required"


def reconcile_later(step, transaction, exc) -> None:
    logger.error(
        RECONCILIATION_REQUIRED,
        step=step,
        transaction_id=str(transaction.id),
        order_id=str(transaction.order_id),
        session_id=transaction.provider_session_id,
        error=str(exc),
        exc_info=exc,
    )


@dataclass(frozen=True)
class PaymentConfirmation:
    """Outcome of a confirmation attempt. ``confirmed`` is False for unpaid sessions."""

    session_id: str
    order_id: str
    status: str
    confirmed: bool
    transaction_id: str | None = None
    amount: float | None = None
    already_processed: bool = False
    reconciliation_required: tuple[str, ...] = ()
    message: str = ""

    @classmethod
    def from_transaction(cls, transaction: Transaction, already_processed=False, reconciliation_required=()):
        if already_processed:
            message = "Payment already processed"
        elif reconciliation_required:
            message = "Payment recorded; follow-up steps pending reconciliation"
        else:
            message = "Payment confirmed"
        return cls(
            session_id=transaction.provider_session_id,
            order_id=str(transaction.order_id),
            status=transaction.status,
            confirmed=transaction.current_status in (TransactionStatus.SUCCESS, TransactionStatus.REFUNDED),
            transaction_id=str(transaction.id),
            amount=transaction.amount,
            already_processed=already_processed,
            reconciliation_required=tuple(reconciliation_required),
            message=message,
        )


@ordering.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)
    amount = Float(required=True)
    currency = String(max_length=8, default="usd")
    payment_intent_id = String(max_length=255)
    payment_method = String(max_length=64)


@ordering.command_handler(part_of=Order)
class PaymentConfirmationHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        """Record the payment and mark the order PAID.

        Returns the transaction id and whether this payment moved the order
        to PAID.

        Raises ``DuplicateTransaction`` when another confirmation already
        recorded this session; nothing is written in that case.
        """
        orders = current_domain.repository_for(Order)
        order = orders.get_order(command.order_id)

        transaction = current_domain.repository_for(Transaction).record(
            Transaction.payment(
                order_id=order.id,
                user_id=order.user_id,
                amount=command.amount,
                currency=command.currency,
                session_id=command.session_id,
                payment_intent_id=command.payment_intent_id,
                payment_method=command.payment_method,
            )
        )
        logger.info(
            "Payment recorded",
            transaction_id=str(transaction.id),
            order_id=str(order.id),
            amount=transaction.amount,
        )

        try:
            order.record_payment(payment_method=command.payment_method)
        except InvalidStatusTransition as exc:
            reconcile_later("order_status", transaction, exc)
            return {"transaction_id": str(transaction.id), "order_paid": False}

        orders.add(order)
        return {"transaction_id": str(transaction.id), "order_paid": True}
