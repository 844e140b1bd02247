"""Order cancellation and refund: commands and handler.

A refund runs in two steps around the provider call. ``StartRefund``
writes a REFUND transaction in PROCESSING; ``SettleRefund`` records the
provider's answer. Only a successful refund moves the order to REFUNDED
and the original payment to REFUNDED; a failed one leaves the order as it
was and the refund transaction FAILED.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from payments.transaction.transaction import Transaction
from shared.errors import InvalidStatusTransition

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class StartRefund:
    order_id = Identifier(required=True)
    currency = String(max_length=8, default="usd")


@ordering.command(part_of="Order")
class SettleRefund:
    transaction_id = Identifier(required=True)
    succeeded = Boolean(default=False)
    provider_refund_id = String(max_length=255)
    failure_reason = String(max_length=500)


@ordering.command_handler(part_of=Order)
class CancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        order.cancel()
        repo.add(order)
        logger.info("Order cancelled", order_id=str(order.id), user_id=order.user_id)

    @handle(StartRefund)
    def start_refund(self, command):
        """Open a REFUND transaction for a delivered order and return its id."""
        order = current_domain.repository_for(Order).get_order(command.order_id)
        if order.current_status != OrderStatus.DELIVERED:
            raise InvalidStatusTransition(order.current_status, OrderStatus.REFUNDED)

        transactions = current_domain.repository_for(Transaction)
        payment = transactions.payment_for_order(order.id)
        refund = Transaction.refund(
            order_id=order.id,
            user_id=order.user_id,
            amount=order.total_amount,
            currency=payment.currency if payment else command.currency,
            payment_intent_id=payment.provider_payment_intent_id if payment else None,
        )
        transactions.record(refund)
        logger.info("Refund started", order_id=str(order.id), transaction_id=str(refund.id), amount=refund.amount)
        return str(refund.id)

    @handle(SettleRefund)
    def settle_refund(self, command):
        transactions = current_domain.repository_for(Transaction)
        refund = transactions.get(str(command.transaction_id))
        log = logger.bind(order_id=str(refund.order_id), transaction_id=str(refund.id))

        if not command.succeeded:
            refund.fail(command.failure_reason or "Refund declined")
            transactions.add(refund)
            log.warning("Refund failed", reason=refund.failure_reason)
            return refund.status

        refund.succeed(refund_id=command.provider_refund_id)
        transactions.add(refund)

        payment = transactions.payment_for_order(refund.order_id)
        if payment is not None:
            payment.mark_refunded()
            transactions.add(payment)

        orders = current_domain.repository_for(Order)
        order = orders.get_order(refund.order_id)
        order.mark_refunded()
        orders.add(order)
        log.info("Order refunded", amount=refund.amount)
        return refund.status
