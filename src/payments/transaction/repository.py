"""Transaction Store: append-mostly ledger queries."""

import structlog
from protean.exceptions import ValidationError

from ordering.domain import ordering
from payments.transaction.transaction import Transaction, TransactionStatus, TransactionType
from shared.errors import DuplicateTransaction

logger = structlog.get_logger(__name__)


@ordering.repository(part_of=Transaction)
class TransactionRepository:
    def record(self, transaction: Transaction) -> Transaction:
        """Append a new transaction.

        Raises ``DuplicateTransaction`` when a payment for the same
        provider session already exists.
        """
        session_id = transaction.provider_session_id
        if session_id and self.find_by_session(session_id) is not None:
            raise DuplicateTransaction(session_id)
        try:
            self.add(transaction)
        except ValidationError as exc:
            if session_id and "provider_session_id" in (exc.messages or {}):
                raise DuplicateTransaction(session_id) from exc
            raise
        return transaction

    def find_by_session(self, session_id) -> Transaction | None:
        found = self._dao.query.filter(provider_session_id=session_id).all().items
        return found[0] if found else None

    def for_order(self, order_id) -> list[Transaction]:
        transactions = self._dao.query.filter(order_id=str(order_id)).all().items
        return sorted(transactions, key=lambda txn: txn.created_at)

    def payment_for_order(self, order_id) -> Transaction | None:
        """The successful payment recorded for ``order_id``, if any."""
        payments = [
            txn
            for txn in self.for_order(order_id)
            if txn.transaction_type == TransactionType.PAYMENT.value and txn.status == TransactionStatus.SUCCESS.value
        ]
        return payments[-1] if payments else None
