"""Tests for the Transaction Store's idempotency guarantees."""

import pytest
from payments.transaction.transaction import Transaction, TransactionStatus
from protean import current_domain
from shared.errors import DuplicateTransaction, StoreError


@pytest.fixture()
def transactions():
    return current_domain.repository_for(Transaction)


class TestSessionUniqueness:
    def test_second_payment_for_same_session_is_rejected(self, transactions):
        transactions.record(Transaction.payment("ord-1", "U1", 20.0, "usd", "cs_1"))

        with pytest.raises(DuplicateTransaction) as exc:
            transactions.record(Transaction.payment("ord-1", "U1", 20.0, "usd", "cs_1"))

        assert exc.value.session_id == "cs_1"
        assert isinstance(exc.value, StoreError)
        assert len(transactions.for_order("ord-1")) == 1

    def test_refunds_without_session_do_not_collide(self, transactions):
        transactions.record(Transaction.refund("ord-1", "U1", 20.0, "usd"))
        transactions.record(Transaction.refund("ord-1", "U1", 20.0, "usd"))
        assert len(transactions.for_order("ord-1")) == 2


class TestQueries:
    def test_find_by_session(self, transactions):
        recorded = transactions.record(Transaction.payment("ord-1", "U1", 20.0, "usd", "cs_1"))
        assert transactions.find_by_session("cs_1").id == recorded.id
        assert transactions.find_by_session("cs_unknown") is None

    def test_payment_for_order_ignores_refunds(self, transactions):
        payment = transactions.record(Transaction.payment("ord-1", "U1", 20.0, "usd", "cs_1"))
        transactions.record(Transaction.refund("ord-1", "U1", 20.0, "usd"))
        assert transactions.payment_for_order("ord-1").id == payment.id
        assert transactions.payment_for_order("ord-2") is None

    def test_add_updates_status(self, transactions):
        refund = transactions.record(Transaction.refund("ord-1", "U1", 20.0, "usd"))
        refund.fail("declined")
        transactions.add(refund)

        (stored,) = transactions.for_order("ord-1")
        assert stored.current_status == TransactionStatus.FAILED
        assert stored.failure_reason == "declined"
