"""Order Lifecycle Engine: the single entry point for order and payment operations.

Every operation takes the caller's bearer token (or an already resolved
``Identity``) as an argument. Nothing reads the current caller from
request-global state. Upstream calls (identity, cart, products, payment
provider) happen here; state changes are issued as commands to the
ordering domain, each handled in its own unit of work.

Must be called inside an ``ordering`` domain context.
"""

import json
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from ordering.gateways import get_cart_gateway, get_identity_gateway, get_product_gateway
from ordering.gateways.identity import Identity
from ordering.order.cancellation import CancelOrder, SettleRefund, StartRefund
from ordering.order.checkout import AttachPaymentSession, PlaceOrder, RepriceOrder, lines_to_json
from ordering.order.confirmation import ConfirmPayment, PaymentConfirmation, reconcile_later
from ordering.order.management import UpdateOrderStatus
from ordering.order.order import Order
from ordering.order.services import ensure_available, owned_order, visible_order
from ordering.purchase.relationship import PurchaseRelationship, RecordPurchase, product_names_for
from payments.gateway import get_gateway
from payments.gateway.port import SessionLineItem
from payments.transaction.transaction import Transaction, TransactionStatus
from shared.config import settings
from shared.errors import (
    DuplicateTransaction,
    EmptyCart,
    Forbidden,
    InvalidSession,
    NotCancellable,
    OwnershipMismatch,
    PaymentProviderError,
)

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutSessionResult:
    session_id: str
    order_id: str
    checkout_url: str | None = None


def _process(command):
    return current_domain.process(command, asynchronous=False)


class OrderLifecycleEngine:
    """Collaborators left as None resolve through the gateway factories on each use."""

    def __init__(self, identities=None, carts=None, products=None, payments=None, currency=None) -> None:
        self._identities = identities
        self._carts = carts
        self._products = products
        self._payments = payments
        self.currency = currency or settings.CURRENCY

    @property
    def identities(self):
        return self._identities or get_identity_gateway()

    @property
    def carts(self):
        return self._carts or get_cart_gateway()

    @property
    def products(self):
        return self._products or get_product_gateway()

    @property
    def payments(self):
        return self._payments or get_gateway()

    @staticmethod
    def _orders():
        return current_domain.repository_for(Order)

    @staticmethod
    def _transactions():
        return current_domain.repository_for(Transaction)

    def authenticate(self, token) -> Identity:
        return self.identities.resolve(token)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def _validated_cart(self, identity: Identity):
        """The caller's cart as the cart service reports it, every line available."""
        cart = self.carts.fetch(identity)
        if cart is None or cart.is_empty:
            logger.info("Checkout rejected, cart is empty", user_id=identity.user_id)
            raise EmptyCart(identity.user_id)
        ensure_available(self.products, cart.items, token=identity.token)
        return cart

    def _initiate(self, identity: Identity) -> Order:
        cart = self._validated_cart(identity)
        order_id = _process(
            PlaceOrder(
                user_id=identity.user_id,
                items=lines_to_json(cart.items),
                loyalty_points=cart.loyalty_points,
            )
        )
        order = self._orders().get_order(order_id)
        logger.info("Checkout initiated", user_id=identity.user_id, order_id=order_id, total_amount=order.total_amount)
        return order

    def _open_session(self, identity: Identity, order_id) -> CheckoutSessionResult:
        log = logger.bind(user_id=identity.user_id, order_id=str(order_id))

        order = owned_order(order_id, identity)
        cart = self._validated_cart(identity)
        _process(RepriceOrder(order_id=order.id, items=lines_to_json(cart.items)))
        order = self._orders().get_order(order.id)

        session = self.payments.create_session(
            line_items=[
                SessionLineItem(name=item.name or item.product_id, unit_amount=item.unit_amount, quantity=item.quantity)
                for item in order.items
            ],
            metadata={"orderId": str(order.id), "userId": order.user_id},
            currency=self.currency,
        )
        _process(AttachPaymentSession(order_id=order.id, session_id=session.session_id))
        log.info("Payment session created", session_id=session.session_id, total_amount=order.total_amount)
        return CheckoutSessionResult(session_id=session.session_id, order_id=str(order.id), checkout_url=session.url)

    def initiate_checkout(self, token) -> Order:
        return self._initiate(self.authenticate(token))

    def create_payment_session(self, token, order_id) -> CheckoutSessionResult:
        """Open a hosted payment session for the caller's order.

        Line items and prices are re-read from the caller's cart on the
        server; the order is re-snapshotted from them before the session
        is created.
        """
        return self._open_session(self.authenticate(token), order_id)

    def start_checkout(self, token) -> CheckoutSessionResult:
        identity = self.authenticate(token)
        order = self._initiate(identity)
        return self._open_session(identity, order.id)

    # -------------------------------------------------------------------
    # Payment confirmation
    # -------------------------------------------------------------------
    def _session_order(self, session_id, identity: Identity):
        """Fetch the provider session and the order it was opened for, enforcing ownership."""
        session = self.payments.retrieve_session(session_id)

        order_id = session.metadata.get("orderId")
        user_id = session.metadata.get("userId")
        if not order_id or not user_id:
            raise InvalidSession(session_id)

        order = self._orders().get_order(order_id)
        if not (order.belongs_to(user_id) and order.belongs_to(identity.user_id)):
            logger.warning(
                "Session, order and caller disagree on ownership",
                session_id=session_id,
                order_id=order_id,
                metadata_user_id=user_id,
                user_id=identity.user_id,
            )
            raise OwnershipMismatch(order_id)
        return session, order

    def confirm_payment(self, session_id, identity: Identity) -> PaymentConfirmation:
        log = logger.bind(session_id=session_id, user_id=identity.user_id)

        session, order = self._session_order(session_id, identity)

        existing = self._transactions().find_by_session(session_id)
        if existing is not None:
            log.info("Payment already confirmed", transaction_id=str(existing.id), order_id=str(order.id))
            return PaymentConfirmation.from_transaction(existing, already_processed=True)

        if not session.is_paid:
            status = TransactionStatus.FAILED if session.is_expired else TransactionStatus.PENDING
            log.info("Payment not confirmed", order_id=str(order.id), payment_status=session.payment_status)
            return PaymentConfirmation(
                session_id=session_id,
                order_id=str(order.id),
                status=status.value,
                confirmed=False,
                message=f"Payment not completed (provider status: {session.payment_status})",
            )

        try:
            outcome = _process(
                ConfirmPayment(
                    order_id=order.id,
                    session_id=session_id,
                    amount=session.amount if session.amount is not None else order.total_amount,
                    currency=session.currency or self.currency,
                    payment_intent_id=session.payment_intent_id,
                    payment_method=session.payment_method,
                )
            )
        except DuplicateTransaction:
            existing = self._transactions().find_by_session(session_id)
            log.info("Lost confirmation race, payment already recorded", transaction_id=str(existing.id))
            return PaymentConfirmation.from_transaction(existing, already_processed=True)

        transaction = self._transactions().get(outcome["transaction_id"])
        if outcome["order_paid"]:
            pending = self._complete_purchase(transaction, identity)
        else:
            # Stock is only taken for orders this payment actually moved to PAID
            pending = ["order_status", "stock", "purchase_relationship"]
        return PaymentConfirmation.from_transaction(transaction, reconciliation_required=pending)

    def confirm_payment_for(self, token, session_id) -> PaymentConfirmation:
        return self.confirm_payment(session_id, self.authenticate(token))

    def _complete_purchase(self, transaction, identity: Identity) -> list[str]:
        """Follow-up steps once the payment is recorded; failures are reported, never raised."""
        order = self._orders().get_order(transaction.order_id)
        pending = []
        for item in order.items:
            try:
                self.products.decrement_stock(item.product_id, item.quantity, token=identity.token)
            except Exception as exc:  # noqa: BLE001
                reconcile_later(f"stock:{item.product_id}", transaction, exc)
                pending.append(f"stock:{item.product_id}")

        try:
            names = product_names_for(order.items, self.products)
            _process(RecordPurchase(transaction_id=transaction.id, product_names=json.dumps(names)))
        except Exception as exc:  # noqa: BLE001
            reconcile_later("purchase_relationship", transaction, exc)
            pending.append("purchase_relationship")

        if identity.token:
            try:
                self.carts.clear(identity)
            except Exception as exc:  # noqa: BLE001
                reconcile_later("cart", transaction, exc)
                pending.append("cart")

        return pending

    # -------------------------------------------------------------------
    # Session queries and webhook entry point
    # -------------------------------------------------------------------
    def payment_status(self, token, session_id) -> TransactionStatus:
        """Status of a payment session from the caller's point of view."""
        session, _ = self._session_order(session_id, self.authenticate(token))

        existing = self._transactions().find_by_session(session_id)
        if existing is not None:
            return existing.current_status
        if session.is_paid:
            # Paid at the provider, not yet confirmed locally
            return TransactionStatus.PROCESSING
        if session.is_expired:
            return TransactionStatus.FAILED
        return TransactionStatus.PENDING

    def abandon_session(self, token, session_id) -> Order:
        """Cancel the order behind a session the buyer walked away from."""
        _, order = self._session_order(session_id, self.authenticate(token))

        if self._transactions().find_by_session(session_id) is not None:
            raise NotCancellable(str(order.id), order.status)

        _process(CancelOrder(order_id=order.id))
        logger.info("Checkout abandoned, order cancelled", session_id=session_id, order_id=str(order.id))
        return self._orders().get_order(order.id)

    def handle_webhook(self, payload: bytes, signature: str) -> PaymentConfirmation | None:
        event = self.payments.parse_webhook(payload, signature)
        if event.type != CHECKOUT_COMPLETED or not event.session_id:
            logger.info("Ignoring payment webhook", event_type=event.type)
            return None

        session = self.payments.retrieve_session(event.session_id)
        user_id = session.metadata.get("userId")
        if not user_id:
            raise InvalidSession(event.session_id)
        return self.confirm_payment(event.session_id, Identity.system(user_id))

    # -------------------------------------------------------------------
    # Order management
    # -------------------------------------------------------------------
    def get_order(self, token, order_id) -> Order:
        return visible_order(order_id, self.authenticate(token))

    def list_orders(self, token, user_id=None) -> list[Order]:
        identity = self.authenticate(token)
        user_id = str(user_id) if user_id is not None else identity.user_id
        if user_id != identity.user_id and not identity.is_admin:
            raise Forbidden("Cannot list another user's orders")
        return self._orders().for_user(user_id)

    def update_status(self, token, order_id, new_status) -> Order:
        identity = self.authenticate(token)
        if not identity.is_admin:
            logger.warning("Non-admin attempted status update", order_id=str(order_id), user_id=identity.user_id)
            raise Forbidden()

        _process(UpdateOrderStatus(order_id=order_id, status=getattr(new_status, "value", str(new_status))))
        return self._orders().get_order(order_id)

    def cancel_order(self, token, order_id) -> Order:
        order = visible_order(order_id, self.authenticate(token))
        _process(CancelOrder(order_id=order.id))
        return self._orders().get_order(order.id)

    def refund_order(self, token, order_id) -> Transaction:
        """Refund a delivered order through the payment provider.

        A REFUND transaction is written before the provider is called and
        ends SUCCESS or FAILED. The order only moves to REFUNDED when the
        provider accepted the refund; otherwise ``PaymentProviderError``
        is raised after the failure has been recorded.
        """
        order = visible_order(order_id, self.authenticate(token))
        refund_id = _process(StartRefund(order_id=order.id, currency=self.currency))
        refund = self._transactions().get(refund_id)

        settlement = {"transaction_id": refund_id, "succeeded": False}
        if not refund.provider_payment_intent_id:
            settlement["failure_reason"] = "No captured payment recorded for order"
        else:
            try:
                result = self.payments.create_refund(
                    payment_intent_id=refund.provider_payment_intent_id,
                    amount=refund.amount,
                    reason="requested_by_customer",
                )
            except PaymentProviderError as exc:
                settlement["failure_reason"] = exc.message
            else:
                settlement["succeeded"] = result.success
                settlement["provider_refund_id"] = result.provider_refund_id
                if not result.success:
                    settlement["failure_reason"] = result.failure_reason or "Refund declined"

        _process(SettleRefund(**settlement))
        refund = self._transactions().get(refund_id)
        if refund.current_status == TransactionStatus.FAILED:
            raise PaymentProviderError(
                f"Refund failed: {refund.failure_reason}",
                order_id=str(order.id),
                transaction_id=str(refund.id),
            )
        return refund

    def verify_ownership(self, order_id, user_id) -> bool:
        """True when the order exists and belongs to ``user_id``."""
        order = self._orders().find_order(order_id)
        if order is None:
            logger.debug("Ownership check on unknown order", order_id=str(order_id))
            return False
        return order.belongs_to(user_id)

    # -------------------------------------------------------------------
    # Purchase relationship analytics
    # -------------------------------------------------------------------
    @staticmethod
    def purchase_relationship(transaction_id) -> PurchaseRelationship | None:
        return current_domain.repository_for(PurchaseRelationship).find_relationship(transaction_id)

    @staticmethod
    def purchase_relationships_between(start, end) -> list[PurchaseRelationship]:
        return current_domain.repository_for(PurchaseRelationship).between(start, end)
