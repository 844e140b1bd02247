"""Order aggregate: the core of the ordering domain.

An Order is a durable snapshot of a validated cart. Line items are copied
into ``OrderItem`` entities at checkout time so later catalogue price
changes never alter historical orders. The owning user is fixed at
creation; nothing below exposes a way to change it.

State Machine:
    CART → CHECKOUT_INITIATED → PAID → SHIPPED → DELIVERED
    CHECKOUT_INITIATED, PAID → CANCELLED
    SHIPPED, DELIVERED → RETURNED
    DELIVERED → REFUNDED
    CANCELLED, REFUNDED, RETURNED are terminal.

Cancellation follows its own policy (see ``Order.cancel``) and refunds
are only issued for delivered orders.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Integer, String

from ordering.domain import ordering
from shared.errors import InvalidStatusTransition, NotCancellable


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    CART = "CART"
    CHECKOUT_INITIATED = "CHECKOUT_INITIATED"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    RETURNED = "RETURNED"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    REFUNDED = "REFUNDED"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.CART: {OrderStatus.CHECKOUT_INITIATED},
    OrderStatus.CHECKOUT_INITIATED: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# States from which cancellation is allowed
_CANCELLABLE_STATES = {
    OrderStatus.CART,
    OrderStatus.CHECKOUT_INITIATED,
    OrderStatus.RETURNED,
    OrderStatus.CANCELLED,
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object
class LineItem:
    """A priced cart line as the product service reports it.

    Prices on a line are only trusted when the line was read from the
    cart service by the server itself.
    """

    product_id = String(required=True, max_length=64)
    name = String(max_length=255, default="")
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    discount = Float(default=0.0)
    brand = String(max_length=255)
    image = String(max_length=1000)

    @property
    def subtotal(self) -> float:
        return round(self.price * self.quantity, 2)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """One product/quantity/price entry, captured as it was at checkout time."""

    product_id = String(required=True, max_length=64)
    name = String(max_length=255, default="")
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    discount = Float(default=0.0)
    brand = String(max_length=255)
    image = String(max_length=1000)

    @property
    def subtotal(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    @property
    def unit_amount(self) -> int:
        """Unit price in minor currency units (cents), rounded half-up."""
        return int(round(self.unit_price * 100))


def _items_from(lines) -> list[OrderItem]:
    return [
        OrderItem(
            product_id=line.product_id,
            name=line.name or "",
            unit_price=line.price,
            quantity=line.quantity,
            discount=line.discount or 0.0,
            brand=line.brand,
            image=line.image,
        )
        for line in lines
    ]


def total_of(items) -> float:
    return round(sum(item.subtotal for item in items), 2)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    user_id = String(required=True, max_length=64)
    items = HasMany(OrderItem)
    total_amount = Float(default=0.0)
    loyalty_points = Integer(default=0)
    status = String(choices=OrderStatus, default=OrderStatus.CART.value)
    created_at = DateTime()
    updated_at = DateTime()

    # Payment linkage
    provider_session_id = String(max_length=255)
    payment_status = String(choices=PaymentStatus)
    payment_method = String(max_length=64)
    payment_completed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id, lines, loyalty_points=0):
        """Snapshot cart lines into a new order awaiting payment.

        The order starts life in CART and is moved to CHECKOUT_INITIATED
        through the state machine, so the total always equals the sum of
        line-item subtotals at creation time.
        """
        now = datetime.now(UTC)
        items = _items_from(lines)
        order = cls(
            user_id=str(user_id),
            items=items,
            total_amount=total_of(items),
            loyalty_points=loyalty_points or 0,
            status=OrderStatus.CART.value,
            created_at=now,
            updated_at=now,
        )
        order.transition_to(OrderStatus.CHECKOUT_INITIATED)
        return order

    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def belongs_to(self, user_id) -> bool:
        return user_id is not None and self.user_id == str(user_id)

    def _touch(self):
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = self.current_status
        if not can_transition(current, target_status):
            raise InvalidStatusTransition(current, target_status)

    def transition_to(self, target_status: OrderStatus) -> None:
        """Move the order to ``target_status`` if the state machine allows it.

        On an illegal transition the order is left untouched.
        """
        self._assert_can_transition(target_status)
        self.status = target_status.value
        self._touch()

    # -------------------------------------------------------------------
    # Checkout & payment
    # -------------------------------------------------------------------
    def replace_items(self, lines) -> None:
        """Re-snapshot line items from a freshly validated cart and recompute the total."""
        if self.current_status != OrderStatus.CHECKOUT_INITIATED:
            raise InvalidStatusTransition(self.current_status, OrderStatus.CHECKOUT_INITIATED)

        for item in list(self.items):
            self.remove_items(item)
        items = _items_from(lines)
        for item in items:
            self.add_items(item)

        self.total_amount = total_of(items)
        self._touch()

    def attach_session(self, session_id: str) -> None:
        self.provider_session_id = session_id
        self.payment_status = PaymentStatus.PENDING.value
        self._touch()

    def record_payment(self, payment_method=None, completed_at=None):
        """Mark the order PAID after the provider confirmed the session."""
        self._assert_can_transition(OrderStatus.PAID)
        self.status = OrderStatus.PAID.value
        self.payment_status = PaymentStatus.SUCCESS.value
        self.payment_method = payment_method
        self.payment_completed_at = completed_at or datetime.now(UTC)
        self._touch()

    # -------------------------------------------------------------------
    # Cancellation & Refund
    # -------------------------------------------------------------------
    def cancel(self):
        """Cancel the order.

        Allowed from CART, CHECKOUT_INITIATED and RETURNED. Cancelling an
        already cancelled order is a no-op.
        """
        current = self.current_status
        if current not in _CANCELLABLE_STATES:
            raise NotCancellable(str(self.id), current)
        if current == OrderStatus.CANCELLED:
            return
        self.status = OrderStatus.CANCELLED.value
        self._touch()

    def mark_refunded(self):
        self._assert_can_transition(OrderStatus.REFUNDED)
        self.status = OrderStatus.REFUNDED.value
        self.payment_status = PaymentStatus.REFUNDED.value
        self._touch()
