"""Order Store: queries over persisted orders."""

from protean.exceptions import ObjectNotFoundError

from ordering.domain import ordering
from ordering.order.order import Order
from shared.errors import OrderNotFound


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_order(self, order_id) -> Order | None:
        try:
            return self.get(str(order_id))
        except ObjectNotFoundError:
            return None

    def get_order(self, order_id) -> Order:
        order = self.find_order(order_id)
        if order is None:
            raise OrderNotFound(str(order_id))
        return order

    def for_user(self, user_id) -> list[Order]:
        """Orders placed by ``user_id``, newest first."""
        orders = self._dao.query.filter(user_id=str(user_id)).all().items
        return sorted(orders, key=lambda order: order.created_at, reverse=True)

    def for_session(self, session_id) -> Order | None:
        orders = self._dao.query.filter(provider_session_id=session_id).all().items
        return orders[0] if orders else None
