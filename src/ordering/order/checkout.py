"""Checkout: turning a cart into an order and opening a payment session.

Flow:
1. The caller's cart is fetched and checked for availability (fail fast),
   then ``PlaceOrder`` persists an order in CHECKOUT_INITIATED.
2. Before a payment session is opened the cart is fetched again by the
   server, re-checked, and ``RepriceOrder`` re-snapshots it onto the order.
   Prices never come from the client.
3. ``AttachPaymentSession`` links the provider session to the order. The
   order keeps its status; a provider failure leaves it ready for another
   attempt.

Nothing here reserves or decrements stock.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import LineItem, Order


def lines_to_json(lines) -> str:
    return json.dumps([line.to_dict() for line in lines])


def lines_from_json(data) -> list[LineItem]:
    items = json.loads(data) if isinstance(data, str) else data
    return [LineItem(**item) for item in items]


@ordering.command(part_of="Order")
class PlaceOrder:
    user_id = String(required=True, max_length=64)
    items = Text(required=True)  # JSON: list of line item dicts
    loyalty_points = Integer(default=0)


@ordering.command(part_of="Order")
class RepriceOrder:
    order_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line item dicts


@ordering.command(part_of="Order")
class AttachPaymentSession:
    order_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@ordering.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.create(
            user_id=command.user_id,
            lines=lines_from_json(command.items),
            loyalty_points=command.loyalty_points or 0,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(RepriceOrder)
    def reprice_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        order.replace_items(lines_from_json(command.items))
        repo.add(order)
        return order.total_amount

    @handle(AttachPaymentSession)
    def attach_payment_session(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        order.attach_session(command.session_id)
        repo.add(order)
