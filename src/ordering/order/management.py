"""Administrative order status updates: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from shared.errors import InvalidStatusTransition

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=32)


@ordering.command_handler(part_of=Order)
class OrderManagementHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_order(command.order_id)
        try:
            target = OrderStatus(command.status.upper())
        except ValueError:
            raise InvalidStatusTransition(order.current_status, command.status) from None

        previous = order.status
        order.transition_to(target)
        repo.add(order)
        logger.info("Order status updated", order_id=str(order.id), previous=previous, status=order.status)
        return order.status
