"""Checks shared by the order lifecycle use cases."""

import structlog
from protean.utils.globals import current_domain

from ordering.gateways.identity import Identity
from ordering.order.order import Order
from shared.errors import OrderNotFound, ProductUnavailable

logger = structlog.get_logger(__name__)


def visible_order(order_id, identity: Identity) -> Order:
    """Load an order the caller may see: their own, or any for an admin.

    Other users' orders are reported as not found.
    """
    order = current_domain.repository_for(Order).get_order(order_id)
    if not (order.belongs_to(identity.user_id) or identity.is_admin):
        logger.warning("Order requested by non-owner", order_id=str(order_id), user_id=identity.user_id)
        raise OrderNotFound(str(order_id))
    return order


def owned_order(order_id, identity: Identity) -> Order:
    """Load an order for its owner only. Administrators get no exemption."""
    order = current_domain.repository_for(Order).get_order(order_id)
    if not order.belongs_to(identity.user_id):
        logger.warning("Order requested by non-owner", order_id=str(order_id), user_id=identity.user_id)
        raise OrderNotFound(str(order_id))
    return order


def ensure_available(products, lines, token=None) -> None:
    """Fail on the first line the product service cannot supply."""
    for line in lines:
        if not products.check_available(line.product_id, line.quantity, token=token):
            logger.info("Product unavailable", product_id=line.product_id, requested_qty=line.quantity)
            raise ProductUnavailable(line.product_id, line.quantity)
