"""Cart Gateway: reads and clears a user's cart in the product service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import structlog

from ordering.gateways.http import HttpGateway, bearer
from ordering.gateways.identity import Identity
from ordering.order.order import LineItem
from shared.errors import AuthenticationFailure, ServiceUnavailable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Cart:
    user_id: str
    items: list[LineItem] = field(default_factory=list)
    loyalty_points: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.items


class CartGateway(ABC):
    @abstractmethod
    def fetch(self, identity: Identity) -> Cart | None:
        """Return the caller's cart, or None when they have none."""
        ...

    @abstractmethod
    def clear(self, identity: Identity) -> None:
        ...


def _line_item(data: dict) -> LineItem:
    return LineItem(
        product_id=str(data["productId"]),
        name=data.get("name") or "",
        price=float(data.get("price") or 0.0),
        quantity=int(data.get("quantity") or 0),
        discount=float(data.get("discount") or 0.0),
        brand=data.get("brandName"),
        image=data.get("image"),
    )


class HttpCartGateway(HttpGateway, CartGateway):
    service = "cart"

    def fetch(self, identity: Identity) -> Cart | None:
        response = self._send_once("GET", "/cart", headers=bearer(identity.token))
        if response.status_code in (401, 403):
            raise AuthenticationFailure()
        if response.status_code == 404 or not response.content:
            return None
        if not response.is_success:
            raise ServiceUnavailable(self.service, f"Cart lookup returned {response.status_code}")

        body = response.json() or {}
        return Cart(
            user_id=str(body.get("userId") or identity.user_id),
            items=[_line_item(item) for item in body.get("items") or []],
            loyalty_points=int(body.get("loyaltyPoints") or 0),
        )

    def clear(self, identity: Identity) -> None:
        response = self._send_once("DELETE", "/cart/clear", headers=bearer(identity.token))
        if not response.is_success:
            raise ServiceUnavailable(self.service, f"Cart clear returned {response.status_code}")
        logger.info("Cleared cart", user_id=identity.user_id)
