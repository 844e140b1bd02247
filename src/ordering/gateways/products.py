"""Product Availability Gateway: stock checks and decrements in the product service.

Availability checks, stock decrements and name lookups are retried on
transient failures. None of them reserves stock.
"""

from abc import ABC, abstractmethod

import structlog

from ordering.gateways.http import HttpGateway, bearer
from shared.errors import InsufficientStock, ServiceUnavailable

logger = structlog.get_logger(__name__)


class ProductGateway(ABC):
    @abstractmethod
    def check_available(self, product_id: str, quantity: int, token: str | None = None) -> bool:
        ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int, token: str | None = None) -> None:
        """Remove ``quantity`` units from stock or raise ``InsufficientStock``."""
        ...

    @abstractmethod
    def product_name(self, product_id: str) -> str | None:
        ...


class HttpProductGateway(HttpGateway, ProductGateway):
    service = "products"

    def check_available(self, product_id: str, quantity: int, token: str | None = None) -> bool:
        response = self._send_with_retry(
            "POST",
            "/products/validate-availability",
            json=[{"productId": product_id, "quantity": quantity}],
            headers=bearer(token),
        )
        if not response.is_success:
            logger.warning(
                "Availability check rejected",
                product_id=product_id,
                quantity=quantity,
                status_code=response.status_code,
            )
            return False
        return bool((response.json() or {}).get(product_id, False))

    def decrement_stock(self, product_id: str, quantity: int, token: str | None = None) -> None:
        response = self._send_with_retry(
            "POST",
            f"/products/{product_id}/reduce-stock",
            json={"quantity": quantity},
            headers=bearer(token),
        )
        if response.status_code in (400, 404, 409):
            raise InsufficientStock(product_id, quantity)
        if not response.is_success:
            raise ServiceUnavailable(self.service, f"Stock decrement for {product_id} returned {response.status_code}")
        logger.info("Reduced stock", product_id=product_id, quantity=quantity)

    def product_name(self, product_id: str) -> str | None:
        response = self._send_with_retry("GET", f"/products/{product_id}")
        if not response.is_success:
            return None
        return (response.json() or {}).get("name")
