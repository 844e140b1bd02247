"""Error taxonomy shared by the ordering and payments contexts.

Every failure the service surfaces is an ``OrderingError``, itself a
``ProteanException``. Each carries a stable ``kind`` (the class name), the
HTTP status it maps to, whether it is the caller's fault (``client_facing``)
and structured details naming the offending ids. The API layer renders
them as::

    {"error": "ProductUnavailable", "message": "...", "product_id": "P1", "requested_qty": 3}

State-machine violations are also ``protean.exceptions.ValidationError``
and a missing order is also an ``ObjectNotFoundError``, so they read like
the rule violations aggregates raise themselves.
"""

from typing import Any

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError


class OrderingError(ProteanException):
    """Base class for all errors raised by the ordering service."""

    status_code: int = 400
    client_facing: bool = True

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.details}


# ---------------------------------------------------------------------------
# Client-facing errors
# ---------------------------------------------------------------------------
class AuthenticationFailure(OrderingError):
    status_code = 401

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class EmptyCart(OrderingError):
    status_code = 400

    def __init__(self, user_id: str) -> None:
        super().__init__("Cart is empty", user_id=user_id)
        self.user_id = user_id


class ProductUnavailable(OrderingError):
    status_code = 409

    def __init__(self, product_id: str, requested_qty: int) -> None:
        super().__init__(
            f"Product {product_id} is not available in quantity {requested_qty}",
            product_id=product_id,
            requested_qty=requested_qty,
        )
        self.product_id = product_id
        self.requested_qty = requested_qty


class OrderNotFound(OrderingError, ObjectNotFoundError):
    status_code = 404

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found", order_id=order_id)
        self.order_id = order_id


class InvalidSession(OrderingError):
    status_code = 400

    def __init__(self, session_id: str, message: str = "Payment session carries no order metadata") -> None:
        super().__init__(message, session_id=session_id)
        self.session_id = session_id


class OwnershipMismatch(OrderingError):
    status_code = 403

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} does not belong to the caller", order_id=order_id)
        self.order_id = order_id


class InvalidStatusTransition(OrderingError, ValidationError):
    status_code = 409

    def __init__(self, current, target) -> None:
        current = getattr(current, "value", current)
        target = getattr(target, "value", target)
        message = f"Cannot transition from {current} to {target}"
        super().__init__(message, **{"from": current, "to": target})
        self.messages = {"status": [message]}
        self.current = current
        self.target = target


class NotCancellable(OrderingError, ValidationError):
    status_code = 409

    def __init__(self, order_id: str, status) -> None:
        status = getattr(status, "value", status)
        message = f"Order {order_id} cannot be cancelled in {status} state"
        super().__init__(message, order_id=order_id, status=status)
        self.messages = {"status": [message]}
        self.order_id = order_id
        self.status = status


class Forbidden(OrderingError):
    status_code = 403

    def __init__(self, message: str = "Administrator role required") -> None:
        super().__init__(message)


class InvalidWebhookSignature(OrderingError):
    status_code = 401

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Server-facing errors
# ---------------------------------------------------------------------------
class PaymentProviderError(OrderingError):
    status_code = 502
    client_facing = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, **details)


class StoreError(OrderingError):
    status_code = 500
    client_facing = False

    def __init__(self, message: str = "Persistence failure", **details: Any) -> None:
        super().__init__(message, **details)


class DuplicateTransaction(StoreError):
    """A payment for this provider session has already been recorded."""

    status_code = 409

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Payment for session {session_id} already recorded", session_id=session_id)
        self.session_id = session_id


class InsufficientStock(OrderingError):
    status_code = 409
    client_facing = False

    def __init__(self, product_id: str, quantity: int) -> None:
        super().__init__(
            f"Insufficient stock to remove {quantity} of product {product_id}",
            product_id=product_id,
            quantity=quantity,
        )
        self.product_id = product_id
        self.quantity = quantity


class ServiceUnavailable(OrderingError):
    status_code = 503
    client_facing = False

    def __init__(self, service: str, message: str | None = None) -> None:
        super().__init__(message or f"{service} service unavailable", service=service)
        self.service = service
