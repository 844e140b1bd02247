"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the domain model.
Clients never send line items or prices: both are read from the cart
service on the server.
"""

from datetime import datetime

from pydantic import BaseModel

from ordering.order.order import OrderStatus


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemResponse(BaseModel):
    product_id: str
    name: str = ""
    price: float
    quantity: int
    discount: float = 0.0
    brand: str | None = None
    image: str | None = None
    subtotal: float

    @classmethod
    def from_item(cls, item) -> "LineItemResponse":
        return cls(
            product_id=item.product_id,
            name=item.name or "",
            price=item.unit_price,
            quantity=item.quantity,
            discount=item.discount or 0.0,
            brand=item.brand,
            image=item.image,
            subtotal=item.subtotal,
        )


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class UpdateStatusRequest(BaseModel):
    status: OrderStatus

    model_config = {"json_schema_extra": {"examples": [{"status": "SHIPPED"}]}}


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    order_id: str
    user_id: str
    status: str
    items: list[LineItemResponse]
    total_amount: float
    loyalty_points: int
    created_at: datetime
    updated_at: datetime
    provider_session_id: str | None = None
    payment_status: str | None = None
    payment_method: str | None = None
    payment_completed_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            user_id=order.user_id,
            status=order.status,
            items=[LineItemResponse.from_item(item) for item in order.items],
            total_amount=order.total_amount,
            loyalty_points=order.loyalty_points or 0,
            created_at=order.created_at,
            updated_at=order.updated_at,
            provider_session_id=order.provider_session_id,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_completed_at=order.payment_completed_at,
        )


class CheckoutSessionResponse(BaseModel):
    session_id: str
    order_id: str
    checkout_url: str | None = None


class TransactionResponse(BaseModel):
    transaction_id: str
    order_id: str
    type: str
    status: str
    amount: float
    currency: str

    @classmethod
    def from_transaction(cls, transaction) -> "TransactionResponse":
        return cls(
            transaction_id=str(transaction.id),
            order_id=str(transaction.order_id),
            type=transaction.transaction_type,
            status=transaction.status,
            amount=transaction.amount,
            currency=transaction.currency,
        )


class PaymentConfirmationResponse(BaseModel):
    session_id: str
    order_id: str
    status: str
    confirmed: bool
    transaction_id: str | None = None
    amount: float | None = None
    already_processed: bool = False
    reconciliation_required: list[str] = []
    message: str = ""

    @classmethod
    def from_confirmation(cls, confirmation) -> "PaymentConfirmationResponse":
        return cls(
            session_id=confirmation.session_id,
            order_id=confirmation.order_id,
            status=confirmation.status,
            confirmed=confirmation.confirmed,
            transaction_id=confirmation.transaction_id,
            amount=confirmation.amount,
            already_processed=confirmation.already_processed,
            reconciliation_required=list(confirmation.reconciliation_required),
            message=confirmation.message,
        )


class SessionStatusResponse(BaseModel):
    session_id: str
    status: str
