"""FastAPI routes for the Ordering domain: orders and checkout sessions."""

from fastapi import APIRouter, Depends

from ordering.api.schemas import (
    CheckoutSessionResponse,
    OrderResponse,
    PaymentConfirmationResponse,
    SessionStatusResponse,
    TransactionResponse,
    UpdateStatusRequest,
)
from shared.api import bearer_token, get_engine

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=OrderResponse)
async def initiate_checkout(token: str | None = Depends(bearer_token), engine=Depends(get_engine)) -> OrderResponse:
    """Create an order from the caller's cart."""
    order = engine.initiate_checkout(token)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/payment-session", status_code=201, response_model=CheckoutSessionResponse)
async def create_payment_session(
    order_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> CheckoutSessionResponse:
    """Open a hosted payment session for an order awaiting payment.

    Items and prices are taken from the caller's cart on the server.
    """
    result = engine.create_payment_session(token, order_id)
    return CheckoutSessionResponse(session_id=result.session_id, order_id=result.order_id, checkout_url=result.checkout_url)


@order_router.get("", response_model=list[OrderResponse])
async def list_my_orders(token: str | None = Depends(bearer_token), engine=Depends(get_engine)) -> list[OrderResponse]:
    return [OrderResponse.from_order(order) for order in engine.list_orders(token)]


@order_router.get("/user/{user_id}", response_model=list[OrderResponse])
async def list_user_orders(
    user_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> list[OrderResponse]:
    """Orders of a user. Only administrators may list someone else's orders."""
    return [OrderResponse.from_order(order) for order in engine.list_orders(token, user_id)]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, token: str | None = Depends(bearer_token), engine=Depends(get_engine)) -> OrderResponse:
    return OrderResponse.from_order(engine.get_order(token, order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> OrderResponse:
    """Move an order through the status state machine (administrators only)."""
    order = engine.update_status(token, order_id, body.status)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> OrderResponse:
    return OrderResponse.from_order(engine.cancel_order(token, order_id))


@order_router.post("/{order_id}/refund", response_model=TransactionResponse)
async def refund_order(
    order_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> TransactionResponse:
    """Refund a delivered order."""
    return TransactionResponse.from_transaction(engine.refund_order(token, order_id))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/sessions", status_code=201, response_model=CheckoutSessionResponse)
async def start_checkout(
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> CheckoutSessionResponse:
    """Create an order from the cart and open its payment session in one step."""
    result = engine.start_checkout(token)
    return CheckoutSessionResponse(session_id=result.session_id, order_id=result.order_id, checkout_url=result.checkout_url)


@checkout_router.post("/sessions/{session_id}/confirm", response_model=PaymentConfirmationResponse)
async def confirm_payment(
    session_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> PaymentConfirmationResponse:
    """Confirm a payment after the buyer returns from the provider's page."""
    confirmation = engine.confirm_payment_for(token, session_id)
    return PaymentConfirmationResponse.from_confirmation(confirmation)


@checkout_router.get("/sessions/{session_id}/status", response_model=SessionStatusResponse)
async def payment_status(
    session_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> SessionStatusResponse:
    status = engine.payment_status(token, session_id)
    return SessionStatusResponse(session_id=session_id, status=status.value)


@checkout_router.post("/sessions/{session_id}/cancel", response_model=OrderResponse)
async def abandon_session(
    session_id: str,
    token: str | None = Depends(bearer_token),
    engine=Depends(get_engine),
) -> OrderResponse:
    """Cancel the order behind a session the buyer abandoned."""
    return OrderResponse.from_order(engine.abandon_session(token, session_id))
