"""FastAPI routes for the Payments domain: provider webhooks and fake gateway controls."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from payments.api.schemas import (
    ConfigureGatewayRequest,
    FakeSessionResponse,
    GatewayConfigResponse,
    StatusResponse,
)
from payments.gateway.fake_adapter import FakeGateway
from shared.api import get_engine
from shared.config import settings

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=StatusResponse)
async def process_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
    engine=Depends(get_engine),
) -> StatusResponse:
    """Process a payment provider webhook callback.

    The raw body is needed for signature verification.
    """
    payload = await request.body()
    confirmation = engine.handle_webhook(payload, stripe_signature)
    if confirmation is None:
        return StatusResponse(status="ignored")
    return StatusResponse(
        status="processed",
        session_id=confirmation.session_id,
        order_id=confirmation.order_id,
        transaction_id=confirmation.transaction_id,
    )


# ---------------------------------------------------------------------------
# Fake gateway controls (non-production only)
# ---------------------------------------------------------------------------
def fake_gateway(engine=Depends(get_engine)) -> FakeGateway:
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")
    gateway = engine.payments
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")
    return gateway


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(
    body: ConfigureGatewayRequest,
    gateway: FakeGateway = Depends(fake_gateway),
) -> GatewayConfigResponse:
    """Toggle success/failure behavior of the FakeGateway for manual API testing."""
    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


@payment_router.post("/gateway/sessions/{session_id}/pay", response_model=FakeSessionResponse)
async def pay_fake_session(session_id: str, gateway: FakeGateway = Depends(fake_gateway)) -> FakeSessionResponse:
    """Simulate the buyer completing the hosted checkout page."""
    session = gateway.mark_paid(session_id)
    return FakeSessionResponse(session_id=session.session_id, payment_status=session.payment_status, status=session.status)
