"""Pydantic request/response schemas for the Payments API."""

from pydantic import BaseModel


class StatusResponse(BaseModel):
    status: str
    session_id: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str


class FakeSessionResponse(BaseModel):
    session_id: str
    payment_status: str
    status: str | None = None
