"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing any domain or application code.

Sessions are hosted checkout pages: the order service creates one, the
buyer pays on the provider's page, and the outcome is read back either
by polling the session or through a signed webhook.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SessionLineItem:
    """One priced line on a hosted checkout page, in minor currency units."""

    name: str
    unit_amount: int
    quantity: int


@dataclass(frozen=True)
class CheckoutSession:
    """The provider's view of a single checkout attempt."""

    session_id: str
    url: str | None = None
    payment_status: str = "unpaid"  # paid, unpaid, no_payment_required
    status: str | None = None  # open, complete, expired
    metadata: dict = field(default_factory=dict)
    amount_total: int | None = None
    currency: str | None = None
    payment_intent_id: str | None = None
    payment_method: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def is_expired(self) -> bool:
        return self.status == "expired"

    @property
    def amount(self) -> float | None:
        if self.amount_total is None:
            return None
        return round(self.amount_total / 100, 2)


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    provider_refund_id: str | None = None
    provider_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    type: str
    session_id: str | None = None
    payload: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_session(
        self,
        line_items: list[SessionLineItem],
        metadata: dict[str, str],
        currency: str,
    ) -> CheckoutSession:
        """Create a hosted checkout session carrying ``metadata``."""
        ...

    @abstractmethod
    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Fetch the authoritative state of a checkout session."""
        ...

    @abstractmethod
    def create_refund(
        self,
        payment_intent_id: str,
        amount: float,
        reason: str,
    ) -> RefundResult:
        """Refund (part of) a captured payment."""
        ...

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook payload is authentically from the provider and parse it."""
        ...
