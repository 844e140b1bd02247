"""Runtime configuration for the ordering service.

Every value can be overridden through an environment variable of the same
name. ``DATABASE_URL`` picks the persistence provider of the ordering
domain: unset keeps Protean's in-memory provider, a ``sqlite://`` or
``postgresql://`` URL switches to the matching SQLAlchemy provider.
"""

import os

from pydantic import BaseModel


class Settings(BaseModel):
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")

    # Upstream services
    AUTH_SERVICE_URL: str = os.getenv("AUTH_SERVICE_URL", "http://localhost:8081/api/v1")
    PRODUCT_SERVICE_URL: str = os.getenv("PRODUCT_SERVICE_URL", "http://localhost:8082/api")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "5.0"))
    GATEWAY_MAX_ATTEMPTS: int = int(os.getenv("GATEWAY_MAX_ATTEMPTS", "3"))
    GATEWAY_BACKOFF_SECONDS: float = float(os.getenv("GATEWAY_BACKOFF_SECONDS", "0.5"))

    # Payment provider
    STRIPE_SECRET_KEY: str | None = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: str | None = os.getenv("STRIPE_WEBHOOK_SECRET")
    CHECKOUT_SUCCESS_URL: str = os.getenv("CHECKOUT_SUCCESS_URL", "http://localhost:3000/checkout/success")
    CHECKOUT_CANCEL_URL: str = os.getenv("CHECKOUT_CANCEL_URL", "http://localhost:3000/checkout/cancel")
    CURRENCY: str = os.getenv("CURRENCY", "usd")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production" or os.environ.get("PROTEAN_ENV") == "production"


settings = Settings()
