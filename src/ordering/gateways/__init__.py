"""Upstream service gateway factory.

Provides get_*() / set_*() to swap implementations of the identity, cart
and product gateways. The HTTP gateways are built from settings on first
use; tests install in-memory fakes with the setters.
"""

from ordering.gateways.cart import CartGateway, HttpCartGateway
from ordering.gateways.identity import HttpIdentityGateway, IdentityGateway
from ordering.gateways.products import HttpProductGateway, ProductGateway
from shared.config import Settings, settings as default_settings

_current_identities: IdentityGateway | None = None
_current_carts: CartGateway | None = None
_current_products: ProductGateway | None = None


def _http(settings: Settings) -> dict:
    return {"timeout": settings.HTTP_TIMEOUT_SECONDS}


def get_identity_gateway(settings: Settings | None = None) -> IdentityGateway:
    global _current_identities
    if _current_identities is None:
        settings = settings or default_settings
        _current_identities = HttpIdentityGateway(settings.AUTH_SERVICE_URL, **_http(settings))
    return _current_identities


def get_cart_gateway(settings: Settings | None = None) -> CartGateway:
    global _current_carts
    if _current_carts is None:
        settings = settings or default_settings
        _current_carts = HttpCartGateway(settings.PRODUCT_SERVICE_URL, **_http(settings))
    return _current_carts


def get_product_gateway(settings: Settings | None = None) -> ProductGateway:
    """Product calls are the only upstream calls retried on transient failures."""
    global _current_products
    if _current_products is None:
        settings = settings or default_settings
        _current_products = HttpProductGateway(
            settings.PRODUCT_SERVICE_URL,
            max_attempts=settings.GATEWAY_MAX_ATTEMPTS,
            backoff=settings.GATEWAY_BACKOFF_SECONDS,
            **_http(settings),
        )
    return _current_products


def set_identity_gateway(gateway: IdentityGateway) -> None:
    global _current_identities
    _current_identities = gateway


def set_cart_gateway(gateway: CartGateway) -> None:
    global _current_carts
    _current_carts = gateway


def set_product_gateway(gateway: ProductGateway) -> None:
    global _current_products
    _current_products = gateway


def reset_gateways() -> None:
    """Drop overrides; the next get_*() call builds HTTP gateways again."""
    global _current_identities, _current_carts, _current_products
    _current_identities = None
    _current_carts = None
    _current_products = None
