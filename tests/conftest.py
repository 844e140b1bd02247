import os
from pathlib import Path

import pytest
from ordering.gateways.cart import Cart, CartGateway
from ordering.gateways.identity import Identity, IdentityGateway
from ordering.gateways.products import ProductGateway
from ordering.order.order import LineItem
from shared.errors import AuthenticationFailure, InsufficientStock, ServiceUnavailable

USER_TOKEN = "token-u1"
OTHER_USER_TOKEN = "token-u2"
ADMIN_TOKEN = "token-admin"


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Initialize the ordering domain and push its domain_context, so that
    `current_domain` resolves everywhere in the test run.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from ordering.domain import init_domain, ordering

    init_domain(os.getenv("DATABASE_URL"))
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)


# ---------------------------------------------------------------------------
# In-memory upstream services
# ---------------------------------------------------------------------------
class FakeIdentityGateway(IdentityGateway):
    def __init__(self, identities):
        self.identities = dict(identities)

    def resolve(self, token):
        identity = self.identities.get(token)
        if identity is None:
            raise AuthenticationFailure()
        return identity


class FakeCartGateway(CartGateway):
    def __init__(self):
        self.carts = {}
        self.cleared = []

    def put(self, user_id, items, loyalty_points=0):
        self.carts[user_id] = Cart(user_id=user_id, items=list(items), loyalty_points=loyalty_points)

    def fetch(self, identity):
        return self.carts.get(identity.user_id)

    def clear(self, identity):
        self.cleared.append(identity.user_id)
        self.carts.pop(identity.user_id, None)


class FakeProductGateway(ProductGateway):
    def __init__(self, stock, names=None):
        self.stock = dict(stock)
        self.names = dict(names or {})
        self.availability_checks = []
        self.decrements = []
        self.failing = set()

    def check_available(self, product_id, quantity, token=None):
        self.availability_checks.append((product_id, quantity))
        return self.stock.get(product_id, 0) >= quantity

    def decrement_stock(self, product_id, quantity, token=None):
        if product_id in self.failing:
            raise ServiceUnavailable("products")
        if self.stock.get(product_id, 0) < quantity:
            raise InsufficientStock(product_id, quantity)
        self.stock[product_id] -= quantity
        self.decrements.append((product_id, quantity))

    def product_name(self, product_id):
        return self.names.get(product_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture(scope="session", autouse=True)
def setup_db(request):
    from ordering.domain import ordering
    from shared.db import drop_db, setup_db

    setup_db(ordering)

    yield

    drop_db(ordering)


@pytest.fixture()
def identities():
    return FakeIdentityGateway(
        {
            USER_TOKEN: Identity(user_id="U1", role="USER", token=USER_TOKEN),
            OTHER_USER_TOKEN: Identity(user_id="U2", role="USER", token=OTHER_USER_TOKEN),
            ADMIN_TOKEN: Identity(user_id="admin-1", role="ADMIN", token=ADMIN_TOKEN),
        }
    )


@pytest.fixture()
def carts():
    gateway = FakeCartGateway()
    gateway.put("U1", [LineItem(product_id="P1", name="Trail Shoe", price=10.00, quantity=2)], loyalty_points=20)
    return gateway


@pytest.fixture()
def products():
    return FakeProductGateway(
        stock={"P1": 10, "P2": 5},
        names={"P1": "Trail Shoe", "P2": "Rain Jacket"},
    )


@pytest.fixture()
def payments():
    from payments.gateway.fake_adapter import FakeGateway

    return FakeGateway()


@pytest.fixture(autouse=True)
def run_around_tests(identities, carts, products, payments):
    """Install in-memory upstream services, then clean up infrastructure after every test"""
    from ordering.gateways import reset_gateways, set_cart_gateway, set_identity_gateway, set_product_gateway
    from payments.gateway import reset_gateway, set_gateway

    set_identity_gateway(identities)
    set_cart_gateway(carts)
    set_product_gateway(products)
    set_gateway(payments)

    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()

    reset_gateways()
    reset_gateway()


@pytest.fixture()
def engine():
    from ordering.engine import OrderLifecycleEngine

    return OrderLifecycleEngine(currency="usd")


@pytest.fixture()
def paid_session(engine, payments):
    """Start checkout for U1 and have the buyer pay on the provider's page."""

    def _pay(token=USER_TOKEN):
        result = engine.start_checkout(token)
        payments.mark_paid(result.session_id)
        return result

    return _pay


@pytest.fixture()
def delivered_order(engine, paid_session, identities):
    """A paid, confirmed order that an admin has moved all the way to DELIVERED."""

    def _deliver():
        result = paid_session()
        engine.confirm_payment(result.session_id, identities.identities[USER_TOKEN])
        engine.update_status(ADMIN_TOKEN, result.order_id, "SHIPPED")
        return engine.update_status(ADMIN_TOKEN, result.order_id, "DELIVERED")

    return _deliver
