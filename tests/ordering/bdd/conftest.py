"""Shared BDD fixtures and step definitions for the order lifecycle."""

import pytest
from ordering.order.order import LineItem
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def flow():
    """Ids produced along a scenario: order, session, confirmation, refund."""
    return {}


@pytest.fixture()
def error():
    """Container for the error a When step was expected to raise."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the user has {quantity:d} of "{product_id}" at {price:f} in their cart'))
def _(carts, products, quantity, product_id, price):
    name = products.names.get(product_id, product_id)
    carts.put("U1", [LineItem(product_id=product_id, name=name, price=price, quantity=quantity)])


@given("a delivered order")
def _(flow, delivered_order):
    flow["order_id"] = str(delivered_order().id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(engine, flow, status):
    assert engine.get_order("token-admin", flow["order_id"]).status == status


@then(parsers.cfparse('the request is rejected with "{kind}"'))
def _(error, kind):
    assert error["exc"] is not None
    assert error["exc"].kind == kind


@then(parsers.cfparse('{quantity:d} of "{product_id}" were taken from stock'))
def _(products, quantity, product_id):
    assert products.decrements == [(product_id, quantity)]


@then("no stock was taken")
def _(products):
    assert products.decrements == []
