"""Shared BDD fixtures and step definitions for the Orders domain.

Scenarios drive the Order aggregate directly on a fixed clock: checkout at
T0, the cancellation window closing thirty minutes later.
"""

from datetime import UTC, datetime, timedelta

import pytest
from orders.order.actors import Actor
from orders.order.events import (
    CancellationWindowSkipped,
    InstallmentDueSoon,
    InstallmentPlanCompleted,
    InstallmentProofRejected,
    InstallmentProofSubmitted,
    InstallmentProofValidated,
    InstallmentSaleConfirmed,
    InstallmentWaived,
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PenaltiesAccrued,
)
from orders.order.order import Order
from orders.order.schedule import RiskAssessment
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
WINDOW_OPEN = T0 + timedelta(minutes=5)
WINDOW_CLOSED = T0 + timedelta(minutes=31)

ACTORS = {
    "buyer": Actor.of("buyer-001", "buyer"),
    "seller": Actor.of("seller-001", "seller"),
    "admin": Actor.of("admin-001", "admin"),
}

_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderStatusChanged": OrderStatusChanged,
    "OrderCancelled": OrderCancelled,
    "CancellationWindowSkipped": CancellationWindowSkipped,
    "InstallmentSaleConfirmed": InstallmentSaleConfirmed,
    "InstallmentProofSubmitted": InstallmentProofSubmitted,
    "InstallmentProofValidated": InstallmentProofValidated,
    "InstallmentProofRejected": InstallmentProofRejected,
    "InstallmentWaived": InstallmentWaived,
    "InstallmentPlanCompleted": InstallmentPlanCompleted,
    "InstallmentDueSoon": InstallmentDueSoon,
    "PenaltiesAccrued": PenaltiesAccrued,
}


def _item(unit_price: float) -> dict:
    return {
        "product_id": "prod-001",
        "seller_id": "seller-001",
        "title": "Laptop",
        "quantity": 1,
        "unit_price": unit_price,
    }


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def clock():
    """Mutable "now" that When steps act at."""
    return {"now": WINDOW_OPEN}


@pytest.fixture()
def error():
    """Container for the failure captured by a When step."""
    return {"exc": None}


@pytest.fixture()
def actors():
    return ACTORS


@pytest.fixture()
def attempt(error):
    """Run a When action, keeping its validation failure for the Then steps."""

    def _attempt(action) -> None:
        try:
            action()
        except ValidationError as exc:
            error["exc"] = exc

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a buyer placed an order for {amount:f}"), target_fixture="order")
def _(amount):
    order = Order.place(
        customer_id="buyer-001",
        items_data=[_item(amount)],
        delivery_address="12 Market Street",
        actor=ACTORS["buyer"],
        now=T0,
    )
    order._events.clear()
    return order


@given(
    parsers.cfparse("a buyer placed an installment order for {amount:f} in {count:d} tranches"),
    target_fixture="order",
)
def _(amount, count):
    order = Order.place_installment(
        customer_id="buyer-001",
        items_data=[_item(amount)],
        installment_count=count,
        cadence_days=30,
        risk=RiskAssessment(eligibility_score=80, risk_level="low"),
        late_penalty_rate=1.0,
        actor=ACTORS["buyer"],
        now=T0,
    )
    order._events.clear()
    return order


@given("the cancellation window has expired")
def _(clock):
    clock["now"] = WINDOW_CLOSED


@given("the buyer released the cancellation window", target_fixture="order")
def _(order, clock):
    order.skip_cancellation_window(ACTORS["buyer"], now=WINDOW_OPEN)
    order._events.clear()
    return order


@given("the seller confirmed the sale", target_fixture="order")
def _(order, clock):
    clock["now"] = WINDOW_CLOSED
    order.confirm_sale(ACTORS["seller"], approve=True, now=WINDOW_CLOSED)
    order._events.clear()
    return order


@given(parsers.cfparse('the seller moved the order to "{status}"'), target_fixture="order")
def _(order, clock, status):
    order.request_transition(ACTORS["seller"], status, now=clock["now"])
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order, status):
    assert order.status == status


@then(parsers.cfparse('the action fails with "{kind}"'))
def _(error, kind):
    assert error["exc"] is not None, "Expected the action to fail"
    assert getattr(error["exc"], "kind", type(error["exc"]).__name__) == kind


@then("the action succeeds")
def _(error):
    assert error["exc"] is None, f"Unexpected failure: {error['exc']}"


@then(parsers.cfparse("an {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in order._events)


@then(parsers.cfparse("a {event_type} order event is raised"))
def _(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in order._events)


@then(parsers.cfparse('tranche {index:d} is "{status}"'))
def _(order, index, status):
    assert order.ordered_schedule[index].status == status
