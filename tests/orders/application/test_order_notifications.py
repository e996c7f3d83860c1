"""Application tests for OrderNotificationHandler: who hears about what."""

import json
from datetime import timedelta

from orders.order.dispatch import dispatch, dispatch_new
from orders.order.installments import ConfirmSale, SubmitProof, ValidateProof
from orders.order.order import Order
from orders.order.placement import PlaceInstallmentOrder, PlaceOrder
from orders.order.transitions import CancelOrder, RequestTransition, SkipCancellationWindow
from orders.penalty.accrual import AccruePenalties
from protean import current_domain

BUYER = {"actor_id": "buyer-001", "actor_role": "buyer"}
SELLER = {"actor_id": "seller-001", "actor_role": "seller"}
ADMIN = {"actor_id": "admin-001", "actor_role": "admin"}


def _place_order(products=("prod-phone",)):
    return dispatch_new(
        PlaceOrder(
            customer_id="buyer-001",
            items=json.dumps([{"product_id": p, "quantity": 1} for p in products]),
            **BUYER,
        )
    )


def _confirmed_installment_order():
    order_id = dispatch_new(
        PlaceInstallmentOrder(
            customer_id="buyer-001",
            items=json.dumps([{"product_id": "prod-laptop", "quantity": 1}]),
            installment_count=1,
            eligibility_score=80,
            **BUYER,
        )
    )
    dispatch(SkipCancellationWindow(order_id=order_id, **BUYER))
    dispatch(ConfirmSale(order_id=order_id, approve=True, **SELLER))
    return order_id


def _kinds(notifier, recipient_id):
    return [n["kind"] for n in notifier.sent_to(recipient_id)]


class TestCounterpartNotifications:
    def test_buyer_checkout_notifies_every_seller(self, catalog, notifier):
        _place_order(("prod-phone", "prod-case"))
        assert "order_placed" in _kinds(notifier, "seller-001")
        assert "order_placed" in _kinds(notifier, "seller-002")
        assert _kinds(notifier, "buyer-001") == []

    def test_seller_action_notifies_buyer(self, catalog, notifier):
        order_id = _place_order()
        notifier.reset()
        dispatch(CancelOrder(order_id=order_id, reason="Out of stock", **SELLER))

        sent = notifier.sent_to("buyer-001")
        assert [n["kind"] for n in sent] == ["order_status_changed"]
        assert sent[0]["payload"]["new_status"] == "cancelled"
        assert sent[0]["payload"]["reason"] == "Out of stock"
        assert _kinds(notifier, "seller-001") == []

    def test_admin_action_notifies_both_sides(self, catalog, notifier):
        order_id = _place_order()
        notifier.reset()
        dispatch(RequestTransition(order_id=order_id, target_status="confirmed", **ADMIN))

        assert _kinds(notifier, "buyer-001") == ["order_status_changed"]
        assert _kinds(notifier, "seller-001") == ["order_status_changed"]

    def test_proof_round_trip_notifications(self, catalog, notifier):
        order_id = _confirmed_installment_order()
        notifier.reset()

        dispatch(
            SubmitProof(
                order_id=order_id,
                schedule_index=0,
                payer_name="Ada Obi",
                transaction_code="0123456789",
                amount=30000.00,
                **BUYER,
            )
        )
        assert _kinds(notifier, "seller-001") == ["installment_proof_submitted"]

        dispatch(ValidateProof(order_id=order_id, schedule_index=0, approve=True, **SELLER))
        assert "installment_payment_validated" in _kinds(notifier, "buyer-001")

    def test_completion_notifies_everyone_with_invoice_flag(self, catalog, notifier):
        order_id = _confirmed_installment_order()
        dispatch(
            SubmitProof(
                order_id=order_id,
                schedule_index=0,
                payer_name="Ada Obi",
                transaction_code="0123456789",
                amount=30000.00,
                **BUYER,
            )
        )
        dispatch(ValidateProof(order_id=order_id, schedule_index=0, approve=True, **SELLER))

        completed = [n for n in notifier.sent if n["kind"] == "installment_completed"]
        assert {n["recipient_id"] for n in completed} == {"buyer-001", "seller-001"}
        assert all(n["payload"]["invoice_eligible"] for n in completed)

    def test_due_soon_reminder_goes_to_buyer(self, catalog, notifier):
        order_id = _confirmed_installment_order()
        notifier.reset()
        order = current_domain.repository_for(Order).get(order_id)
        due = order.ordered_schedule[0].due_date

        dispatch(AccruePenalties(order_id=order_id, as_of=due - timedelta(days=1)))

        assert _kinds(notifier, "buyer-001") == ["installment_due_reminder"]


class TestFireAndForget:
    def test_failing_notifier_does_not_undo_order_change(self, catalog, notifier):
        notifier.configure(should_fail=True)
        order_id = _place_order()

        dispatch(CancelOrder(order_id=order_id, reason="Out of stock", **SELLER))

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == "cancelled"
        assert notifier.sent == []
