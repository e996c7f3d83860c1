"""Tests for installment sale confirmation, proof submission, validation and waivers."""

from datetime import UTC, datetime, timedelta

import pytest
from orders.errors import (
    AlreadyConfirmed,
    CancellationWindowActive,
    InvalidAmount,
    InvalidPayerName,
    InvalidScheduleIndex,
    InvalidTransactionCode,
    InvalidTransition,
    NotBuyerOwned,
    OrderTerminal,
    SaleNotConfirmed,
    Unauthorized,
)
from orders.order.actors import Actor
from orders.order.events import (
    InstallmentPlanCompleted,
    InstallmentProofRejected,
    InstallmentProofSubmitted,
    InstallmentProofValidated,
    InstallmentSaleConfirmed,
    InstallmentWaived,
    OrderCancelled,
    OrderStatusChanged,
)
from orders.order.order import (
    SALE_REJECTED_REASON,
    Order,
    OrderStatus,
    ProofDecision,
    ScheduleEntryStatus,
)
from orders.order.schedule import RiskAssessment

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
OPEN = T0 + timedelta(minutes=5)
CLOSED = T0 + timedelta(minutes=31)

BUYER = Actor.of("buyer-001", "buyer")
SELLER = Actor.of("seller-001", "seller")
OTHER_SELLER = Actor.of("seller-999", "seller")
ADMIN = Actor.of("admin-001", "admin")

CODE = "0123456789"


def _installment_order(count=3, unit_price=30000.00):
    order = Order.place_installment(
        customer_id="buyer-001",
        items_data=[
            {
                "product_id": "prod-001",
                "seller_id": "seller-001",
                "title": "Laptop",
                "quantity": 1,
                "unit_price": unit_price,
            }
        ],
        installment_count=count,
        cadence_days=30,
        risk=RiskAssessment(eligibility_score=80, risk_level="low"),
        late_penalty_rate=1.0,
        actor=BUYER,
        now=T0,
    )
    order._events.clear()
    return order


def _active_order(count=3, unit_price=30000.00):
    order = _installment_order(count, unit_price)
    order.confirm_sale(SELLER, approve=True, now=CLOSED)
    order._events.clear()
    return order


def _pay(order, index, now=CLOSED):
    entry = order.ordered_schedule[index]
    order.submit_proof(BUYER, index, "Ada Obi", CODE, entry.amount, now=now)
    order.validate_proof(SELLER, index, approve=True, now=now)


# ---------------------------------------------------------------
# Sale confirmation
# ---------------------------------------------------------------
class TestConfirmSale:
    def test_seller_approves_after_window(self):
        order = _installment_order()
        order.confirm_sale(SELLER, approve=True, now=CLOSED)
        assert order.status == OrderStatus.INSTALLMENT_ACTIVE.value
        assert order.installment_plan.sale_confirmed_at == CLOSED
        assert order.installment_plan.sale_confirmed_by == "seller-001"
        assert order.installment_plan.next_due_date == order.ordered_schedule[0].due_date

    def test_approval_raises_events(self):
        order = _installment_order()
        order.confirm_sale(SELLER, approve=True, now=CLOSED)
        assert [type(e) for e in order._events] == [OrderStatusChanged, InstallmentSaleConfirmed]
        assert order._events[0].cause == "sale_confirmation"

    def test_seller_blocked_during_window(self):
        order = _installment_order()
        with pytest.raises(CancellationWindowActive):
            order.confirm_sale(SELLER, approve=True, now=OPEN)

    def test_admin_confirms_during_window(self):
        order = _installment_order()
        order.confirm_sale(ADMIN, approve=True, now=OPEN)
        assert order.sale_confirmed

    def test_rejection_cancels_order(self):
        order = _installment_order()
        order.confirm_sale(SELLER, approve=False, now=OPEN)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == SALE_REJECTED_REASON
        assert isinstance(order._events[-1], OrderCancelled)

    def test_rejected_sale_accepts_no_proofs(self):
        order = _installment_order()
        order.confirm_sale(SELLER, approve=False, now=CLOSED)
        with pytest.raises(OrderTerminal):
            order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)

    def test_confirmation_is_one_shot(self):
        order = _active_order()
        with pytest.raises(AlreadyConfirmed):
            order.confirm_sale(SELLER, approve=True, now=CLOSED)
        with pytest.raises(AlreadyConfirmed):
            order.confirm_sale(SELLER, approve=False, now=CLOSED)

    def test_full_order_has_no_sale_to_confirm(self):
        order = Order.place(
            customer_id="buyer-001",
            items_data=[
                {"product_id": "p", "seller_id": "seller-001", "title": "Pen", "quantity": 1, "unit_price": 5.0}
            ],
            actor=BUYER,
            now=T0,
        )
        with pytest.raises(InvalidTransition):
            order.confirm_sale(SELLER, approve=True, now=CLOSED)

    def test_buyer_cannot_confirm(self):
        order = _installment_order()
        with pytest.raises(Unauthorized):
            order.confirm_sale(BUYER, approve=True, now=CLOSED)

    def test_other_seller_cannot_confirm(self):
        order = _installment_order()
        with pytest.raises(Unauthorized):
            order.confirm_sale(OTHER_SELLER, approve=True, now=CLOSED)


# ---------------------------------------------------------------
# Proof submission
# ---------------------------------------------------------------
class TestSubmitProof:
    def test_submission_marks_tranche_uploaded(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, " Ada Obi ", CODE, 10000.00, now=CLOSED)
        entry = order.ordered_schedule[0]
        assert entry.status == ScheduleEntryStatus.PROOF_UPLOADED.value
        assert entry.transaction_proof.payer_name == "Ada Obi"
        assert entry.transaction_proof.transaction_code == CODE
        assert entry.transaction_proof.submitted_at == CLOSED
        assert len(order.proof_history) == 1
        assert order.proof_history[0].decision == ProofDecision.SUBMITTED.value

    def test_submission_raises_event(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        event = order._events[-1]
        assert isinstance(event, InstallmentProofSubmitted)
        assert event.schedule_index == 0
        assert event.amount == 10000.00
        assert event.actor_role == "buyer"

    def test_short_transaction_code_rejected(self):
        order = _active_order()
        with pytest.raises(InvalidTransactionCode) as exc_info:
            order.submit_proof(BUYER, 0, "Ada Obi", "12345", 10000.00, now=CLOSED)
        assert exc_info.value.kind == "InvalidTransactionCode"
        assert order.ordered_schedule[0].status == ScheduleEntryStatus.PENDING.value

    @pytest.mark.parametrize("code", ["01234567890", "01234abcde", "", "01234 56789"])
    def test_malformed_transaction_codes_rejected(self, code):
        order = _active_order()
        with pytest.raises(InvalidTransactionCode):
            order.submit_proof(BUYER, 0, "Ada Obi", code, 10000.00, now=CLOSED)

    def test_surrounding_whitespace_in_code_is_ignored(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", f"  {CODE}\n", 10000.00, now=CLOSED)
        assert order.ordered_schedule[0].transaction_proof.transaction_code == CODE

    def test_blank_payer_name_rejected(self):
        order = _active_order()
        with pytest.raises(InvalidPayerName):
            order.submit_proof(BUYER, 0, "   ", CODE, 10000.00, now=CLOSED)

    def test_amount_must_match_tranche(self):
        order = _active_order()
        with pytest.raises(InvalidAmount):
            order.submit_proof(BUYER, 0, "Ada Obi", CODE, 9999.99, now=CLOSED)

    def test_amount_must_be_positive(self):
        order = _active_order()
        with pytest.raises(InvalidAmount):
            order.submit_proof(BUYER, 0, "Ada Obi", CODE, 0, now=CLOSED)

    @pytest.mark.parametrize("index", [-1, 3, 10])
    def test_index_out_of_range(self, index):
        order = _active_order()
        with pytest.raises(InvalidScheduleIndex):
            order.submit_proof(BUYER, index, "Ada Obi", CODE, 10000.00, now=CLOSED)

    def test_tranches_are_paid_in_order(self):
        order = _active_order()
        with pytest.raises(InvalidScheduleIndex):
            order.submit_proof(BUYER, 1, "Ada Obi", CODE, 10000.00, now=CLOSED)

    def test_uploaded_tranche_rejects_second_proof(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        with pytest.raises(InvalidScheduleIndex):
            order.submit_proof(BUYER, 0, "Ada Obi", "9876543210", 10000.00, now=CLOSED)

    def test_sale_must_be_confirmed(self):
        order = _installment_order()
        with pytest.raises(SaleNotConfirmed):
            order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)

    def test_only_the_buyer_submits(self):
        order = _active_order()
        with pytest.raises(NotBuyerOwned):
            order.submit_proof(SELLER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        with pytest.raises(NotBuyerOwned):
            order.submit_proof(ADMIN, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)


# ---------------------------------------------------------------
# Proof validation
# ---------------------------------------------------------------
class TestValidateProof:
    def test_approval_marks_tranche_paid(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        order.validate_proof(SELLER, 0, approve=True, now=CLOSED)

        entry = order.ordered_schedule[0]
        assert entry.status == ScheduleEntryStatus.PAID.value
        assert entry.paid_at == CLOSED
        assert entry.validated_by == "seller-001"
        assert order.installment_plan.amount_paid == 10000.00
        assert order.installment_plan.remaining_amount == 20000.00
        assert order.installment_plan.next_due_date == order.ordered_schedule[1].due_date
        assert order.paid_amount == 10000.00
        assert order.remaining_amount == 20000.00
        assert order.proof_history[0].decision == ProofDecision.ACCEPTED.value
        assert isinstance(order._events[-1], InstallmentProofValidated)

    def test_rejection_reopens_tranche(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        order.validate_proof(SELLER, 0, approve=False, now=CLOSED)

        assert order.ordered_schedule[0].status == ScheduleEntryStatus.PENDING.value
        assert order.installment_plan.amount_paid == 0.0
        assert order.proof_history[0].decision == ProofDecision.REJECTED.value
        assert isinstance(order._events[-1], InstallmentProofRejected)

    def test_rejected_tranche_accepts_new_proof(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        order.validate_proof(SELLER, 0, approve=False, now=CLOSED)
        order.submit_proof(BUYER, 0, "Ada Obi", "9876543210", 10000.00, now=CLOSED + timedelta(hours=1))

        assert len(order.proof_history) == 2
        decisions = sorted(r.decision for r in order.proof_history)
        assert decisions == ["rejected", "submitted"]

    def test_no_proof_to_validate(self):
        order = _active_order()
        with pytest.raises(InvalidScheduleIndex):
            order.validate_proof(SELLER, 0, approve=True, now=CLOSED)

    def test_buyer_cannot_validate(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        with pytest.raises(Unauthorized):
            order.validate_proof(BUYER, 0, approve=True, now=CLOSED)

    def test_admin_validates(self):
        order = _active_order()
        order.submit_proof(BUYER, 0, "Ada Obi", CODE, 10000.00, now=CLOSED)
        order.validate_proof(ADMIN, 0, approve=True, now=CLOSED)
        assert order.ordered_schedule[0].status == ScheduleEntryStatus.PAID.value


# ---------------------------------------------------------------
# Completion
# ---------------------------------------------------------------
class TestPlanCompletion:
    def test_paying_every_tranche_completes_once(self):
        order = _active_order()
        for index in range(3):
            _pay(order, index)

        assert order.status == OrderStatus.COMPLETED.value
        assert order.installment_sale_status == "confirmed"
        assert order.installment_plan.amount_paid == 30000.00
        assert order.installment_plan.remaining_amount == 0.0
        assert order.installment_plan.completed_at == CLOSED
        assert order.installment_plan.next_due_date is None

        completed = [e for e in order._events if isinstance(e, InstallmentPlanCompleted)]
        to_completed = [
            e for e in order._events if isinstance(e, OrderStatusChanged) and e.new_status == "completed"
        ]
        assert len(completed) == 1
        assert len(to_completed) == 1

    def test_uneven_schedule_completes_with_exact_total(self):
        order = _active_order(count=3, unit_price=100.00)
        for index in range(3):
            _pay(order, index)
        assert order.installment_plan.amount_paid == 100.00
        assert order.remaining_amount == 0.0

    def test_nothing_left_to_validate_after_completion(self):
        order = _active_order(count=1)
        _pay(order, 0)
        with pytest.raises(InvalidScheduleIndex):
            order.validate_proof(SELLER, 0, approve=True, now=CLOSED)


# ---------------------------------------------------------------
# Waivers
# ---------------------------------------------------------------
class TestWaiveInstallment:
    def test_waived_amount_is_not_paid(self):
        order = _active_order()
        order.waive_installment(SELLER, 0, now=CLOSED)

        entry = order.ordered_schedule[0]
        assert entry.status == ScheduleEntryStatus.WAIVED.value
        assert entry.waived_by == "seller-001"
        assert order.installment_plan.amount_paid == 0.0
        assert order.installment_plan.remaining_amount == 30000.00
        assert isinstance(order._events[-1], InstallmentWaived)

    def test_waived_tranche_unblocks_next(self):
        order = _active_order()
        order.waive_installment(SELLER, 0, now=CLOSED)
        order.submit_proof(BUYER, 1, "Ada Obi", CODE, 10000.00, now=CLOSED)
        assert order.ordered_schedule[1].status == ScheduleEntryStatus.PROOF_UPLOADED.value

    def test_settling_by_waiver_completes_plan(self):
        order = _active_order(count=2)
        _pay(order, 0)
        order.waive_installment(SELLER, 1, now=CLOSED)
        assert order.status == OrderStatus.COMPLETED.value
        assert order.installment_plan.amount_paid == 15000.00

    def test_paid_tranche_cannot_be_waived(self):
        order = _active_order()
        _pay(order, 0)
        with pytest.raises(InvalidScheduleIndex):
            order.waive_installment(SELLER, 0, now=CLOSED)

    def test_buyer_cannot_waive(self):
        order = _active_order()
        with pytest.raises(Unauthorized):
            order.waive_installment(BUYER, 0, now=CLOSED)
