"""Order aggregate (CQRS): the order lifecycle and installment payment engine.

An order is the unit of consistency. Every status change, proof submission,
validation, waiver and penalty accrual is a method on this aggregate, and the
application layer loads, mutates and saves it under a per-order lock.

Classic orders (payment_type=full):
    pending → confirmed → delivering → delivered
    {pending, confirmed, delivering} → cancelled

Installment orders (payment_type=installment):
    pending_installment → installment_active        (seller sale confirmation)
    installment_active ⇄ overdue_installment         (penalty sweep)
    {installment_active, overdue_installment} → completed   (all tranches settled)
    {pending_installment, installment_active, overdue_installment} → cancelled

Once completed, installment_sale_status tracks physical fulfillment:
    confirmed → delivering → delivered, {confirmed, delivering} → cancelled
"""

import json
import re
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orders.domain import orders
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
    ReasonTooShort,
    SaleNotConfirmed,
    Unauthorized,
)
from orders.order.actors import Actor
from orders.order.events import (
    CancellationWindowSkipped,
    DeliveryAddressChanged,
    InstallmentDueSoon,
    InstallmentPlanCompleted,
    InstallmentProofRejected,
    InstallmentProofSubmitted,
    InstallmentProofValidated,
    InstallmentSaleConfirmed,
    InstallmentSaleStatusChanged,
    InstallmentWaived,
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PenaltiesAccrued,
)
from orders.order.schedule import RiskAssessment, build_schedule, from_cents, money_sum, to_cents
from orders.order.window import CancellationWindow, as_utc, is_open, open_window, skip, window_duration
from orders.penalty import get_penalty_policy


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PENDING_INSTALLMENT = "pending_installment"
    INSTALLMENT_ACTIVE = "installment_active"
    OVERDUE_INSTALLMENT = "overdue_installment"
    CONFIRMED = "confirmed"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentType(Enum):
    FULL = "full"
    INSTALLMENT = "installment"


class ScheduleEntryStatus(Enum):
    PENDING = "pending"
    PROOF_UPLOADED = "proof_uploaded"
    PAID = "paid"
    OVERDUE = "overdue"
    WAIVED = "waived"


class InstallmentSaleStatus(Enum):
    CONFIRMED = "confirmed"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ProofDecision(Enum):
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


_FULL_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.DELIVERING, OrderStatus.CANCELLED},
    OrderStatus.DELIVERING: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

_INSTALLMENT_TRANSITIONS = {
    OrderStatus.PENDING_INSTALLMENT: {OrderStatus.INSTALLMENT_ACTIVE, OrderStatus.CANCELLED},
    OrderStatus.INSTALLMENT_ACTIVE: {
        OrderStatus.OVERDUE_INSTALLMENT,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.OVERDUE_INSTALLMENT: {
        OrderStatus.INSTALLMENT_ACTIVE,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.COMPLETED: set(),  # payment dimension is done
    OrderStatus.CANCELLED: set(),  # terminal
}

_SALE_TRANSITIONS = {
    InstallmentSaleStatus.CONFIRMED: {InstallmentSaleStatus.DELIVERING, InstallmentSaleStatus.CANCELLED},
    InstallmentSaleStatus.DELIVERING: {InstallmentSaleStatus.DELIVERED, InstallmentSaleStatus.CANCELLED},
    InstallmentSaleStatus.DELIVERED: set(),
    InstallmentSaleStatus.CANCELLED: set(),
}

# Reached only through sale confirmation, validation, waivers and the sweep
_ENGINE_DRIVEN = {
    OrderStatus.PENDING_INSTALLMENT,
    OrderStatus.INSTALLMENT_ACTIVE,
    OrderStatus.OVERDUE_INSTALLMENT,
    OrderStatus.COMPLETED,
}

_BUYER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.PENDING_INSTALLMENT}

_ADDRESS_EDITABLE = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PENDING_INSTALLMENT,
}

_SETTLED = {ScheduleEntryStatus.PAID.value, ScheduleEntryStatus.WAIVED.value}
_PROOF_ACCEPTING = {ScheduleEntryStatus.PENDING.value, ScheduleEntryStatus.OVERDUE.value}

_TRANSACTION_CODE = re.compile(r"[0-9]{10}")
MIN_REASON_LENGTH = 5
SALE_REJECTED_REASON = "Sale proof rejected by seller"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orders.value_object(part_of="Order")
class TransactionProof:
    """Out-of-band payment evidence for one tranche."""

    payer_name = String(max_length=200)
    transaction_code = String(max_length=10)
    amount = Float()
    submitted_at = DateTime()
    submitted_by = String(max_length=100)


@orders.value_object(part_of="Order")
class Guarantor:
    """Informational only. Checked for completeness at placement when required."""

    required = Boolean(default=False)
    full_name = String(max_length=200)
    phone = String(max_length=50)
    relation = String(max_length=100)
    address = String(max_length=500)


@orders.value_object(part_of="Order")
class InstallmentPlan:
    total_amount = Float(required=True)
    amount_paid = Float(default=0.0)
    remaining_amount = Float(default=0.0)
    installment_count = Integer()
    cadence_days = Integer()
    next_due_date = DateTime()
    total_penalty_accrued = Float(default=0.0)
    late_penalty_rate = Float(default=0.0)
    risk_level = String(max_length=20)
    eligibility_score = Integer()
    overdue_count = Integer(default=0)
    sale_confirmed_at = DateTime()
    sale_confirmed_by = String(max_length=100)
    completed_at = DateTime()


_PLAN_FIELDS = (
    "total_amount",
    "amount_paid",
    "remaining_amount",
    "installment_count",
    "cadence_days",
    "next_due_date",
    "total_penalty_accrued",
    "late_penalty_rate",
    "risk_level",
    "eligibility_score",
    "overdue_count",
    "sale_confirmed_at",
    "sale_confirmed_by",
    "completed_at",
)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orders.entity(part_of="Order")
class OrderItem:
    """Catalog snapshot captured at checkout. Never re-fetched."""

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    image_url = String(max_length=500)


@orders.entity(part_of="Order")
class ScheduleEntry:
    """One tranche of an installment plan. Amount and due date never change."""

    position = Integer(required=True, min_value=0)
    amount = Float(required=True)
    due_date = DateTime(required=True)
    status = String(
        max_length=20,
        choices=ScheduleEntryStatus,
        default=ScheduleEntryStatus.PENDING.value,
    )
    transaction_proof = ValueObject(TransactionProof)
    penalty_amount = Float(default=0.0)
    overdue_since = DateTime()
    overdue_notified_at = DateTime()
    reminder_sent_at = DateTime()
    paid_at = DateTime()
    validated_by = String(max_length=100)
    waived_at = DateTime()
    waived_by = String(max_length=100)


@orders.entity(part_of="Order")
class ProofRecord:
    """Every proof ever submitted, with the seller's decision on it."""

    schedule_index = Integer(required=True)
    payer_name = String(max_length=200)
    transaction_code = String(max_length=10)
    amount = Float()
    submitted_at = DateTime()
    submitted_by = String(max_length=100)
    decision = String(max_length=20, choices=ProofDecision, default=ProofDecision.SUBMITTED.value)
    decided_at = DateTime()
    decided_by = String(max_length=100)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@orders.aggregate
class Order:
    customer_id = Identifier(required=True)
    seller_ids = Text(default="[]")  # JSON list, derived from items
    items = HasMany(OrderItem)
    status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    payment_type = String(
        max_length=20,
        choices=PaymentType,
        default=PaymentType.FULL.value,
    )
    total_amount = Float(required=True, min_value=0.0)
    paid_amount = Float(default=0.0)
    remaining_amount = Float(default=0.0)
    cancellation_window = ValueObject(CancellationWindow)
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()
    cancelled_by = String(max_length=100)
    delivery_address = String(max_length=500)
    delivery_city = String(max_length=100)
    installment_plan = ValueObject(InstallmentPlan)
    schedule = HasMany(ScheduleEntry)
    proof_history = HasMany(ProofRecord)
    guarantor = ValueObject(Guarantor)
    installment_sale_status = String(max_length=20, choices=InstallmentSaleStatus)
    confirmed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        items_data: list[dict],
        delivery_address: str | None = None,
        delivery_city: str | None = None,
        actor: Actor | None = None,
        now: datetime | None = None,
    ):
        """Create a full-payment order from catalog snapshots."""
        now = now or datetime.now(UTC)
        order = cls._build(
            customer_id,
            items_data,
            delivery_address,
            delivery_city,
            PaymentType.FULL,
            OrderStatus.PENDING,
            now,
        )
        order._announce_placement(actor, now)
        return order

    @classmethod
    def place_installment(
        cls,
        customer_id: str,
        items_data: list[dict],
        installment_count: int,
        cadence_days: int,
        risk: RiskAssessment,
        late_penalty_rate: float,
        start_date: datetime | None = None,
        guarantor: dict | None = None,
        delivery_address: str | None = None,
        delivery_city: str | None = None,
        actor: Actor | None = None,
        now: datetime | None = None,
    ):
        """Create an installment order with its full repayment schedule."""
        now = now or datetime.now(UTC)
        if late_penalty_rate is not None and not 0 <= late_penalty_rate <= 100:
            raise ValidationError({"late_penalty_rate": ["Late penalty rate must be between 0 and 100"]})

        order = cls._build(
            customer_id,
            items_data,
            delivery_address,
            delivery_city,
            PaymentType.INSTALLMENT,
            OrderStatus.PENDING_INSTALLMENT,
            now,
        )
        start_date = as_utc(start_date) or now + timedelta(days=cadence_days or 0)
        lines = build_schedule(order.total_amount, installment_count, cadence_days, start_date)
        for position, line in enumerate(lines):
            order.add_schedule(ScheduleEntry(position=position, amount=line.amount, due_date=line.due_date))

        order.installment_plan = InstallmentPlan(
            total_amount=order.total_amount,
            amount_paid=0.0,
            remaining_amount=order.total_amount,
            installment_count=installment_count,
            cadence_days=cadence_days,
            next_due_date=lines[0].due_date,
            total_penalty_accrued=0.0,
            late_penalty_rate=late_penalty_rate or 0.0,
            risk_level=risk.risk_level,
            eligibility_score=risk.eligibility_score,
            overdue_count=0,
        )
        if guarantor:
            order.guarantor = _guarantor_from(guarantor)

        order._announce_placement(actor, now)
        return order

    @classmethod
    def _build(cls, customer_id, items_data, delivery_address, delivery_city, payment_type, status, now):
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        total_cents = sum(to_cents(item["unit_price"]) * int(item["quantity"]) for item in items_data)
        seller_ids = []
        for item in items_data:
            if item["seller_id"] not in seller_ids:
                seller_ids.append(item["seller_id"])

        order = cls(
            customer_id=customer_id,
            seller_ids=json.dumps(seller_ids),
            status=status.value,
            payment_type=payment_type.value,
            total_amount=from_cents(total_cents),
            paid_amount=0.0,
            remaining_amount=from_cents(total_cents),
            cancellation_window=open_window(now, window_duration()),
            delivery_address=delivery_address,
            delivery_city=delivery_city,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(OrderItem(**item))
        return order

    def _announce_placement(self, actor, now):
        actor = actor or Actor.of(str(self.customer_id), "buyer")
        self.raise_(
            OrderPlaced(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                seller_ids=self.seller_ids,
                payment_type=self.payment_type,
                status=self.status,
                total_amount=self.total_amount,
                item_count=len(self.items or []),
                cancellation_deadline=self.cancellation_window.deadline,
                actor_id=actor.id,
                actor_role=actor.role.value,
                placed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def seller_id_list(self) -> list[str]:
        return json.loads(self.seller_ids or "[]")

    @property
    def is_installment(self) -> bool:
        return self.payment_type == PaymentType.INSTALLMENT.value

    @property
    def ordered_schedule(self) -> list:
        return sorted(self.schedule or [], key=lambda entry: entry.position)

    @property
    def sale_confirmed(self) -> bool:
        return bool(self.installment_plan and self.installment_plan.sale_confirmed_at)

    def is_cancellation_window_open(self, now: datetime | None = None) -> bool:
        return is_open(self.cancellation_window, now)

    def _transitions(self) -> dict:
        return _INSTALLMENT_TRANSITIONS if self.is_installment else _FULL_TRANSITIONS

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in self._transitions().get(current, set()):
            raise InvalidTransition(f"Cannot transition from {current.value} to {target_status.value}")

    def _assert_not_terminal(self) -> None:
        if self.status == OrderStatus.CANCELLED.value:
            raise OrderTerminal("Order is cancelled and can no longer change")

    def _assert_installment(self) -> None:
        if not self.is_installment:
            raise InvalidTransition("Order is not paid in installments")

    def _assert_buyer(self, actor: Actor, allow_admin: bool = True) -> None:
        if allow_admin and actor.is_admin:
            return
        if not actor.is_buyer or actor.id != str(self.customer_id):
            raise NotBuyerOwned("Order does not belong to this buyer")

    def _assert_seller(self, actor: Actor) -> None:
        if actor.is_admin or actor.is_system:
            return
        if not actor.is_seller or actor.id not in self.seller_id_list:
            raise Unauthorized("Only a seller on this order may do that")

    def _assert_sale_confirmed(self) -> None:
        if not self.sale_confirmed:
            raise SaleNotConfirmed("The seller has not confirmed this installment sale yet")

    def _entry_at(self, index) -> ScheduleEntry:
        entries = self.ordered_schedule
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(entries):
            raise InvalidScheduleIndex(f"Schedule has no tranche at index {index}")
        return entries[index]

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def _change_status(
        self,
        target: OrderStatus,
        actor: Actor,
        cause: str,
        now: datetime,
        reason: str | None = None,
    ) -> None:
        previous = self.status
        self.status = target.value
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                cause=cause,
                reason=reason,
                actor_id=actor.id,
                actor_role=actor.role.value,
                changed_at=now,
            )
        )

    def request_transition(
        self,
        actor: Actor,
        target_status: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Move the order on behalf of a buyer, seller or admin."""
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        try:
            target = OrderStatus(target_status)
        except ValueError:
            raise InvalidTransition(f"Unknown status {target_status}") from None

        if self.status == OrderStatus.COMPLETED.value:
            self._advance_sale_status(actor, target, reason, now)
            return
        if target == OrderStatus.CANCELLED:
            self._cancel(actor, reason, now, require_reason=False)
            return
        if target in _ENGINE_DRIVEN:
            raise InvalidTransition(f"{target.value} is reached automatically, it cannot be requested")
        if actor.is_buyer:
            self._assert_buyer(actor)
            raise Unauthorized("Buyers may only cancel their orders")

        self._assert_seller(actor)
        self._assert_can_transition(target)
        if actor.is_seller and self.is_cancellation_window_open(now):
            raise CancellationWindowActive("The buyer's cancellation window is still open")

        if target == OrderStatus.CONFIRMED:
            self.confirmed_at = now
        elif target == OrderStatus.DELIVERING:
            self.shipped_at = now
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
            self.paid_amount = self.total_amount
        self._refresh_amounts()
        self._change_status(target, actor, "transition_request", now, reason=reason)

    def _advance_sale_status(self, actor: Actor, target: OrderStatus, reason: str | None, now: datetime) -> None:
        if actor.is_buyer:
            self._assert_buyer(actor)
            raise Unauthorized("Buyers cannot change the delivery of an installment sale")
        self._assert_seller(actor)

        current = InstallmentSaleStatus(self.installment_sale_status or InstallmentSaleStatus.CONFIRMED.value)
        try:
            target_sale = InstallmentSaleStatus(target.value)
        except ValueError:
            raise InvalidTransition(f"Completed installment sales cannot move to {target.value}") from None
        if target_sale not in _SALE_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot transition installment sale from {current.value} to {target_sale.value}")
        if reason is not None and reason.strip() and len(reason.strip()) < MIN_REASON_LENGTH:
            raise ReasonTooShort(f"Reason must be at least {MIN_REASON_LENGTH} characters")

        self.installment_sale_status = target_sale.value
        if target_sale == InstallmentSaleStatus.DELIVERING:
            self.shipped_at = now
        elif target_sale == InstallmentSaleStatus.DELIVERED:
            self.delivered_at = now
        self.updated_at = now
        self.raise_(
            InstallmentSaleStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target_sale.value,
                reason=reason.strip() if reason else None,
                actor_id=actor.id,
                actor_role=actor.role.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, actor: Actor, reason: str, now: datetime | None = None) -> None:
        """Cancel with an explicit reason of at least five characters."""
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._cancel(actor, reason, now, require_reason=True)

    def _cancel(self, actor: Actor, reason: str | None, now: datetime, require_reason: bool) -> None:
        current = OrderStatus(self.status)
        if actor.is_buyer:
            self._assert_buyer(actor)
            if current not in _BUYER_CANCELLABLE:
                raise Unauthorized(f"Buyers cannot cancel a {current.value} order")
        elif not actor.is_system:
            self._assert_seller(actor)
        self._assert_can_transition(OrderStatus.CANCELLED)
        if actor.is_buyer and not self.is_cancellation_window_open(now):
            raise InvalidTransition("The cancellation window has closed")

        cleaned = (reason or "").strip()
        if require_reason or cleaned:
            if len(cleaned) < MIN_REASON_LENGTH:
                raise ReasonTooShort(f"Reason must be at least {MIN_REASON_LENGTH} characters")
        else:
            cleaned = f"Cancelled by {actor.role.value}"

        self._apply_cancellation(actor, cleaned, now)

    def _apply_cancellation(self, actor: Actor, reason: str, now: datetime) -> None:
        previous = self.status
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.cancelled_by = actor.id
        self._refresh_amounts()
        self._change_status(OrderStatus.CANCELLED, actor, "cancellation", now, reason=reason)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                actor_id=actor.id,
                actor_role=actor.role.value,
                cancelled_at=now,
            )
        )

    def skip_cancellation_window(self, actor: Actor, now: datetime | None = None) -> bool:
        """Release the order early. Returns False once the window is released or expired."""
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._assert_buyer(actor, allow_admin=False)
        if not is_open(self.cancellation_window, now):
            return False

        self.cancellation_window = skip(self.cancellation_window, now)
        self.updated_at = now
        self.raise_(
            CancellationWindowSkipped(
                order_id=str(self.id),
                actor_id=actor.id,
                actor_role=actor.role.value,
                skipped_at=now,
            )
        )
        return True

    def change_delivery_address(
        self,
        actor: Actor,
        delivery_address: str,
        delivery_city: str | None = None,
        now: datetime | None = None,
    ) -> None:
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._assert_buyer(actor)
        current = OrderStatus(self.status)
        if current not in _ADDRESS_EDITABLE:
            raise InvalidTransition(f"Delivery address cannot change once the order is {current.value}")
        if not delivery_address or not delivery_address.strip():
            raise ValidationError({"delivery_address": ["Delivery address is required"]})

        self.delivery_address = delivery_address.strip()
        self.delivery_city = delivery_city.strip() if delivery_city else self.delivery_city
        self.updated_at = now
        self.raise_(
            DeliveryAddressChanged(
                order_id=str(self.id),
                delivery_address=self.delivery_address,
                delivery_city=self.delivery_city,
                actor_id=actor.id,
                actor_role=actor.role.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Installments: sale confirmation
    # -------------------------------------------------------------------
    def confirm_sale(self, actor: Actor, approve: bool, now: datetime | None = None) -> None:
        """One-shot seller gate in front of the whole plan."""
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._assert_installment()
        self._assert_seller(actor)
        if self.sale_confirmed:
            raise AlreadyConfirmed("Installment sale was already confirmed")
        if self.status != OrderStatus.PENDING_INSTALLMENT.value:
            raise InvalidTransition(f"Cannot confirm a sale that is {self.status}")

        if not approve:
            self._apply_cancellation(actor, SALE_REJECTED_REASON, now)
            return

        if actor.is_seller and self.is_cancellation_window_open(now):
            raise CancellationWindowActive("The buyer's cancellation window is still open")

        self._replace_plan(
            sale_confirmed_at=now,
            sale_confirmed_by=actor.id,
            next_due_date=self._next_due_date(),
        )
        self._change_status(OrderStatus.INSTALLMENT_ACTIVE, actor, "sale_confirmation", now)
        self.raise_(
            InstallmentSaleConfirmed(
                order_id=str(self.id),
                next_due_date=self.installment_plan.next_due_date,
                actor_id=actor.id,
                actor_role=actor.role.value,
                confirmed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Installments: proofs
    # -------------------------------------------------------------------
    def submit_proof(
        self,
        actor: Actor,
        index: int,
        payer_name: str,
        transaction_code: str,
        amount: float,
        now: datetime | None = None,
    ) -> None:
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._assert_installment()
        self._assert_buyer(actor, allow_admin=False)
        self._assert_sale_confirmed()

        entry = self._entry_at(index)
        if entry.status not in _PROOF_ACCEPTING:
            raise InvalidScheduleIndex(f"Tranche {index} is {entry.status} and does not accept a proof")
        blocking = [e for e in self.ordered_schedule if e.position < entry.position and e.status not in _SETTLED]
        if blocking:
            raise InvalidScheduleIndex(f"Tranche {blocking[0].position} must be settled before tranche {index}")

        payer_name = (payer_name or "").strip()
        if not payer_name:
            raise InvalidPayerName("Payer name is required")
        code = (transaction_code or "").strip()
        if not _TRANSACTION_CODE.fullmatch(code):
            raise InvalidTransactionCode("Transaction code must be exactly 10 digits")
        if amount is None or amount <= 0:
            raise InvalidAmount("Amount must be positive")
        if to_cents(amount) != to_cents(entry.amount):
            raise InvalidAmount(f"Amount must equal the tranche amount of {entry.amount:.2f}")

        entry.transaction_proof = TransactionProof(
            payer_name=payer_name,
            transaction_code=code,
            amount=entry.amount,
            submitted_at=now,
            submitted_by=actor.id,
        )
        entry.status = ScheduleEntryStatus.PROOF_UPLOADED.value
        self.add_proof_history(
            ProofRecord(
                schedule_index=index,
                payer_name=payer_name,
                transaction_code=code,
                amount=entry.amount,
                submitted_at=now,
                submitted_by=actor.id,
                decision=ProofDecision.SUBMITTED.value,
            )
        )
        self.updated_at = now
        self.raise_(
            InstallmentProofSubmitted(
                order_id=str(self.id),
                schedule_index=index,
                payer_name=payer_name,
                transaction_code=code,
                amount=entry.amount,
                actor_id=actor.id,
                actor_role=actor.role.value,
                submitted_at=now,
            )
        )

    def validate_proof(
        self,
        actor: Actor,
        index: int,
        approve: bool,
        now: datetime | None = None,
        policy=None,
    ) -> None:
        """Seller decision on the outstanding proof of one tranche.

        Approving a late proof charges its penalty up to submission, so the
        plan never settles on a lateness the sweep has not seen yet.
        """
        now = now or datetime.now(UTC)
        policy = policy or get_penalty_policy()
        self._assert_not_terminal()
        self._assert_installment()
        self._assert_seller(actor)
        self._assert_sale_confirmed()

        entry = self._entry_at(index)
        if entry.status != ScheduleEntryStatus.PROOF_UPLOADED.value:
            raise InvalidScheduleIndex(f"Tranche {index} has no proof awaiting validation")

        record = self._pending_proof_record(index)
        if record is not None:
            record.decision = (ProofDecision.ACCEPTED if approve else ProofDecision.REJECTED).value
            record.decided_at = now
            record.decided_by = actor.id
        self.updated_at = now

        if not approve:
            entry.status = ScheduleEntryStatus.PENDING.value
            self._refresh_plan()
            self.raise_(
                InstallmentProofRejected(
                    order_id=str(self.id),
                    schedule_index=index,
                    transaction_code=entry.transaction_proof.transaction_code if entry.transaction_proof else None,
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    rejected_at=now,
                )
            )
            return

        entry.status = ScheduleEntryStatus.PAID.value
        entry.paid_at = now
        entry.validated_by = actor.id
        self._charge_lateness(entry, policy, now, self.installment_plan.late_penalty_rate or 0.0)
        self._refresh_plan()
        self.raise_(
            InstallmentProofValidated(
                order_id=str(self.id),
                schedule_index=index,
                amount=entry.amount,
                amount_paid=self.installment_plan.amount_paid,
                remaining_amount=self.installment_plan.remaining_amount,
                actor_id=actor.id,
                actor_role=actor.role.value,
                validated_at=now,
            )
        )
        self._settle_status(actor, "payment_validation", now)

    def waive_installment(self, actor: Actor, index: int, now: datetime | None = None) -> None:
        """Forgive a tranche. Waived amounts never count as paid."""
        now = now or datetime.now(UTC)
        self._assert_not_terminal()
        self._assert_installment()
        self._assert_seller(actor)
        self._assert_sale_confirmed()

        entry = self._entry_at(index)
        if entry.status not in _PROOF_ACCEPTING:
            raise InvalidScheduleIndex(f"Tranche {index} is {entry.status} and cannot be waived")

        entry.status = ScheduleEntryStatus.WAIVED.value
        entry.waived_at = now
        entry.waived_by = actor.id
        self.updated_at = now
        self._refresh_plan()
        self.raise_(
            InstallmentWaived(
                order_id=str(self.id),
                schedule_index=index,
                amount=entry.amount,
                actor_id=actor.id,
                actor_role=actor.role.value,
                waived_at=now,
            )
        )
        self._settle_status(actor, "waiver", now)

    def _pending_proof_record(self, index: int):
        candidates = [
            r
            for r in (self.proof_history or [])
            if r.schedule_index == index and r.decision == ProofDecision.SUBMITTED.value
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: as_utc(r.submitted_at))

    def _settle_status(self, actor: Actor, cause: str, now: datetime) -> None:
        """Complete the plan once everything is settled, or leave overdue once nothing is late."""
        entries = self.ordered_schedule
        if all(e.status in _SETTLED for e in entries):
            if self.status == OrderStatus.COMPLETED.value:
                return
            self._assert_can_transition(OrderStatus.COMPLETED)
            self._replace_plan(completed_at=now)
            self.installment_sale_status = InstallmentSaleStatus.CONFIRMED.value
            self._change_status(OrderStatus.COMPLETED, actor, cause, now)
            self.raise_(
                InstallmentPlanCompleted(
                    order_id=str(self.id),
                    amount_paid=self.installment_plan.amount_paid,
                    total_penalty_accrued=self.installment_plan.total_penalty_accrued,
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    completed_at=now,
                )
            )
        elif self.status == OrderStatus.OVERDUE_INSTALLMENT.value and not self._delinquent_entries():
            self._change_status(OrderStatus.INSTALLMENT_ACTIVE, actor, cause, now)

    # -------------------------------------------------------------------
    # Installments: penalty accrual
    # -------------------------------------------------------------------
    def accrue_penalties(self, as_of: datetime, policy, reminder_lead: timedelta | None = None) -> bool:
        """Bring the plan up to date with `as_of`. Returns True when anything changed.

        Penalties are recomputed from (due date, end of lateness) on every
        pass and only ever raised, so running the same sweep twice is a no-op.
        """
        as_of = as_utc(as_of)
        if not self.is_installment or not self.sale_confirmed:
            return False
        if self.status not in (OrderStatus.INSTALLMENT_ACTIVE.value, OrderStatus.OVERDUE_INSTALLMENT.value):
            return False

        system = Actor.system()
        changed = False
        newly_overdue = []
        rate = self.installment_plan.late_penalty_rate or 0.0

        for entry in self.ordered_schedule:
            due = as_utc(entry.due_date)
            if entry.status == ScheduleEntryStatus.PENDING.value and due < as_of:
                entry.status = ScheduleEntryStatus.OVERDUE.value
                if entry.overdue_since is None:
                    entry.overdue_since = due
                if entry.overdue_notified_at is None:
                    entry.overdue_notified_at = as_of
                newly_overdue.append(entry.position)
                changed = True

            if (
                reminder_lead is not None
                and entry.status == ScheduleEntryStatus.PENDING.value
                and entry.reminder_sent_at is None
                and as_of <= due <= as_of + reminder_lead
            ):
                entry.reminder_sent_at = as_of
                changed = True
                self.raise_(
                    InstallmentDueSoon(
                        order_id=str(self.id),
                        schedule_index=entry.position,
                        amount=entry.amount,
                        due_date=due,
                        actor_id=system.id,
                        actor_role=system.role.value,
                        reminded_at=as_of,
                    )
                )

            if self._charge_lateness(entry, policy, as_of, rate):
                changed = True

        previous_total = self.installment_plan.total_penalty_accrued or 0.0
        self._refresh_plan()
        total = self.installment_plan.total_penalty_accrued

        if newly_overdue or to_cents(total) != to_cents(previous_total):
            self.raise_(
                PenaltiesAccrued(
                    order_id=str(self.id),
                    previous_total=previous_total,
                    total_penalty_accrued=total,
                    overdue_count=self.installment_plan.overdue_count,
                    newly_overdue=json.dumps(newly_overdue),
                    actor_id=system.id,
                    actor_role=system.role.value,
                    as_of=as_of,
                )
            )

        delinquent = bool(self._delinquent_entries())
        if delinquent and self.status == OrderStatus.INSTALLMENT_ACTIVE.value:
            self._change_status(OrderStatus.OVERDUE_INSTALLMENT, system, "penalty_sweep", as_of)
            changed = True
        elif not delinquent and self.status == OrderStatus.OVERDUE_INSTALLMENT.value:
            self._change_status(OrderStatus.INSTALLMENT_ACTIVE, system, "penalty_sweep", as_of)
            changed = True

        if changed:
            self.updated_at = as_of
        return changed

    # -------------------------------------------------------------------
    # Derived amounts
    # -------------------------------------------------------------------
    def _delinquent_entries(self) -> list:
        return [e for e in self.ordered_schedule if e.overdue_since is not None and e.status not in _SETTLED]

    def _next_due_date(self) -> datetime | None:
        for entry in self.ordered_schedule:
            if entry.status not in _SETTLED:
                return entry.due_date
        return None

    def _replace_plan(self, **changes) -> None:
        values = {name: getattr(self.installment_plan, name) for name in _PLAN_FIELDS}
        values.update(changes)
        self.installment_plan = InstallmentPlan(**values)

    def _charge_lateness(self, entry: ScheduleEntry, policy, as_of: datetime, rate: float) -> bool:
        """Raise the tranche penalty to what its lateness costs. Returns True when it grew."""
        end = _lateness_end(entry, as_of)
        if end is None:
            return False
        owed = policy.penalty_for(entry.amount, as_utc(entry.due_date), end, rate)
        if to_cents(owed) <= to_cents(entry.penalty_amount or 0.0):
            return False
        entry.penalty_amount = owed
        return True

    def _refresh_plan(self) -> None:
        """Recompute every denormalized plan figure from the schedule."""
        entries = self.ordered_schedule
        amount_paid = money_sum(e.amount for e in entries if e.status == ScheduleEntryStatus.PAID.value)
        remaining = from_cents(max(0, to_cents(self.installment_plan.total_amount) - to_cents(amount_paid)))
        self._replace_plan(
            amount_paid=amount_paid,
            remaining_amount=remaining,
            next_due_date=self._next_due_date(),
            total_penalty_accrued=money_sum(e.penalty_amount or 0.0 for e in entries),
            overdue_count=len(self._delinquent_entries()),
        )
        self.paid_amount = amount_paid
        self._refresh_amounts()

    def _refresh_amounts(self) -> None:
        self.remaining_amount = from_cents(max(0, to_cents(self.total_amount) - to_cents(self.paid_amount or 0.0)))


def _lateness_end(entry: ScheduleEntry, as_of: datetime) -> datetime | None:
    """Up to when a tranche counts as late. Proofs stop the clock; waivers freeze it."""
    if entry.status == ScheduleEntryStatus.WAIVED.value:
        return None
    if entry.status in (ScheduleEntryStatus.PAID.value, ScheduleEntryStatus.PROOF_UPLOADED.value):
        proof = entry.transaction_proof
        if proof is not None and proof.submitted_at is not None:
            return as_utc(proof.submitted_at)
        return as_utc(entry.paid_at)
    return as_of


def _guarantor_from(data: dict) -> Guarantor:
    guarantor = Guarantor(
        required=bool(data.get("required")),
        full_name=(data.get("full_name") or "").strip() or None,
        phone=(data.get("phone") or "").strip() or None,
        relation=(data.get("relation") or "").strip() or None,
        address=(data.get("address") or "").strip() or None,
    )
    if guarantor.required:
        missing = [
            name for name in ("full_name", "phone", "relation", "address") if not getattr(guarantor, name)
        ]
        if missing:
            raise ValidationError({"guarantor": [f"Missing guarantor details: {', '.join(missing)}"]})
    return guarantor
