"""Order domain events: immutable facts about order and installment changes.

Every event names the order and the acting party (`actor_id`, `actor_role`)
so that notification fan-out and the audit trail never need to guess who did
what. Timed sweeps act as the `system` actor.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from orders.domain import orders


@orders.event(part_of="Order")
class OrderPlaced:
    """A buyer checked out, or an admin created an order on their behalf."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    seller_ids = Text(required=True)  # JSON list
    payment_type = String(required=True)
    status = String(required=True)
    total_amount = Float(required=True)
    item_count = Integer(required=True)
    cancellation_deadline = DateTime(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    placed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderStatusChanged:
    """The primary order status moved.

    `cause` tells which operation moved it: transition_request, cancellation,
    sale_confirmation, payment_validation, waiver or penalty_sweep.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    cause = String(required=True)
    reason = String()
    actor_id = String(required=True)
    actor_role = String(required=True)
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    cancelled_at = DateTime(required=True)


@orders.event(part_of="Order")
class CancellationWindowSkipped:
    """The buyer released the order before the grace period ran out."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    skipped_at = DateTime(required=True)


@orders.event(part_of="Order")
class DeliveryAddressChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    delivery_address = String(required=True)
    delivery_city = String()
    actor_id = String(required=True)
    actor_role = String(required=True)
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentSaleConfirmed:
    """The seller accepted the installment sale. Tranche proofs are now allowed."""

    __version__ = 1

    order_id = Identifier(required=True)
    next_due_date = DateTime()
    actor_id = String(required=True)
    actor_role = String(required=True)
    confirmed_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentSaleStatusChanged:
    """Physical fulfillment of a fully paid installment sale moved."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    reason = String()
    actor_id = String(required=True)
    actor_role = String(required=True)
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentProofSubmitted:
    __version__ = 1

    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    payer_name = String(required=True)
    transaction_code = String(required=True)
    amount = Float(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    submitted_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentProofValidated:
    __version__ = 1

    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    amount = Float(required=True)
    amount_paid = Float(required=True)
    remaining_amount = Float(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    validated_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentProofRejected:
    __version__ = 1

    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    transaction_code = String()
    actor_id = String(required=True)
    actor_role = String(required=True)
    rejected_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentWaived:
    __version__ = 1

    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    amount = Float(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    waived_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentPlanCompleted:
    """Every tranche is paid or waived. Raised exactly once per plan."""

    __version__ = 1

    order_id = Identifier(required=True)
    amount_paid = Float(required=True)
    total_penalty_accrued = Float(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    completed_at = DateTime(required=True)


@orders.event(part_of="Order")
class InstallmentDueSoon:
    __version__ = 1

    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    amount = Float(required=True)
    due_date = DateTime(required=True)
    actor_id = String(required=True)
    actor_role = String(required=True)
    reminded_at = DateTime(required=True)


@orders.event(part_of="Order")
class PenaltiesAccrued:
    """A penalty sweep changed the plan: new overdue tranches or a higher penalty total."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_total = Float(required=True)
    total_penalty_accrued = Float(required=True)
    overdue_count = Integer(required=True)
    newly_overdue = Text()  # JSON list of schedule indexes
    actor_id = String(required=True)
    actor_role = String(required=True)
    as_of = DateTime(required=True)
