"""Order audit log: one append-only entry per mutating operation, with the actor.

Each operation is recorded from its primary event. OrderStatusChanged only
counts when it is the primary event, i.e. a plain transition request; the
status moves caused by cancellation, sale confirmation, validation, waivers
and the sweep ride along with their own operation's entry.
"""

import json
import uuid

from protean.core.projector import on
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.events import (
    CancellationWindowSkipped,
    DeliveryAddressChanged,
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
from orders.order.order import Order
from orders.order.window import as_utc


@orders.projection
class OrderAuditEntry:
    entry_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    operation = String(required=True, max_length=50)
    event_type = String(required=True, max_length=50)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, max_length=20)
    description = String(required=True, max_length=500)
    occurred_at = DateTime(required=True)
    event_metadata = Text()  # JSON: event payload


def _record(event, operation: str, description: str, occurred_at) -> None:
    payload = {k: v for k, v in event.to_dict().items() if not k.startswith("_")}
    current_domain.repository_for(OrderAuditEntry).add(
        OrderAuditEntry(
            entry_id=str(uuid.uuid4()),
            order_id=str(event.order_id),
            operation=operation,
            event_type=type(event).__name__,
            actor_id=event.actor_id,
            actor_role=event.actor_role,
            description=description,
            occurred_at=occurred_at,
            event_metadata=json.dumps(payload, default=str),
        )
    )


def audit_trail(order_id: str) -> list[OrderAuditEntry]:
    entries = current_domain.repository_for(OrderAuditEntry)._dao.query.filter(order_id=order_id).all().items
    return sorted(entries, key=lambda e: as_utc(e.occurred_at))


@orders.projector(projector_for=OrderAuditEntry, aggregates=[Order])
class OrderAuditProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        _record(
            event,
            "place_order",
            f"{event.payment_type.title()} order placed for {event.total_amount:.2f}",
            event.placed_at,
        )

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        if event.cause != "transition_request":
            return
        _record(
            event,
            "request_transition",
            f"Status changed from {event.previous_status} to {event.new_status}",
            event.changed_at,
        )

    @on(OrderCancelled)
    def on_order_cancelled(self, event):
        _record(event, "cancel", f"Order cancelled: {event.reason}", event.cancelled_at)

    @on(CancellationWindowSkipped)
    def on_window_skipped(self, event):
        _record(event, "skip_cancellation_window", "Buyer released the cancellation window", event.skipped_at)

    @on(DeliveryAddressChanged)
    def on_address_changed(self, event):
        _record(
            event,
            "change_delivery_address",
            f"Delivery address set to {event.delivery_address}",
            event.changed_at,
        )

    @on(InstallmentSaleConfirmed)
    def on_sale_confirmed(self, event):
        _record(event, "confirm_sale", "Installment sale confirmed", event.confirmed_at)

    @on(InstallmentSaleStatusChanged)
    def on_sale_status_changed(self, event):
        _record(
            event,
            "request_transition",
            f"Installment sale moved from {event.previous_status} to {event.new_status}",
            event.changed_at,
        )

    @on(InstallmentProofSubmitted)
    def on_proof_submitted(self, event):
        _record(
            event,
            "submit_proof",
            f"Proof {event.transaction_code} submitted for tranche {event.schedule_index}",
            event.submitted_at,
        )

    @on(InstallmentProofValidated)
    def on_proof_validated(self, event):
        _record(event, "validate_proof", f"Tranche {event.schedule_index} payment validated", event.validated_at)

    @on(InstallmentProofRejected)
    def on_proof_rejected(self, event):
        _record(event, "validate_proof", f"Tranche {event.schedule_index} proof rejected", event.rejected_at)

    @on(InstallmentWaived)
    def on_installment_waived(self, event):
        _record(event, "waive_installment", f"Tranche {event.schedule_index} waived", event.waived_at)

    @on(PenaltiesAccrued)
    def on_penalties_accrued(self, event):
        _record(
            event,
            "accrue_penalties",
            f"Penalty total moved from {event.previous_total:.2f} to {event.total_penalty_accrued:.2f}",
            event.as_of,
        )
