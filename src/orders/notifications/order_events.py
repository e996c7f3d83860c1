"""Order event handler: tells the counterpart party what just happened.

A buyer action notifies the order's sellers, a seller action notifies the
buyer, and admin or system actions notify both. Delivery is fire-and-forget:
a failing notifier is logged and never undoes the order change.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from orders.domain import orders
from orders.notifications import get_notifier
from orders.order.events import (
    DeliveryAddressChanged,
    InstallmentDueSoon,
    InstallmentPlanCompleted,
    InstallmentProofRejected,
    InstallmentProofSubmitted,
    InstallmentProofValidated,
    InstallmentSaleStatusChanged,
    InstallmentWaived,
    OrderPlaced,
    OrderStatusChanged,
)
from orders.order.order import Order

logger = structlog.get_logger(__name__)


def _recipients(order: Order, actor_role: str) -> list[str]:
    buyer = [str(order.customer_id)]
    sellers = order.seller_id_list
    if actor_role == "buyer":
        return sellers
    if actor_role == "seller":
        return buyer
    return buyer + sellers


def _deliver(recipients: list[str], kind: str, payload: dict) -> None:
    notifier = get_notifier()
    for recipient_id in recipients:
        try:
            notifier.notify(recipient_id, kind, payload)
        except Exception as exc:
            logger.error(
                "Notification delivery failed",
                recipient_id=recipient_id,
                kind=kind,
                order_id=payload.get("order_id"),
                error=str(exc),
            )


@orders.event_handler(part_of=Order)
class OrderNotificationHandler:
    """Fans order events out to the notification sink."""

    def _load(self, order_id: str) -> Order | None:
        try:
            return current_domain.repository_for(Order).get(order_id)
        except ObjectNotFoundError:
            logger.warning("Order vanished before notification", order_id=order_id)
            return None

    def _notify(self, event, kind: str, payload: dict) -> None:
        order = self._load(str(event.order_id))
        if order is None:
            return
        _deliver(_recipients(order, event.actor_role), kind, {"order_id": str(event.order_id), **payload})

    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        self._notify(
            event,
            "order_placed",
            {"payment_type": event.payment_type, "total_amount": event.total_amount},
        )

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        self._notify(
            event,
            "order_status_changed",
            {
                "previous_status": event.previous_status,
                "new_status": event.new_status,
                "cause": event.cause,
                "reason": event.reason,
            },
        )

    @handle(DeliveryAddressChanged)
    def on_address_changed(self, event: DeliveryAddressChanged) -> None:
        self._notify(
            event,
            "delivery_address_changed",
            {"delivery_address": event.delivery_address, "delivery_city": event.delivery_city},
        )

    @handle(InstallmentSaleStatusChanged)
    def on_sale_status_changed(self, event: InstallmentSaleStatusChanged) -> None:
        self._notify(
            event,
            "installment_sale_status_changed",
            {"previous_status": event.previous_status, "new_status": event.new_status},
        )

    @handle(InstallmentProofSubmitted)
    def on_proof_submitted(self, event: InstallmentProofSubmitted) -> None:
        self._notify(
            event,
            "installment_proof_submitted",
            {"schedule_index": event.schedule_index, "amount": event.amount},
        )

    @handle(InstallmentProofValidated)
    def on_proof_validated(self, event: InstallmentProofValidated) -> None:
        self._notify(
            event,
            "installment_payment_validated",
            {
                "schedule_index": event.schedule_index,
                "amount": event.amount,
                "remaining_amount": event.remaining_amount,
            },
        )

    @handle(InstallmentProofRejected)
    def on_proof_rejected(self, event: InstallmentProofRejected) -> None:
        self._notify(event, "installment_payment_rejected", {"schedule_index": event.schedule_index})

    @handle(InstallmentWaived)
    def on_installment_waived(self, event: InstallmentWaived) -> None:
        self._notify(
            event,
            "installment_waived",
            {"schedule_index": event.schedule_index, "amount": event.amount},
        )

    @handle(InstallmentDueSoon)
    def on_due_soon(self, event: InstallmentDueSoon) -> None:
        order = self._load(str(event.order_id))
        if order is None:
            return
        _deliver(
            [str(order.customer_id)],
            "installment_due_reminder",
            {
                "order_id": str(event.order_id),
                "schedule_index": event.schedule_index,
                "amount": event.amount,
                "due_date": event.due_date.isoformat(),
            },
        )

    @handle(InstallmentPlanCompleted)
    def on_plan_completed(self, event: InstallmentPlanCompleted) -> None:
        order = self._load(str(event.order_id))
        if order is None:
            return
        _deliver(
            [str(order.customer_id)] + order.seller_id_list,
            "installment_completed",
            {"order_id": str(event.order_id), "amount_paid": event.amount_paid, "invoice_eligible": True},
        )
