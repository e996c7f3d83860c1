"""AccruePenalties command + handler: bring one installment plan up to date."""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.order import Order
from orders.penalty import get_penalty_policy
from orders.utils.settings import setting

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class AccruePenalties:
    """Mark late tranches overdue and recompute penalties as of a point in time."""

    order_id: Identifier(required=True)
    as_of: DateTime()  # Optional: defaults to now


@orders.command_handler(part_of=Order)
class AccruePenaltiesHandler:
    @handle(AccruePenalties)
    def accrue_penalties(self, command: AccruePenalties):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        changed = order.accrue_penalties(
            as_of,
            get_penalty_policy(),
            reminder_lead=timedelta(days=setting("REMINDER_LEAD_DAYS")),
        )
        if not changed:
            return False

        repo.add(order)
        logger.info(
            "Installment plan brought up to date",
            order_id=str(order.id),
            status=order.status,
            total_penalty_accrued=order.installment_plan.total_penalty_accrued,
            overdue_count=order.installment_plan.overdue_count,
        )
        return True
