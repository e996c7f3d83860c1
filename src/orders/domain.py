"""Orders bounded context: Order Lifecycle and Installment Payments.

Drives marketplace orders from checkout to a terminal status. Full-payment
orders follow a classic fulfillment flow. Installment orders are gated by a
one-shot seller sale confirmation, then settled tranche by tranche through
buyer-submitted transaction proofs that the seller validates. A periodic
sweep marks late tranches overdue and accrues penalties.

Uses CQRS: every write is a command processed under a per-order lock, and
reads are served straight from the repository without locking.
"""

from protean.domain import Domain

from orders.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

orders = Domain(name="orders")
