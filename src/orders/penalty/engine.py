"""Penalty sweep: the time-driven pass over every running installment plan.

The sweep lists candidate orders without locking, then handles each order on
its own under that order's lock. It never holds a lock across orders, and a
failure on one order is logged and left for the next cycle. Because accrual
is recomputed from due dates, a crashed sweep can simply be run again.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.domain import Domain

from orders.order.dispatch import dispatch
from orders.order.queries import sweepable_order_ids
from orders.penalty.accrual import AccruePenalties
from orders.utils.settings import setting

logger = structlog.get_logger(__name__)


@dataclass
class SweepReport:
    as_of: datetime
    scanned: int = 0
    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def sweep(as_of: datetime | None = None) -> SweepReport:
    """Run one pass. Must be called inside a domain context."""
    as_of = as_of or datetime.now(UTC)
    report = SweepReport(as_of=as_of)

    for order_id in sweepable_order_ids():
        report.scanned += 1
        try:
            if dispatch(AccruePenalties(order_id=order_id, as_of=as_of)):
                report.updated.append(order_id)
        except Exception as exc:
            report.failed[order_id] = str(exc)
            logger.error(
                "Penalty accrual failed, will retry next cycle",
                order_id=order_id,
                error=str(exc),
            )

    logger.info(
        "Penalty sweep finished",
        as_of=as_of.isoformat(),
        scanned=report.scanned,
        updated=len(report.updated),
        failed=len(report.failed),
    )
    return report


async def run_periodically(domain: Domain, interval_seconds: float | None = None) -> None:
    """Sweep forever on a fixed interval, off the request-handling threads."""
    with domain.domain_context():
        interval = interval_seconds or setting("PENALTY_SWEEP_INTERVAL_SECONDS")
    logger.info("Penalty sweep scheduled", interval_seconds=interval)

    while True:
        try:
            await asyncio.to_thread(_sweep_in_context, domain)
        except Exception as exc:
            logger.error("Penalty sweep crashed", error=str(exc))
        await asyncio.sleep(interval)


def _sweep_in_context(domain: Domain) -> SweepReport:
    with domain.domain_context():
        return sweep()
