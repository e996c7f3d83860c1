"""Penalty policy port and the default fixed daily rate.

A policy turns one late tranche into an owed penalty. It must be a pure
function of (amount, due date, end of lateness, rate) so that the sweep can
recompute it from scratch on every pass.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

_DAY = timedelta(days=1)


def overdue_days(due_date: datetime, end: datetime) -> int:
    """Started days of lateness. Zero when `end` is not after `due_date`."""
    if end <= due_date:
        return 0
    return math.ceil((end - due_date) / _DAY)


class PenaltyPolicy(ABC):
    @abstractmethod
    def penalty_for(self, amount: float, due_date: datetime, end: datetime, rate_percent: float) -> float:
        """Penalty owed on `amount` for lateness between `due_date` and `end`."""
        ...


class FixedDailyRatePenalty(PenaltyPolicy):
    """`rate_percent` of the tranche amount for every started day past due.

    When constructed with a rate, that rate overrides the plan's own.
    """

    def __init__(self, rate_percent_per_day: float | None = None) -> None:
        self.rate_percent_per_day = rate_percent_per_day

    def penalty_for(self, amount: float, due_date: datetime, end: datetime, rate_percent: float) -> float:
        rate = self.rate_percent_per_day if self.rate_percent_per_day is not None else rate_percent
        days = overdue_days(due_date, end)
        if days == 0 or not rate:
            return 0.0
        owed = Decimal(str(amount)) * Decimal(str(rate)) / Decimal(100) * days
        return float(owed.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
