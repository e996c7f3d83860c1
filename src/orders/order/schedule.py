"""Installment schedule construction and risk scoring.

Pure functions only. Amounts are split in integer minor units so that the
schedule always sums to the plan total to the cent, with the final tranche
absorbing whatever the even split leaves over.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError

from orders.errors import InvalidAmount

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class ScheduleLine:
    amount: float
    due_date: datetime


@dataclass(frozen=True)
class CustomerHistory:
    """Aggregate counts over a buyer's previous orders."""

    total_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    completed_installment_orders: int = 0
    overdue_installment_orders: int = 0


@dataclass(frozen=True)
class RiskAssessment:
    eligibility_score: int
    risk_level: str


def to_cents(amount) -> int:
    return int((Decimal(str(amount)) / _CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    return float(Decimal(cents) * _CENT)


def money_sum(amounts) -> float:
    """Sum monetary amounts without float drift."""
    return from_cents(sum(to_cents(a) for a in amounts))


def build_schedule(
    total_amount: float,
    installment_count: int,
    cadence_days: int,
    start_date: datetime,
) -> list[ScheduleLine]:
    """Split `total_amount` into `installment_count` tranches due every `cadence_days`."""
    if total_amount is None or total_amount <= 0:
        raise InvalidAmount("Installment plan total must be positive")
    if installment_count is None or installment_count < 1:
        raise ValidationError({"installment_count": ["At least one installment is required"]})
    if cadence_days is None or cadence_days < 1:
        raise ValidationError({"cadence_days": ["Cadence must be at least one day"]})

    total_cents = to_cents(total_amount)
    if total_cents < installment_count:
        raise InvalidAmount("Total is too small to split into that many installments")

    base = total_cents // installment_count
    lines = []
    consumed = 0
    for k in range(installment_count):
        cents = total_cents - consumed if k == installment_count - 1 else base
        consumed += cents
        lines.append(
            ScheduleLine(
                amount=from_cents(cents),
                due_date=start_date + timedelta(days=k * cadence_days),
            )
        )
    return lines


# ---------------------------------------------------------------------------
# Risk scoring
# ---------------------------------------------------------------------------
def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def risk_level_for(score: int) -> str:
    if score >= 75:
        return "low"
    if score >= 50:
        return "medium"
    return "high"


class RiskScorer(ABC):
    """Strategy producing an eligibility score from a buyer's history."""

    @abstractmethod
    def score(self, history: CustomerHistory) -> int: ...


class HistoryRiskScorer(RiskScorer):
    """Score from completion, cancellation and overdue ratios. Base 55, clamped to 0..100."""

    BASE_SCORE = 55

    def score(self, history: CustomerHistory) -> int:
        completion_rate = 0.0
        cancellation_rate = 0.0
        if history.total_orders > 0:
            completion_rate = history.delivered_orders / history.total_orders
            cancellation_rate = history.cancelled_orders / history.total_orders

        score = self.BASE_SCORE
        score += _round_half_up(completion_rate * 30)
        score += min(10, history.completed_installment_orders * 2)
        score -= _round_half_up(cancellation_rate * 25)
        score -= min(20, history.overdue_installment_orders * 4)
        return max(0, min(100, score))


def assess_risk(
    history: CustomerHistory | None = None,
    eligibility_score: int | None = None,
) -> RiskAssessment:
    """Use a caller-supplied score as-is, otherwise score the history."""
    if eligibility_score is None:
        eligibility_score = get_risk_scorer().score(history or CustomerHistory())
    eligibility_score = max(0, min(100, int(eligibility_score)))
    return RiskAssessment(
        eligibility_score=eligibility_score,
        risk_level=risk_level_for(eligibility_score),
    )


_current_scorer: RiskScorer | None = None


def get_risk_scorer() -> RiskScorer:
    """Return the active risk scorer. Defaults to HistoryRiskScorer."""
    global _current_scorer
    if _current_scorer is None:
        _current_scorer = HistoryRiskScorer()
    return _current_scorer


def set_risk_scorer(scorer: RiskScorer) -> None:
    global _current_scorer
    _current_scorer = scorer


def reset_risk_scorer() -> None:
    global _current_scorer
    _current_scorer = None
