"""Penalty policy factory.

Provides get_penalty_policy() / set_penalty_policy() to swap the strategy the
sweep uses. Defaults to FixedDailyRatePenalty, which charges the plan's own
late_penalty_rate per day.
"""

from orders.penalty.policy import FixedDailyRatePenalty, PenaltyPolicy

_current_policy: PenaltyPolicy | None = None


def get_penalty_policy() -> PenaltyPolicy:
    """Return the current penalty policy. Defaults to FixedDailyRatePenalty."""
    global _current_policy
    if _current_policy is None:
        _current_policy = FixedDailyRatePenalty()
    return _current_policy


def set_penalty_policy(policy: PenaltyPolicy) -> None:
    """Override the active penalty policy (useful for tests)."""
    global _current_policy
    _current_policy = policy


def reset_penalty_policy() -> None:
    """Reset to the default policy."""
    global _current_policy
    _current_policy = None
