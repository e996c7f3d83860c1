"""Cancellation window: the buyer's grace period after checkout.

The window opens when the order is placed and closes at a fixed deadline, or
earlier when the buyer explicitly releases it. Expiry is never written by a
timer; every caller folds the deadline against its own clock.
"""

from datetime import UTC, datetime, timedelta

from protean.fields import Boolean, DateTime

from orders.domain import orders
from orders.utils.settings import setting

WINDOW_DURATION = timedelta(minutes=30)


@orders.value_object(part_of="Order")
class CancellationWindow:
    deadline = DateTime(required=True)
    is_active = Boolean(default=True)
    skipped_at = DateTime()


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so stored and fresh values compare."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def window_duration() -> timedelta:
    return timedelta(minutes=setting("CANCELLATION_WINDOW_MINUTES"))


def open_window(created_at: datetime, duration: timedelta | None = None) -> CancellationWindow:
    return CancellationWindow(
        deadline=as_utc(created_at) + (duration or WINDOW_DURATION),
        is_active=True,
    )


def is_open(window: CancellationWindow | None, now: datetime | None = None) -> bool:
    if window is None or not window.is_active:
        return False
    now = as_utc(now) or datetime.now(UTC)
    return now < as_utc(window.deadline)


def skip(window: CancellationWindow, now: datetime) -> CancellationWindow:
    return CancellationWindow(deadline=window.deadline, is_active=False, skipped_at=now)


def effective_window(window: CancellationWindow | None, now: datetime | None = None) -> dict | None:
    """The window as a client should see it at `now`."""
    if window is None:
        return None
    return {
        "deadline": as_utc(window.deadline),
        "is_active": is_open(window, now),
        "skipped_at": as_utc(window.skipped_at),
    }
