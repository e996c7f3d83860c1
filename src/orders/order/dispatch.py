"""Single-writer dispatch for order commands.

Every command that touches an existing order runs under that order's
exclusive lock, for the whole repository read, mutation and unit-of-work
commit. Proof validation, buyer cancellation and the penalty sweep can
therefore never interleave on one order, and nothing queued behind a
cancellation can succeed once the cancellation has committed.

Transient storage failures are retried with bounded exponential backoff
before surfacing as TransientFailure.
"""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from orders.errors import OrderNotFound, TransientFailure

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 0.05

_TRANSIENT_ERRORS = (ExpectedVersionError, ConnectionError, TimeoutError)


class _OrderLock:
    """An order's writer lock and how many threads hold or wait on it."""

    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


_locks: dict[str, _OrderLock] = {}
_registry_lock = threading.Lock()


@contextmanager
def order_lock(order_id: str) -> Iterator[None]:
    """Hold the exclusive writer lock of one order.

    The entry lives only while someone holds or waits on it.
    """
    order_id = str(order_id)
    with _registry_lock:
        entry = _locks.get(order_id)
        if entry is None:
            entry = _locks[order_id] = _OrderLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _registry_lock:
            entry.holders -= 1
            if entry.holders == 0:
                _locks.pop(order_id, None)


def held_lock_count() -> int:
    with _registry_lock:
        return len(_locks)


def reset_locks() -> None:
    with _registry_lock:
        _locks.clear()


def _process_with_retry(command, order_id: str | None):
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ObjectNotFoundError as exc:
            raise OrderNotFound(f"Order {order_id} does not exist") from exc
        except _TRANSIENT_ERRORS as exc:
            if attempt == MAX_ATTEMPTS:
                logger.error(
                    "Order command failed after retries",
                    order_id=order_id,
                    command=type(command).__name__,
                    attempts=attempt,
                    error=str(exc),
                )
                raise TransientFailure("Order is busy or storage is unavailable, try again") from exc
            delay = BASE_DELAY_SECONDS * 2 ** (attempt - 1)
            logger.warning(
                "Transient failure processing order command, retrying",
                order_id=order_id,
                command=type(command).__name__,
                attempt=attempt,
                delay=delay,
                error=str(exc),
            )
            time.sleep(delay)


def dispatch(command):
    """Process a command that targets one existing order, under its lock."""
    order_id = str(command.order_id)
    with order_lock(order_id):
        return _process_with_retry(command, order_id)


def dispatch_new(command) -> str:
    """Process a command that creates an order. No lock: the order does not exist yet."""
    return _process_with_retry(command, None)
