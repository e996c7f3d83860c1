"""Caller-visible failures of the orders domain.

Every error is a Protean ``ValidationError`` carrying ``{field: [message]}``,
so anything that already handles validation failures keeps working. The
``kind`` attribute names the failure for clients, and ``http_status`` is what
the API answers with.
"""

from protean.exceptions import ValidationError


class OrderError(ValidationError):
    kind = "OrderError"
    field = "order"
    http_status = 400

    def __init__(self, message: str, field: str | None = None):
        super().__init__({field or self.field: [message]})
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InvalidTransition(OrderError):
    kind = "InvalidTransition"
    field = "status"
    http_status = 409


class CancellationWindowActive(OrderError):
    kind = "CancellationWindowActive"
    field = "cancellation_window"
    http_status = 409


class NotBuyerOwned(OrderError):
    kind = "NotBuyerOwned"
    field = "customer_id"
    http_status = 403


class ReasonTooShort(OrderError):
    kind = "ReasonTooShort"
    field = "reason"


class SaleNotConfirmed(OrderError):
    kind = "SaleNotConfirmed"
    field = "installment_plan"
    http_status = 409


class InvalidScheduleIndex(OrderError):
    kind = "InvalidScheduleIndex"
    field = "schedule_index"


class InvalidTransactionCode(OrderError):
    kind = "InvalidTransactionCode"
    field = "transaction_code"


class InvalidPayerName(OrderError):
    kind = "InvalidPayerName"
    field = "payer_name"


class InvalidAmount(OrderError):
    kind = "InvalidAmount"
    field = "amount"


class AlreadyConfirmed(OrderError):
    kind = "AlreadyConfirmed"
    field = "installment_plan"
    http_status = 409


class OrderTerminal(OrderError):
    kind = "OrderTerminal"
    field = "status"
    http_status = 409


class Unauthorized(OrderError):
    kind = "Unauthorized"
    field = "actor"
    http_status = 403


class OrderNotFound(OrderError):
    kind = "OrderNotFound"
    field = "order_id"
    http_status = 404


class TransientFailure(OrderError):
    """Storage kept failing after bounded retries. Safe to retry later."""

    kind = "TransientFailure"
    field = "order_id"
    http_status = 503
