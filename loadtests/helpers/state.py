"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state with no cross-user
sharing. State tracks entity IDs returned by creation endpoints so
follow-up operations can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class OrderState:
    """Tracks state for a single simulated order lifecycle."""

    order_id: str | None = None
    customer_id: str | None = None
    seller_id: str | None = None
    current_status: str = "pending"


@dataclass
class InstallmentState:
    """Tracks state for an installment order and its schedule."""

    order_id: str | None = None
    customer_id: str | None = None
    seller_id: str | None = None
    tranche_amounts: list[float] = field(default_factory=list)
    next_index: int = 0


@dataclass
class SellerState:
    """Tracks the products a simulated seller has listed."""

    seller_id: str | None = None
    product_ids: list[str] = field(default_factory=list)
