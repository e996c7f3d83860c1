"""Read path: order detail, buyer history and seller analytics.

Reads never take the per-order lock. Clients poll these every few seconds and
get a consistent snapshot of the last committed state; the cancellation
window is folded against the current clock on every read.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orders.errors import NotBuyerOwned, OrderNotFound, Unauthorized
from orders.order.actors import Actor
from orders.order.order import Order, OrderStatus, PaymentType
from orders.order.schedule import CustomerHistory, RiskAssessment, assess_risk, money_sum, to_cents
from orders.order.window import as_utc, effective_window

_PAGE_SIZE = 100
_PAGE_ORDER = ["created_at", "id"]


def _all_orders(**filters) -> list[Order]:
    """Every order matching `filters`, page by page in a stable order."""
    dao = current_domain.repository_for(Order)._dao
    results = []
    offset = 0
    while True:
        page = dao.query.filter(**filters).order_by(_PAGE_ORDER).offset(offset).limit(_PAGE_SIZE).all().items
        results.extend(page)
        if len(page) < _PAGE_SIZE:
            return results
        offset += _PAGE_SIZE


def load_order(order_id: str) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise OrderNotFound(f"Order {order_id} does not exist") from exc


# ---------------------------------------------------------------------------
# Order detail
# ---------------------------------------------------------------------------
def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def _describe_entry(entry) -> dict:
    proof = entry.transaction_proof
    return {
        "index": entry.position,
        "amount": entry.amount,
        "due_date": _iso(entry.due_date),
        "status": entry.status,
        "penalty_amount": entry.penalty_amount or 0.0,
        "paid_at": _iso(entry.paid_at),
        "waived_at": _iso(entry.waived_at),
        "transaction_proof": (
            {
                "payer_name": proof.payer_name,
                "transaction_code": proof.transaction_code,
                "amount": proof.amount,
                "submitted_at": _iso(proof.submitted_at),
            }
            if proof
            else None
        ),
    }


def _describe_plan(order: Order) -> dict | None:
    plan = order.installment_plan
    if plan is None:
        return None
    progress = 0
    if plan.total_amount:
        progress = min(100, round(to_cents(plan.amount_paid or 0.0) * 100 / to_cents(plan.total_amount)))
    return {
        "total_amount": plan.total_amount,
        "amount_paid": plan.amount_paid,
        "remaining_amount": plan.remaining_amount,
        "progress": progress,
        "installment_count": plan.installment_count,
        "cadence_days": plan.cadence_days,
        "next_due_date": _iso(plan.next_due_date),
        "total_penalty_accrued": plan.total_penalty_accrued,
        "late_penalty_rate": plan.late_penalty_rate,
        "risk_level": plan.risk_level,
        "eligibility_score": plan.eligibility_score,
        "overdue_count": plan.overdue_count,
        "sale_confirmed_at": _iso(plan.sale_confirmed_at),
        "completed_at": _iso(plan.completed_at),
        "schedule": [_describe_entry(e) for e in order.ordered_schedule],
        "proof_history": [
            {
                "index": r.schedule_index,
                "payer_name": r.payer_name,
                "transaction_code": r.transaction_code,
                "amount": r.amount,
                "submitted_at": _iso(r.submitted_at),
                "decision": r.decision,
                "decided_at": _iso(r.decided_at),
            }
            for r in sorted(order.proof_history or [], key=lambda r: as_utc(r.submitted_at))
        ],
    }


def describe(order: Order, now: datetime | None = None) -> dict:
    """Serializable snapshot of an order as clients see it at `now`."""
    now = now or datetime.now(UTC)
    window = effective_window(order.cancellation_window, now)
    guarantor = order.guarantor
    return {
        "order_id": str(order.id),
        "customer_id": str(order.customer_id),
        "seller_ids": order.seller_id_list,
        "status": order.status,
        "payment_type": order.payment_type,
        "total_amount": order.total_amount,
        "paid_amount": order.paid_amount,
        "remaining_amount": order.remaining_amount,
        "items": [
            {
                "product_id": str(item.product_id),
                "seller_id": str(item.seller_id),
                "title": item.title,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "image_url": item.image_url,
            }
            for item in order.items or []
        ],
        "cancellation_window": (
            {
                "deadline": _iso(window["deadline"]),
                "is_active": window["is_active"],
                "skipped_at": _iso(window["skipped_at"]),
            }
            if window
            else None
        ),
        "cancellation_reason": order.cancellation_reason,
        "cancelled_at": _iso(order.cancelled_at),
        "cancelled_by": order.cancelled_by,
        "delivery_address": order.delivery_address,
        "delivery_city": order.delivery_city,
        "installment_plan": _describe_plan(order),
        "installment_sale_status": order.installment_sale_status,
        "guarantor": (
            {
                "required": guarantor.required,
                "full_name": guarantor.full_name,
                "phone": guarantor.phone,
                "relation": guarantor.relation,
                "address": guarantor.address,
            }
            if guarantor
            else None
        ),
        "confirmed_at": _iso(order.confirmed_at),
        "shipped_at": _iso(order.shipped_at),
        "delivered_at": _iso(order.delivered_at),
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def buyer_order_detail(order_id: str, actor: Actor) -> dict:
    order = load_order(order_id)
    if not actor.is_admin and (not actor.is_buyer or actor.id != str(order.customer_id)):
        raise NotBuyerOwned("Order does not belong to this buyer")
    return describe(order)


def seller_order_detail(order_id: str, actor: Actor) -> dict:
    order = load_order(order_id)
    if not actor.is_admin and (not actor.is_seller or actor.id not in order.seller_id_list):
        raise Unauthorized("Only a seller on this order may view it")
    return describe(order)


# ---------------------------------------------------------------------------
# Buyer history and eligibility
# ---------------------------------------------------------------------------
def customer_history(customer_id: str) -> CustomerHistory:
    placed = _all_orders(customer_id=customer_id)
    installment = [o for o in placed if o.payment_type == PaymentType.INSTALLMENT.value]
    return CustomerHistory(
        total_orders=len(placed),
        delivered_orders=sum(
            1 for o in placed if o.status in (OrderStatus.DELIVERED.value, OrderStatus.COMPLETED.value)
        ),
        cancelled_orders=sum(1 for o in placed if o.status == OrderStatus.CANCELLED.value),
        completed_installment_orders=sum(1 for o in installment if o.status == OrderStatus.COMPLETED.value),
        overdue_installment_orders=sum(
            1 for o in installment if o.status == OrderStatus.OVERDUE_INSTALLMENT.value
        ),
    )


def installment_eligibility(customer_id: str) -> RiskAssessment:
    return assess_risk(history=customer_history(customer_id))


# ---------------------------------------------------------------------------
# Seller analytics
# ---------------------------------------------------------------------------
def seller_installment_summary(seller_id: str) -> dict:
    sold = [
        o
        for o in _all_orders(payment_type=PaymentType.INSTALLMENT.value)
        if seller_id in o.seller_id_list and o.installment_plan is not None
    ]
    at_risk = [
        o
        for o in sold
        if o.status == OrderStatus.OVERDUE_INSTALLMENT.value or (o.installment_plan.overdue_count or 0) > 0
    ]
    return {
        "total_installment_sales": len(sold),
        "revenue_in_progress": money_sum(o.installment_plan.remaining_amount or 0.0 for o in sold),
        "collected_amount": money_sum(o.installment_plan.amount_paid or 0.0 for o in sold),
        "risk_exposure": money_sum(o.installment_plan.remaining_amount or 0.0 for o in at_risk),
        "overdue_orders": sum(1 for o in sold if o.status == OrderStatus.OVERDUE_INSTALLMENT.value),
        "completed_orders": sum(1 for o in sold if o.status == OrderStatus.COMPLETED.value),
    }


# ---------------------------------------------------------------------------
# Sweep candidates
# ---------------------------------------------------------------------------
def sweepable_order_ids() -> list[str]:
    """Installment orders with a confirmed sale and tranches still running."""
    candidates = _all_orders(
        payment_type=PaymentType.INSTALLMENT.value,
        status__in=[OrderStatus.INSTALLMENT_ACTIVE.value, OrderStatus.OVERDUE_INSTALLMENT.value],
    )
    return [str(o.id) for o in candidates if o.sale_confirmed]
