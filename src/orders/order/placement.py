"""Order placement: buyer checkout and admin-created orders.

Line items arrive as product references. Each one is resolved through the
product catalog exactly once, here, and the snapshot is stored on the order.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.catalog import get_catalog
from orders.domain import orders
from orders.errors import NotBuyerOwned
from orders.order.actors import Actor, ActorRole
from orders.order.order import Order
from orders.order.queries import customer_history
from orders.order.schedule import assess_risk
from orders.utils.settings import setting

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"product_id": ..., "quantity": ...}]
    delivery_address = String(max_length=500)
    delivery_city = String(max_length=100)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class PlaceInstallmentOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"product_id": ..., "quantity": ...}]
    installment_count = Integer(required=True, min_value=1)
    cadence_days = Integer(default=30, min_value=1)
    start_date = DateTime()
    eligibility_score = Integer(min_value=0, max_value=100)  # Opaque external score
    late_penalty_rate = Float(min_value=0.0, max_value=100.0)
    guarantor = Text()  # JSON: guarantor dict
    delivery_address = String(max_length=500)
    delivery_city = String(max_length=100)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


def _authorize(actor: Actor, customer_id: str) -> None:
    if actor.is_admin:
        return
    if not actor.is_buyer or actor.id != str(customer_id):
        raise NotBuyerOwned("Buyers may only place orders for themselves")


def snapshot_items(items) -> list[dict]:
    """Resolve product references into immutable line item snapshots."""
    requested = json.loads(items) if isinstance(items, str) else items
    if not requested:
        raise ValidationError({"items": ["An order needs at least one item"]})

    catalog = get_catalog()
    snapshots = []
    for line in requested:
        product_id = str(line.get("product_id") or "")
        quantity = int(line.get("quantity") or 0)
        if quantity < 1:
            raise ValidationError({"items": [f"Quantity for {product_id} must be at least 1"]})
        product = catalog.lookup(product_id)
        if product is None:
            raise ValidationError({"items": [f"Product {product_id} is not available"]})
        snapshots.append(
            {
                "product_id": product.product_id,
                "seller_id": product.seller_id,
                "title": product.title,
                "quantity": quantity,
                "unit_price": product.unit_price,
                "image_url": product.image_url,
            }
        )
    return snapshots


@orders.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        actor = Actor.of(command.actor_id, command.actor_role)
        _authorize(actor, command.customer_id)

        order = Order.place(
            customer_id=command.customer_id,
            items_data=snapshot_items(command.items),
            delivery_address=command.delivery_address,
            delivery_city=command.delivery_city,
            actor=actor,
        )
        current_domain.repository_for(Order).add(order)
        logger.info("Order placed", order_id=str(order.id), total_amount=order.total_amount)
        return str(order.id)

    @handle(PlaceInstallmentOrder)
    def place_installment_order(self, command):
        actor = Actor.of(command.actor_id, command.actor_role)
        _authorize(actor, command.customer_id)

        history = None
        if command.eligibility_score is None:
            history = customer_history(str(command.customer_id))
        risk = assess_risk(history=history, eligibility_score=command.eligibility_score)

        late_penalty_rate = command.late_penalty_rate
        if late_penalty_rate is None:
            late_penalty_rate = setting("DEFAULT_LATE_PENALTY_RATE")

        guarantor = None
        if command.guarantor:
            guarantor = json.loads(command.guarantor) if isinstance(command.guarantor, str) else command.guarantor

        order = Order.place_installment(
            customer_id=command.customer_id,
            items_data=snapshot_items(command.items),
            installment_count=command.installment_count,
            cadence_days=command.cadence_days or 30,
            risk=risk,
            late_penalty_rate=late_penalty_rate,
            start_date=command.start_date,
            guarantor=guarantor,
            delivery_address=command.delivery_address,
            delivery_city=command.delivery_city,
            actor=actor,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Installment order placed",
            order_id=str(order.id),
            total_amount=order.total_amount,
            installments=command.installment_count,
            risk_level=risk.risk_level,
        )
        return str(order.id)
