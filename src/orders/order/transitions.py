"""Order status transitions, cancellation and buyer-side edits: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.actors import Actor, ActorRole
from orders.order.order import Order, OrderStatus


@orders.command(part_of="Order")
class RequestTransition:
    order_id = Identifier(required=True)
    target_status = String(required=True, max_length=30, choices=OrderStatus)
    reason = String(max_length=500)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)  # At least 5 characters, checked by the aggregate
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class SkipCancellationWindow:
    order_id = Identifier(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class ChangeDeliveryAddress:
    order_id = Identifier(required=True)
    delivery_address = String(required=True, max_length=500)
    delivery_city = String(max_length=100)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(RequestTransition)
    def request_transition(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.request_transition(
            Actor.of(command.actor_id, command.actor_role),
            command.target_status,
            reason=command.reason,
        )
        repo.add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(Actor.of(command.actor_id, command.actor_role), command.reason)
        repo.add(order)

    @handle(SkipCancellationWindow)
    def skip_cancellation_window(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        skipped = order.skip_cancellation_window(Actor.of(command.actor_id, command.actor_role))
        if skipped:
            repo.add(order)
        return skipped

    @handle(ChangeDeliveryAddress)
    def change_delivery_address(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.change_delivery_address(
            Actor.of(command.actor_id, command.actor_role),
            command.delivery_address,
            command.delivery_city,
        )
        repo.add(order)
