"""Installment sale confirmation, proofs and waivers: commands and handler."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.order.actors import Actor, ActorRole
from orders.order.order import Order
from orders.penalty import get_penalty_policy


@orders.command(part_of="Order")
class ConfirmSale:
    order_id = Identifier(required=True)
    approve = Boolean(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class SubmitProof:
    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    payer_name = String(max_length=200)
    transaction_code = String(max_length=50)
    amount = Float()
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class ValidateProof:
    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    approve = Boolean(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command(part_of="Order")
class WaiveInstallment:
    order_id = Identifier(required=True)
    schedule_index = Integer(required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(required=True, choices=ActorRole)


@orders.command_handler(part_of=Order)
class InstallmentHandler:
    @handle(ConfirmSale)
    def confirm_sale(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.confirm_sale(Actor.of(command.actor_id, command.actor_role), command.approve)
        repo.add(order)

    @handle(SubmitProof)
    def submit_proof(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.submit_proof(
            Actor.of(command.actor_id, command.actor_role),
            command.schedule_index,
            command.payer_name,
            command.transaction_code,
            command.amount,
        )
        repo.add(order)

    @handle(ValidateProof)
    def validate_proof(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.validate_proof(
            Actor.of(command.actor_id, command.actor_role),
            command.schedule_index,
            command.approve,
            policy=get_penalty_policy(),
        )
        repo.add(order)

    @handle(WaiveInstallment)
    def waive_installment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.waive_installment(Actor.of(command.actor_id, command.actor_role), command.schedule_index)
        repo.add(order)
