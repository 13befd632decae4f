"""Order cancellation, refund and failure: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from merch.domain import merch
from merch.order.order import Order


@merch.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@merch.command(part_of="Order")
class RefundOrder:
    order_id = Identifier(required=True)


@merch.command(part_of="Order")
class FailOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@merch.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason)
        repo.add(order)

    @handle(RefundOrder)
    def refund_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.refund()
        repo.add(order)

    @handle(FailOrder)
    def fail_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.fail(reason=command.reason)
        repo.add(order)
