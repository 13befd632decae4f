"""Order payment: command and handler.

Payment capture happens upstream. This only records that it succeeded.
"""

from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from merch.domain import merch
from merch.order.order import Order


@merch.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)
    paid_at = DateTime()


@merch.command_handler(part_of=Order)
class RecordPaymentHandler:
    @handle(RecordPayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment(at=command.paid_at)
        repo.add(order)
