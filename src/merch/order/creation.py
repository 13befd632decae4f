"""Order creation: command and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from merch.domain import logger, merch
from merch.order.order import Order


@merch.command(part_of="Order")
class CreateOrder:
    """Record a fully-priced order handed over by checkout."""

    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    customer_name = String(max_length=255)
    creator_id = Identifier(required=True)
    creator_email = String(max_length=254)
    creator_name = String(max_length=255)
    items = Text(required=True)  # JSON list of item dicts
    shipping_address = Text(required=True)  # JSON dict
    pricing = Text(required=True)  # JSON dict
    commission_rate = Float(required=True, min_value=0.0, max_value=100.0)
    shipping_method = String(max_length=50)
    order_number = String(max_length=50)


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


@merch.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        order = Order.create(
            customer_id=command.customer_id,
            customer_email=command.customer_email,
            customer_name=command.customer_name,
            creator_id=command.creator_id,
            creator_email=command.creator_email,
            creator_name=command.creator_name,
            items_data=_load(command.items),
            shipping_address=_load(command.shipping_address),
            pricing=_load(command.pricing),
            commission_rate=command.commission_rate,
            shipping_method=command.shipping_method,
            order_number=command.order_number,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            creator_id=str(order.creator_id),
            total_creator_commission=order.total_creator_commission,
        )
        return {"order_id": str(order.id), "order_number": order.order_number}
