"""Provider acceptance: command and handler.

Submitting the order to the provider is done elsewhere. Once the provider
accepts it, its order id is recorded here so callbacks can find the order.
"""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from merch.domain import logger, merch
from merch.order.order import Order


@merch.command(part_of="Order")
class RecordProviderAcceptance:
    order_id = Identifier(required=True)
    provider_order_id = String(required=True, max_length=100)
    external_item_ids = Text()  # JSON: {item id or provider SKU: provider item id}
    provider_status = String(max_length=100)


@merch.command_handler(part_of=Order)
class RecordProviderAcceptanceHandler:
    @handle(RecordProviderAcceptance)
    def record_provider_acceptance(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        external_item_ids = command.external_item_ids
        if isinstance(external_item_ids, str):
            external_item_ids = json.loads(external_item_ids)
        order.record_provider_acceptance(
            provider_order_id=command.provider_order_id,
            external_item_ids=external_item_ids,
        )
        if command.provider_status:
            order.provider_status = command.provider_status
        repo.add(order)
        logger.info(
            "Order accepted by provider",
            order_number=order.order_number,
            provider_order_id=order.provider_order_id,
        )
