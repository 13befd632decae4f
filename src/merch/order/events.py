"""Domain events for the Order aggregate.

Events are immutable facts raised as the order moves through its lifecycle.
They are dispatched when the aggregate is persisted.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from merch.domain import merch


@merch.event(part_of="Order")
class OrderCreated:
    """A priced order was handed over by checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    grand_total = Float(required=True)
    currency = String(default="BRL")
    commission_rate = Float(required=True)
    total_creator_commission = Float(required=True)
    total_platform_fee = Float(required=True)
    created_at = DateTime(required=True)


@merch.event(part_of="Order")
class OrderPaid:
    """Upstream payment capture confirmed the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    paid_at = DateTime(required=True)


@merch.event(part_of="Order")
class OrderAcceptedByProvider:
    """The fulfillment provider accepted the order and assigned its own id."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    provider_order_id = String(required=True)
    accepted_at = DateTime(required=True)


@merch.event(part_of="Order")
class OrderStatusChanged:
    """The order moved to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    creator_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@merch.event(part_of="Order")
class ShipmentRecorded:
    """A provider shipment was added to, or updated on, the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    provider_shipment_id = String(required=True)
    carrier = String()
    tracking_number = String()
    status = String(required=True)
    is_new = Boolean(default=True)
    recorded_at = DateTime(required=True)


@merch.event(part_of="Order")
class ProviderCostsUpdated:
    """The provider sent its authoritative charge breakdown."""

    __version__ = 1

    order_id = Identifier(required=True)
    subtotal = Float(required=True)
    shipping_total = Float(required=True)
    currency = String(required=True)
    updated_at = DateTime(required=True)


@merch.event(part_of="Order")
class CommissionAccrued:
    """The order's creator commission was booked to the creator's ledger."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    creator_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    accrued_at = DateTime(required=True)
