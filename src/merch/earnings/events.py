"""Domain events for the CreatorEarnings aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from merch.domain import merch


@merch.event(part_of="CreatorEarnings")
class EarningsCredited:
    """Commission from a delivered order was added to the creator's balance."""

    __version__ = 1

    creator_id = Identifier(required=True)
    amount = Float(required=True)
    sales_amount = Float(default=0.0)
    total_earnings = Float(required=True)
    total_orders = Integer(required=True)
    credited_at = DateTime(required=True)


@merch.event(part_of="CreatorEarnings")
class PayoutRequested:
    """The creator withdrew everything available for payout."""

    __version__ = 1

    creator_id = Identifier(required=True)
    amount = Float(required=True)
    payout_method = String(required=True)
    paid_earnings = Float(required=True)
    requested_at = DateTime(required=True)


@merch.event(part_of="CreatorEarnings")
class PayoutDetailsUpdated:
    """Where payouts go was changed. Carries the method only, never the details."""

    __version__ = 1

    creator_id = Identifier(required=True)
    payout_method = String(required=True)
    updated_at = DateTime(required=True)
