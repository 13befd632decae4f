"""CreatorEarnings aggregate (CQRS): one commission ledger row per creator.

Balances only move through ``credit`` (a delivered order) and
``settle_payout`` (a payout request). Amounts are stored as floats but every
change is computed in ``Decimal`` and rounded to cents before it is written
back, so repeated credits never accumulate binary drift.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, ValueObject

from merch.domain import merch
from merch.earnings.events import EarningsCredited, PayoutDetailsUpdated, PayoutRequested
from merch.errors import InsufficientBalance, InvalidPayoutDetails, PayoutMethodMissing
from merch.pricing.commission import round2, to_decimal


class PayoutMethod(Enum):
    PIX = "pix"
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"


REQUIRED_PAYOUT_DETAILS = {
    PayoutMethod.PIX: ("pix_key",),
    PayoutMethod.BANK_TRANSFER: ("bank_account", "bank_agency", "bank_name"),
    PayoutMethod.PAYPAL: ("paypal_email",),
}


@merch.value_object(part_of="CreatorEarnings")
class PayoutDetails:
    """Where a creator's payouts are sent."""

    pix_key = String(max_length=255)
    bank_account = String(max_length=50)
    bank_agency = String(max_length=20)
    bank_name = String(max_length=100)
    paypal_email = String(max_length=254)


@merch.aggregate
class CreatorEarnings:
    creator_id = Identifier(identifier=True, required=True)
    total_earnings = Float(default=0.0)
    pending_earnings = Float(default=0.0)
    paid_earnings = Float(default=0.0)
    total_sales = Float(default=0.0)
    total_orders = Integer(default=0)
    payout_method = String(choices=PayoutMethod)
    payout_details = ValueObject(PayoutDetails)
    last_payout_date = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def paid_cannot_exceed_total(self):
        if round2(self.paid_earnings or 0) > round2(self.total_earnings or 0):
            raise ValidationError({"paid_earnings": ["Paid earnings cannot exceed total earnings"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, creator_id):
        """A zero balance for a creator who has never earned anything."""
        now = datetime.now(UTC)
        return cls(creator_id=creator_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------
    @property
    def available_for_payout(self) -> Decimal:
        return round2(self.total_earnings or 0) - round2(self.paid_earnings or 0)

    def can_request_payout(self, minimum) -> bool:
        return self.available_for_payout >= to_decimal(minimum) and bool(self.payout_method)

    def credit(self, amount, sales_amount=0, at: datetime | None = None) -> None:
        """Book one delivered order's commission."""
        amount = round2(amount)
        if amount < 0:
            raise ValidationError({"amount": ["Credited amount cannot be negative"]})

        at = at or datetime.now(UTC)
        self.total_earnings = float(round2(self.total_earnings or 0) + amount)
        self.pending_earnings = float(round2(self.pending_earnings or 0) + amount)
        self.total_sales = float(round2(self.total_sales or 0) + round2(sales_amount))
        self.total_orders = (self.total_orders or 0) + 1
        self.updated_at = at
        self.raise_(
            EarningsCredited(
                creator_id=str(self.creator_id),
                amount=float(amount),
                sales_amount=float(round2(sales_amount)),
                total_earnings=self.total_earnings,
                total_orders=self.total_orders,
                credited_at=at,
            )
        )

    def settle_payout(self, minimum, at: datetime | None = None) -> Decimal:
        """Withdraw the whole available balance and return the amount.

        Raises ``InsufficientBalance`` below ``minimum`` and
        ``PayoutMethodMissing`` when no payout method is on file.
        """
        available = self.available_for_payout
        minimum = to_decimal(minimum)
        if available < minimum:
            raise InsufficientBalance(
                {"balance": [f"Minimum payout is {minimum:.2f}; available balance is {available:.2f}"]}
            )
        if not self.payout_method:
            raise PayoutMethodMissing({"payout_method": ["Configure a payout method first"]})

        at = at or datetime.now(UTC)
        self.paid_earnings = float(round2(self.paid_earnings or 0) + available)
        self.pending_earnings = float(max(Decimal("0"), round2(self.pending_earnings or 0) - available))
        self.last_payout_date = at
        self.updated_at = at
        self.raise_(
            PayoutRequested(
                creator_id=str(self.creator_id),
                amount=float(available),
                payout_method=self.payout_method,
                paid_earnings=self.paid_earnings,
                requested_at=at,
            )
        )
        return available

    # -------------------------------------------------------------------
    # Payout details
    # -------------------------------------------------------------------
    def update_payout_details(self, method: str, details: dict) -> None:
        try:
            payout_method = PayoutMethod(method)
        except ValueError:
            raise InvalidPayoutDetails({"payout_method": [f"Unknown payout method: {method}"]}) from None

        missing = [name for name in REQUIRED_PAYOUT_DETAILS[payout_method] if not details.get(name)]
        if missing:
            raise InvalidPayoutDetails({name: [f"Required for {payout_method.value} payouts"] for name in missing})

        known = {name for names in REQUIRED_PAYOUT_DETAILS.values() for name in names}
        now = datetime.now(UTC)
        self.payout_method = payout_method.value
        self.payout_details = PayoutDetails(**{k: v for k, v in details.items() if k in known and v})
        self.updated_at = now
        self.raise_(
            PayoutDetailsUpdated(
                creator_id=str(self.creator_id),
                payout_method=payout_method.value,
                updated_at=now,
            )
        )
