"""Creator earnings ledger: the only writer of CreatorEarnings rows.

Every read-modify-write of a creator's balance runs while holding that
creator's lock, so concurrent credits and payouts for the same creator are
applied one after another and none is lost.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from merch.config import Settings
from merch.domain import logger
from merch.earnings.earnings import CreatorEarnings
from merch.earnings.summary import EarningsSummary, summarize
from merch.errors import InsufficientBalance
from merch.locking import KeyedLocks, retrying
from merch.order.order import Order


@dataclass(frozen=True)
class PayoutReceipt:
    creator_id: str
    amount: Decimal
    payout_method: str
    requested_at: datetime
    orders_settled: int


class EarningsLedger:
    def __init__(self, locks: KeyedLocks, settings: Settings | None = None) -> None:
        self.locks = locks
        self.settings = settings or Settings()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def find(self, creator_id) -> CreatorEarnings | None:
        try:
            return current_domain.repository_for(CreatorEarnings).get(str(creator_id))
        except ObjectNotFoundError:
            return None

    def get(self, creator_id) -> CreatorEarnings:
        """The creator's ledger row, or an unsaved zero balance."""
        return self.find(creator_id) or CreatorEarnings.open(str(creator_id))

    def summary(self, creator_id, period_days: int = 30, now: datetime | None = None) -> EarningsSummary:
        """Read-only earnings page for a creator. Never persists anything."""
        return summarize(self.get(creator_id), self.settings, period_days=period_days, now=now)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def credit(self, creator_id, amount, sales_amount=0) -> CreatorEarnings:
        """Add one delivered order's commission to the creator's balance."""
        with self.locks.hold(creator_id):
            earnings = self.get(creator_id)
            earnings.credit(amount, sales_amount=sales_amount)
            current_domain.repository_for(CreatorEarnings).add(earnings)

        logger.info(
            "Creator earnings credited",
            creator_id=str(creator_id),
            amount=str(amount),
            total_earnings=earnings.total_earnings,
            total_orders=earnings.total_orders,
        )
        return earnings

    def request_payout(self, creator_id, at: datetime | None = None) -> PayoutReceipt:
        return retrying(
            lambda: self._request_payout(str(creator_id), at or datetime.now(UTC)),
            attempts=self.settings.lock_retries,
            what=f"payout:{creator_id}",
        )

    def _request_payout(self, creator_id: str, at: datetime) -> PayoutReceipt:
        # Balance check and withdrawal happen under one hold of the lock, so a
        # credit can never land between them.
        with self.locks.hold(creator_id):
            earnings = self.find(creator_id)
            if earnings is None:
                raise InsufficientBalance(
                    {"balance": [f"Minimum payout is {self.settings.min_payout_amount:.2f}; available balance is 0.00"]}
                )

            with UnitOfWork():
                amount = earnings.settle_payout(self.settings.min_payout_amount, at=at)
                current_domain.repository_for(CreatorEarnings).add(earnings)
                orders_settled = self._mark_commissions_processing(creator_id, earnings.payout_method, at)

        logger.info(
            "Payout requested",
            creator_id=creator_id,
            amount=str(amount),
            payout_method=earnings.payout_method,
            orders_settled=orders_settled,
        )
        return PayoutReceipt(
            creator_id=creator_id,
            amount=amount,
            payout_method=earnings.payout_method,
            requested_at=at,
            orders_settled=orders_settled,
        )

    def _mark_commissions_processing(self, creator_id: str, payout_method: str, at: datetime) -> int:
        repo = current_domain.repository_for(Order)
        settled = 0
        for order in repo.find_credited_for_creator(creator_id):
            if not order.has_pending_commission:
                continue
            order.mark_commission_processing(payout_method, at=at)
            repo.add(order)
            settled += 1
        return settled

    def update_payout_details(self, creator_id, method: str, details: dict) -> CreatorEarnings:
        with self.locks.hold(creator_id):
            earnings = self.get(creator_id)
            earnings.update_payout_details(method, details)
            current_domain.repository_for(CreatorEarnings).add(earnings)

        logger.info("Payout details updated", creator_id=str(creator_id), payout_method=method)
        return earnings
