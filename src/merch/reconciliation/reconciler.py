"""Fulfillment reconciler: applies provider callbacks to orders.

For each callback the reconciler finds the order by provider order id, takes
that order's lock, applies the translated patch and saves. When the order
moves into ``delivered`` during this call and its commission has not been
credited yet, the creator's ledger is credited in the same unit of work.

The creator's lock is held for the whole write so a payout request cannot
read the balance between the credit and the commit.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.core.unit_of_work import UnitOfWork
from protean.utils.globals import current_domain

from merch.callbacks.translator import IgnoredCallback, OrderCallback, OrderPatch, translate
from merch.config import Settings
from merch.domain import logger
from merch.earnings.ledger import EarningsLedger
from merch.errors import IllegalTransition, OrderNotFound
from merch.locking import KeyedLocks, retrying
from merch.order.order import Order, OrderStatus, ShipmentStatus


@dataclass(frozen=True)
class ReconcileResult:
    accepted: bool = True
    handled: bool = False
    order_number: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    credited: bool = False


class FulfillmentReconciler:
    def __init__(self, ledger: EarningsLedger, order_locks: KeyedLocks, settings: Settings | None = None) -> None:
        self.ledger = ledger
        self.order_locks = order_locks
        self.settings = settings or Settings()

    def find_order(self, provider_order_id: str) -> Order:
        order = current_domain.repository_for(Order).find_by_provider_order_id(provider_order_id)
        if order is None:
            raise OrderNotFound({"provider_order_id": [f"No order for provider order {provider_order_id}"]})
        return order

    def reconcile(self, provider_order_id: str | None, payload: dict) -> ReconcileResult:
        """Apply one provider callback. Unknown orders are acknowledged untouched."""
        callback = translate(payload, provider_order_id=provider_order_id)
        if isinstance(callback, IgnoredCallback):
            logger.info(
                "Provider callback ignored",
                entity=callback.callback_type.entity,
                reason=callback.reason,
            )
            return ReconcileResult(accepted=True, handled=False)

        patch = callback.patch
        try:
            order = self.find_order(patch.provider_order_id)
        except OrderNotFound:
            logger.warning("Callback for unknown order", provider_order_id=patch.provider_order_id)
            return ReconcileResult(accepted=True, handled=False)

        return retrying(
            lambda: self._apply(str(order.id), str(order.creator_id), callback),
            attempts=self.settings.lock_retries,
            what=f"order:{order.order_number}",
        )

    def _apply(self, order_id: str, creator_id: str, callback: OrderCallback) -> ReconcileResult:
        patch = callback.patch
        repo = current_domain.repository_for(Order)

        with self.order_locks.hold(order_id), self.ledger.locks.hold(creator_id):
            order = repo.get(order_id)
            previous = order.status

            if order.is_terminal:
                logger.info(
                    "Callback for finalized order",
                    order_number=order.order_number,
                    status=order.status,
                    provider_status=patch.provider_status,
                )
                return ReconcileResult(
                    handled=True,
                    order_number=order.order_number,
                    previous_status=previous,
                    new_status=previous,
                )

            with UnitOfWork():
                changed = self._merge(order, patch)
                credited = False
                if changed and order.status == OrderStatus.DELIVERED.value and not order.commission_credited:
                    self.ledger.credit(creator_id, order.total_creator_commission, sales_amount=order.sales_amount)
                    order.accrue_commission()
                    credited = True
                repo.add(order)

        if changed:
            logger.info(
                "Order status changed",
                order_number=order.order_number,
                previous_status=previous,
                new_status=order.status,
                creator_id=creator_id,
            )
        if credited:
            logger.info(
                "Order delivered",
                order_number=order.order_number,
                creator_id=creator_id,
                commission=order.total_creator_commission,
            )
        return ReconcileResult(
            handled=True,
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
            credited=credited,
        )

    def _merge(self, order: Order, patch: OrderPatch) -> bool:
        """Apply everything in ``patch``; return whether the status changed."""
        at = patch.occurred_at or datetime.now(UTC)
        order.record_callback(patch.provider_status, at=at)

        for item in patch.items:
            matched = order.update_item_from_provider(
                external_item_id=item.external_item_id,
                sku=item.sku,
                asset_status=item.asset_status,
            )
            if matched is None:
                logger.warning(
                    "Provider item matches no order item",
                    order_number=order.order_number,
                    external_item_id=item.external_item_id,
                    sku=item.sku,
                )

        for shipment in patch.shipments:
            order.upsert_shipment(
                provider_shipment_id=shipment.provider_shipment_id,
                status=shipment.status,
                carrier=shipment.carrier,
                service=shipment.service,
                tracking_number=shipment.tracking_number,
                tracking_url=shipment.tracking_url,
                dispatch_date=shipment.dispatch_date,
                delivered_at=at if shipment.status == ShipmentStatus.DELIVERED.value else None,
                item_ids=list(shipment.item_ids) or None,
                fulfillment_location=shipment.fulfillment_location,
            )

        if patch.charges is not None:
            order.replace_provider_costs(
                subtotal=float(patch.charges.subtotal),
                shipping_total=float(patch.charges.shipping_total),
                currency=patch.charges.currency,
            )

        if patch.mark_sent_to_production:
            order.mark_sent_to_production(at=at)

        if patch.target_status is None:
            return False
        try:
            return order.transition_to(patch.target_status, at=at)
        except IllegalTransition:
            # Out-of-order delivery from the provider; keep the newer state
            logger.warning(
                "Stale provider callback",
                order_number=order.order_number,
                status=order.status,
                requested_status=patch.target_status.value,
            )
            return False
