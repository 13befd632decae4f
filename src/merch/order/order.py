"""Order aggregate (CQRS): the core of the merch domain.

One Order is one print-on-demand purchase. It carries the prices locked at
checkout, the commission split captured at creation, and everything the
fulfillment provider later reports about it (stage, shipments, charges).

State Machine:
    PENDING → CONFIRMED → PROCESSING → IN_PRODUCTION → SHIPPED → DELIVERED
    Any later state on that chain is reachable directly (callbacks skip stages).
    {any non-terminal} → CANCELLED
    {any non-terminal, once paid} → REFUNDED
    {PENDING, CONFIRMED, PROCESSING} → FAILED

DELIVERED, CANCELLED, REFUNDED and FAILED are terminal. A terminal order only
changes through its commission payment records.
"""

import json
import secrets
import string
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from merch.domain import logger, merch
from merch.errors import IllegalTransition
from merch.order.events import (
    CommissionAccrued,
    OrderAcceptedByProvider,
    OrderCreated,
    OrderPaid,
    OrderStatusChanged,
    ProviderCostsUpdated,
    ShipmentRecorded,
)
from merch.pricing import commission


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class ItemStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShipmentStatus(Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    EXCEPTION = "exception"


class CommissionPaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


class AssetStatus(Enum):
    NOT_YET_DOWNLOADED = "NotYetDownloaded"
    IN_PROGRESS = "inProgress"
    COMPLETE = "complete"
    ERROR = "error"


MAIN_CHAIN = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

TERMINAL_STATUSES = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.FAILED,
}

# State machine transition map. REFUNDED additionally needs paid_at.
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.FAILED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.FAILED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
        OrderStatus.FAILED,
    },
    OrderStatus.IN_PRODUCTION: {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
    OrderStatus.REFUNDED: set(),  # terminal
    OrderStatus.FAILED: set(),  # terminal
}

# Timestamp stamped the first time the order enters a status
_STATUS_TIMESTAMPS = {
    OrderStatus.IN_PRODUCTION: "sent_to_production_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.REFUNDED: "refunded_at",
}

# Item status each order status drags its items to
_ITEM_STATUS_FOR_ORDER = {
    OrderStatus.PROCESSING: ItemStatus.PROCESSING,
    OrderStatus.IN_PRODUCTION: ItemStatus.IN_PRODUCTION,
    OrderStatus.SHIPPED: ItemStatus.SHIPPED,
    OrderStatus.DELIVERED: ItemStatus.DELIVERED,
    OrderStatus.CANCELLED: ItemStatus.CANCELLED,
    OrderStatus.REFUNDED: ItemStatus.REFUNDED,
    OrderStatus.FAILED: ItemStatus.CANCELLED,
}

_ITEM_PROGRESS = [
    ItemStatus.PENDING,
    ItemStatus.PROCESSING,
    ItemStatus.IN_PRODUCTION,
    ItemStatus.SHIPPED,
    ItemStatus.DELIVERED,
]

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def _base36(number: int) -> str:
    digits = string.digits + string.ascii_uppercase
    if number == 0:
        return "0"
    out = []
    while number:
        number, remainder = divmod(number, 36)
        out.append(digits[remainder])
    return "".join(reversed(out))


def generate_order_number(now: datetime | None = None) -> str:
    """Human-referenceable order number, e.g. ``POD-M2K9X1AB-7QZC``."""
    now = now or datetime.now(UTC)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(4))
    return f"POD-{_base36(millis)}-{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@merch.value_object(part_of="Order")
class ShippingAddress:
    """Where the provider ships the order, captured at checkout."""

    name = String(required=True, max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country_code = String(required=True, max_length=2)
    country = String(max_length=100)
    email = String(max_length=254)
    phone = String(max_length=50)


@merch.value_object(part_of="Order")
class OrderPricing:
    """Financial summary locked at checkout, in the local currency."""

    subtotal = Float(default=0.0)
    shipping_total = Float(default=0.0)
    tax_total = Float(default=0.0)
    discount_total = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="BRL")


@merch.value_object(part_of="Order")
class ProviderCosts:
    """What the provider charges us, replaced wholesale on every charge report."""

    subtotal = Float(default=0.0)
    shipping_total = Float(default=0.0)
    currency = String(max_length=3, default="GBP")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@merch.entity(part_of="Order")
class OrderItem:
    """A printed product line.

    ``unit_price`` and ``unit_cost`` are per copy; every other money field is a
    line total, so ``creator_commission + platform_fee == selling_price - base_cost``.
    """

    product_id = Identifier(required=True)
    variant_id = Identifier()
    provider_sku = String(required=True, max_length=100)
    provider_variant_id = String(max_length=100)
    title = String(required=True, max_length=255)
    variant_label = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_cost = Float(required=True, min_value=0.0)
    unit_price = Float(required=True, min_value=0.0)
    base_cost = Float(required=True, min_value=0.0)
    selling_price = Float(required=True, min_value=0.0)
    profit = Float(default=0.0)
    creator_commission = Float(default=0.0)
    platform_fee = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    status = String(choices=ItemStatus, default=ItemStatus.PENDING.value)
    external_item_id = String(max_length=100)
    asset_status = String(choices=AssetStatus)


@merch.entity(part_of="Order")
class Shipment:
    """A parcel the provider dispatched, keyed by the provider's shipment id."""

    provider_shipment_id = String(required=True, max_length=100)
    carrier = String(max_length=100)
    service = String(max_length=100)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=500)
    dispatch_date = DateTime()
    delivered_at = DateTime()
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    item_ids = Text()  # JSON list of provider item ids
    fulfillment_location = String(max_length=100)


@merch.entity(part_of="Order")
class CommissionPayment:
    """Payout bookkeeping for the creator's share of this order."""

    creator_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="BRL")
    status = String(
        choices=CommissionPaymentStatus,
        default=CommissionPaymentStatus.PENDING.value,
    )
    payout_method = String(max_length=50)
    external_transaction_id = String(max_length=255)
    notes = String(max_length=500)
    requested_at = DateTime()
    paid_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@merch.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    provider_order_id = String(max_length=100)
    customer_id = Identifier(required=True)
    customer_email = String(max_length=254)
    customer_name = String(max_length=255)
    creator_id = Identifier(required=True)
    creator_email = String(max_length=254)
    creator_name = String(max_length=255)
    shipping_address = ValueObject(ShippingAddress)
    shipping_method = String(max_length=50)
    pricing = ValueObject(OrderPricing)
    provider_costs = ValueObject(ProviderCosts)
    commission_rate = Float(required=True, min_value=0.0, max_value=100.0)
    total_creator_commission = Float(default=0.0)
    total_platform_fee = Float(default=0.0)
    items = HasMany(OrderItem)
    shipments = HasMany(Shipment)
    commission_payments = HasMany(CommissionPayment)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    provider_status = String(max_length=100)
    commission_credited = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    failure_reason = String(max_length=500)
    paid_at = DateTime()
    sent_to_production_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()
    last_callback_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        creator_id,
        items_data,
        shipping_address,
        pricing,
        commission_rate,
        customer_email=None,
        customer_name=None,
        creator_email=None,
        creator_name=None,
        shipping_method=None,
        order_number=None,
    ):
        """Create a pending order from priced checkout data.

        Args:
            items_data: List of dicts with product_id, provider_sku, title,
                        quantity and the per-unit base_cost and selling_price.
                        variant_id, provider_variant_id, variant_label and
                        shipping_cost are optional.
            shipping_address: Dict matching ``ShippingAddress``.
            pricing: Dict with subtotal, shipping_total, tax_total,
                     discount_total, grand_total, currency.
            commission_rate: Creator share of the profit, in percent.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number or generate_order_number(now),
            customer_id=customer_id,
            customer_email=customer_email,
            customer_name=customer_name,
            creator_id=creator_id,
            creator_email=creator_email,
            creator_name=creator_name,
            shipping_address=ShippingAddress(**shipping_address),
            shipping_method=shipping_method,
            pricing=OrderPricing(**pricing),
            commission_rate=commission_rate,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        splits = []
        for item_data in items_data:
            quantity = int(item_data.get("quantity", 1))
            line = commission.split_line(
                item_data["selling_price"],
                item_data["base_cost"],
                commission_rate,
                quantity=quantity,
            )
            if line.is_loss:
                logger.warning(
                    "Order item sold at a loss",
                    order_number=order.order_number,
                    provider_sku=item_data.get("provider_sku"),
                    profit=str(line.profit),
                )
            splits.append(line)
            unit_price = commission.to_decimal(item_data["selling_price"])
            unit_cost = commission.to_decimal(item_data["base_cost"])
            order.add_items(
                OrderItem(
                    **{k: v for k, v in item_data.items() if k not in ("selling_price", "base_cost")},
                    unit_price=float(unit_price),
                    unit_cost=float(unit_cost),
                    selling_price=float(unit_price * quantity),
                    base_cost=float(unit_cost * quantity),
                    profit=float(line.profit),
                    creator_commission=float(line.creator_commission),
                    platform_fee=float(line.platform_fee),
                )
            )

        totals = commission.order_totals(splits)
        order.total_creator_commission = float(totals.creator_commission)
        order.total_platform_fee = float(totals.platform_fee)

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                creator_id=str(creator_id),
                items=json.dumps(items_data, default=str),
                grand_total=order.pricing.grand_total,
                currency=order.pricing.currency,
                commission_rate=commission_rate,
                total_creator_commission=order.total_creator_commission,
                total_platform_fee=order.total_platform_fee,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    def can_transition_to(self, target: OrderStatus) -> bool:
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            return False
        if target == OrderStatus.REFUNDED and self.paid_at is None:
            return False
        return True

    def _assert_can_transition(self, target: OrderStatus) -> None:
        if not self.can_transition_to(target):
            current = OrderStatus(self.status)
            if target == OrderStatus.REFUNDED and target in _VALID_TRANSITIONS.get(current, set()):
                raise IllegalTransition({"status": ["Cannot refund an order that was never paid"]})
            raise IllegalTransition({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def transition_to(self, target: OrderStatus, at: datetime | None = None) -> bool:
        """Move the order to ``target``.

        Returns True when the status changed and False when the order is
        already in ``target``. Timestamps are stamped only if still unset.
        Raises ``IllegalTransition`` for anything the state machine forbids.
        """
        target = OrderStatus(target)
        current = OrderStatus(self.status)
        if target == current:
            return False
        self._assert_can_transition(target)

        at = at or datetime.now(UTC)
        self.status = target.value
        self._stamp(_STATUS_TIMESTAMPS.get(target), at)
        self._advance_items(target)
        self.updated_at = at
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                creator_id=str(self.creator_id),
                previous_status=current.value,
                new_status=target.value,
                changed_at=at,
            )
        )
        return True

    def _stamp(self, attribute: str | None, at: datetime) -> None:
        if attribute and getattr(self, attribute) is None:
            setattr(self, attribute, at)

    def mark_sent_to_production(self, at: datetime | None = None) -> None:
        """Record when the provider started producing, without changing status."""
        self._stamp("sent_to_production_at", at or datetime.now(UTC))

    def _advance_items(self, target: OrderStatus) -> None:
        item_target = _ITEM_STATUS_FOR_ORDER.get(target)
        if item_target is None:
            return
        for item in self.items or []:
            self._move_item(item, item_target)

    @staticmethod
    def _move_item(item: OrderItem, target: ItemStatus) -> None:
        current = ItemStatus(item.status)
        if current in (ItemStatus.CANCELLED, ItemStatus.REFUNDED):
            return
        if target in _ITEM_PROGRESS and current in _ITEM_PROGRESS:
            # Items never move backwards on the main chain
            if _ITEM_PROGRESS.index(target) <= _ITEM_PROGRESS.index(current):
                return
        item.status = target.value

    def _assert_mutable(self, what: str) -> None:
        if self.is_terminal:
            raise ValidationError({"status": [f"Cannot change {what} of a {self.status} order"]})

    # -------------------------------------------------------------------
    # Payment & provider acceptance
    # -------------------------------------------------------------------
    def record_payment(self, at: datetime | None = None) -> None:
        """Upstream capture succeeded: mark paid and confirm a pending order."""
        if self.payment_status == PaymentStatus.PAID.value:
            raise ValidationError({"payment_status": ["Order is already paid"]})
        self._assert_mutable("payment")

        at = at or datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self._stamp("paid_at", at)
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                paid_at=self.paid_at,
            )
        )
        if OrderStatus(self.status) == OrderStatus.PENDING:
            self.transition_to(OrderStatus.CONFIRMED, at=at)
        self.updated_at = at

    def record_provider_acceptance(
        self,
        provider_order_id: str,
        external_item_ids: dict | None = None,
        at: datetime | None = None,
    ) -> None:
        """Store the provider's order id. It can only ever be set once.

        ``external_item_ids`` maps our item id (or provider SKU) to the
        provider's item id.
        """
        if self.provider_order_id:
            if self.provider_order_id == provider_order_id:
                return
            raise ValidationError({"provider_order_id": ["Provider order id is already set"]})
        self._assert_mutable("provider acceptance")

        matches = []
        for key, external_id in (external_item_ids or {}).items():
            item = self._find_item(item_id=key, sku=key)
            if item is None:
                raise ValidationError({"external_item_ids": [f"No item matches {key}"]})
            matches.append((item, external_id))

        at = at or datetime.now(UTC)
        self.provider_order_id = provider_order_id
        for item, external_id in matches:
            self.assign_external_item_id(item, external_id)
        self.updated_at = at
        self.raise_(
            OrderAcceptedByProvider(
                order_id=str(self.id),
                order_number=self.order_number,
                provider_order_id=provider_order_id,
                accepted_at=at,
            )
        )

    # -------------------------------------------------------------------
    # Side-branch shortcuts
    # -------------------------------------------------------------------
    def cancel(self, reason: str | None = None, at: datetime | None = None) -> bool:
        changed = self.transition_to(OrderStatus.CANCELLED, at=at)
        if changed and reason:
            self.cancellation_reason = reason
        return changed

    def refund(self, at: datetime | None = None) -> bool:
        changed = self.transition_to(OrderStatus.REFUNDED, at=at)
        if changed:
            self.payment_status = PaymentStatus.REFUNDED.value
        return changed

    def fail(self, reason: str | None = None, at: datetime | None = None) -> bool:
        changed = self.transition_to(OrderStatus.FAILED, at=at)
        if changed and reason:
            self.failure_reason = reason
        return changed

    # -------------------------------------------------------------------
    # Provider-reported facts
    # -------------------------------------------------------------------
    def record_callback(self, provider_status: str | None, at: datetime | None = None) -> None:
        at = at or datetime.now(UTC)
        if provider_status:
            self.provider_status = provider_status
        self.last_callback_at = at
        self.updated_at = at

    def upsert_shipment(
        self,
        provider_shipment_id: str,
        status: str = ShipmentStatus.PENDING.value,
        carrier: str | None = None,
        service: str | None = None,
        tracking_number: str | None = None,
        tracking_url: str | None = None,
        dispatch_date: datetime | None = None,
        delivered_at: datetime | None = None,
        item_ids: list[str] | None = None,
        fulfillment_location: str | None = None,
    ) -> Shipment:
        """Add a shipment or update the one with the same provider id.

        Fields the provider leaves out keep their stored value. Items the
        shipment covers move to ``shipped`` individually.
        """
        self._assert_mutable("shipments")
        status = ShipmentStatus(status).value
        fields = {
            "carrier": carrier,
            "service": service,
            "tracking_number": tracking_number,
            "tracking_url": tracking_url,
            "dispatch_date": dispatch_date,
            "delivered_at": delivered_at,
            "fulfillment_location": fulfillment_location,
        }
        if item_ids is not None:
            fields["item_ids"] = json.dumps(list(item_ids))

        shipment = next(
            (s for s in (self.shipments or []) if s.provider_shipment_id == provider_shipment_id),
            None,
        )
        is_new = shipment is None
        if is_new:
            shipment = Shipment(
                provider_shipment_id=provider_shipment_id,
                status=status,
                **{k: v for k, v in fields.items() if v is not None},
            )
            self.add_shipments(shipment)
        else:
            shipment.status = status
            for key, value in fields.items():
                if value is not None:
                    setattr(shipment, key, value)

        if status in (
            ShipmentStatus.SHIPPED.value,
            ShipmentStatus.IN_TRANSIT.value,
            ShipmentStatus.DELIVERED.value,
        ):
            for external_id in item_ids or []:
                item = self._find_item(external_id=external_id)
                if item is not None:
                    self._move_item(item, ItemStatus.SHIPPED)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ShipmentRecorded(
                order_id=str(self.id),
                provider_shipment_id=provider_shipment_id,
                carrier=shipment.carrier,
                tracking_number=shipment.tracking_number,
                status=status,
                is_new=is_new,
                recorded_at=now,
            )
        )
        return shipment

    def replace_provider_costs(self, subtotal: float, shipping_total: float, currency: str) -> None:
        """Overwrite provider totals with the latest charge breakdown."""
        self._assert_mutable("provider costs")
        now = datetime.now(UTC)
        self.provider_costs = ProviderCosts(
            subtotal=subtotal,
            shipping_total=shipping_total,
            currency=currency,
        )
        self.updated_at = now
        self.raise_(
            ProviderCostsUpdated(
                order_id=str(self.id),
                subtotal=subtotal,
                shipping_total=shipping_total,
                currency=currency,
                updated_at=now,
            )
        )

    def update_item_from_provider(
        self,
        external_item_id: str | None = None,
        sku: str | None = None,
        asset_status: str | None = None,
    ) -> OrderItem | None:
        """Apply a provider item report. Returns the matched item, if any."""
        self._assert_mutable("items")
        item = self._find_item(external_id=external_item_id, sku=sku)
        if item is None:
            return None
        if external_item_id:
            self.assign_external_item_id(item, external_item_id)
        if asset_status:
            item.asset_status = AssetStatus(asset_status).value
        return item

    @staticmethod
    def assign_external_item_id(item: OrderItem, external_item_id: str) -> None:
        if item.external_item_id and item.external_item_id != external_item_id:
            raise ValidationError({"external_item_id": [f"Item {item.id} already has a provider item id"]})
        item.external_item_id = external_item_id

    def _find_item(self, item_id=None, external_id=None, sku=None) -> OrderItem | None:
        items = self.items or []
        if item_id:
            match = next((i for i in items if str(i.id) == str(item_id)), None)
            if match is not None:
                return match
        if external_id:
            match = next((i for i in items if i.external_item_id == external_id), None)
            if match is not None:
                return match
        if sku:
            return next(
                (i for i in items if i.provider_sku == sku and not i.external_item_id),
                next((i for i in items if i.provider_sku == sku), None),
            )
        return None

    # -------------------------------------------------------------------
    # Commission bookkeeping
    # -------------------------------------------------------------------
    def accrue_commission(self, at: datetime | None = None) -> CommissionPayment:
        """Flag the commission as credited and open its payment record.

        Only a delivered order accrues, and only once.
        """
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise ValidationError({"status": ["Commission accrues only on delivered orders"]})
        if self.commission_credited:
            raise ValidationError({"commission_credited": ["Commission was already credited"]})

        at = at or datetime.now(UTC)
        self.commission_credited = True
        payment = CommissionPayment(
            creator_id=self.creator_id,
            amount=self.total_creator_commission,
            currency=self.pricing.currency if self.pricing else "BRL",
            status=CommissionPaymentStatus.PENDING.value,
        )
        self.add_commission_payments(payment)
        self.raise_(
            CommissionAccrued(
                order_id=str(self.id),
                order_number=self.order_number,
                creator_id=str(self.creator_id),
                amount=payment.amount,
                currency=payment.currency,
                accrued_at=at,
            )
        )
        return payment

    @property
    def has_pending_commission(self) -> bool:
        return any(p.status == CommissionPaymentStatus.PENDING.value for p in self.commission_payments or [])

    def mark_commission_processing(self, payout_method: str, at: datetime | None = None) -> float:
        """Move pending commission payments to processing. Returns the amount moved."""
        at = at or datetime.now(UTC)
        moved = 0.0
        for payment in self.commission_payments or []:
            if payment.status == CommissionPaymentStatus.PENDING.value:
                payment.status = CommissionPaymentStatus.PROCESSING.value
                payment.payout_method = payout_method
                payment.requested_at = at
                payment.notes = f"Payout requested at {at.isoformat()}"
                moved += payment.amount
        return moved

    @property
    def sales_amount(self) -> float:
        return self.pricing.grand_total if self.pricing else 0.0
