"""Translate provider lifecycle callbacks into order patches.

The provider posts CloudEvents-style envelopes::

    {
        "type": "com.prodigi.order.status.stage.changed#InProgress",
        "subject": "ord_829411",
        "time": "2024-05-01T10:00:00Z",
        "data": {"order": {...}, "shipments": [...], "charges": [...], "items": [...]}
    }

``translate`` turns one of these into either an ``OrderCallback`` carrying an
``OrderPatch`` (what to change on the order) or an ``IgnoredCallback`` for
events about anything other than orders. Nothing here touches storage.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from merch.errors import MalformedCallback
from merch.order.order import MAIN_CHAIN, AssetStatus, OrderStatus, ShipmentStatus

_VENDOR_PREFIX = re.compile(r"^com\.[A-Za-z0-9_-]+\.")

# Provider stage -> order status
STAGE_STATUS = {
    "InProgress": OrderStatus.PROCESSING,
    "Complete": OrderStatus.DELIVERED,
    "Cancelled": OrderStatus.CANCELLED,
}

SHIPMENT_STATUS = {
    "Processing": ShipmentStatus.PENDING,
    "Shipped": ShipmentStatus.SHIPPED,
    "InTransit": ShipmentStatus.IN_TRANSIT,
    "Delivered": ShipmentStatus.DELIVERED,
    "Cancelled": ShipmentStatus.EXCEPTION,
    "Failed": ShipmentStatus.EXCEPTION,
}

ASSET_STATUS = {
    "Ok": AssetStatus.COMPLETE,
    "Invalid": AssetStatus.ERROR,
    "NotYetDownloaded": AssetStatus.NOT_YET_DOWNLOADED,
}

_STARTED = {"InProgress", "Complete"}


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CallbackType:
    entity: str
    field_path: tuple[str, ...]
    new_value: str | None = None


@dataclass(frozen=True)
class ShipmentPatch:
    provider_shipment_id: str
    status: str
    carrier: str | None = None
    service: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    dispatch_date: datetime | None = None
    item_ids: tuple[str, ...] = ()
    fulfillment_location: str | None = None

    @property
    def is_shipped(self) -> bool:
        return self.status in (
            ShipmentStatus.SHIPPED.value,
            ShipmentStatus.IN_TRANSIT.value,
            ShipmentStatus.DELIVERED.value,
        )


@dataclass(frozen=True)
class ChargesPatch:
    subtotal: Decimal
    shipping_total: Decimal
    currency: str


@dataclass(frozen=True)
class ItemPatch:
    external_item_id: str | None
    sku: str | None
    asset_status: str | None


@dataclass(frozen=True)
class OrderPatch:
    provider_order_id: str
    provider_status: str | None = None
    target_status: OrderStatus | None = None
    mark_sent_to_production: bool = False
    shipments: tuple[ShipmentPatch, ...] = ()
    charges: ChargesPatch | None = None
    items: tuple[ItemPatch, ...] = ()
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class OrderCallback:
    callback_type: CallbackType
    patch: OrderPatch


@dataclass(frozen=True)
class IgnoredCallback:
    callback_type: CallbackType
    reason: str = field(default="not an order event")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_callback_type(raw: str) -> CallbackType:
    """Split ``[com.<vendor>.]entity.path.to.field[#value]`` into its parts."""
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedCallback({"type": ["Callback type is missing"]})

    path, sep, value = raw.strip().rpartition("#")
    if not sep:
        path, value = value, None
    path = _VENDOR_PREFIX.sub("", path)
    segments = [s for s in path.split(".") if s]
    if not segments:
        raise MalformedCallback({"type": [f"Cannot parse callback type {raw!r}"]})
    return CallbackType(
        entity=segments[0],
        field_path=tuple(segments[1:]),
        new_value=value or None,
    )


def _parse_datetime(value, what: str) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise MalformedCallback({what: [f"Not an ISO timestamp: {value!r}"]}) from exc


def _money(value, what: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise MalformedCallback({what: [f"Not an amount: {value!r}"]}) from exc


def _section(data: dict, order: dict, key: str) -> list:
    # The provider nests these in the order snapshot; some senders put them beside it
    value = order.get(key)
    if value is None:
        value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedCallback({key: ["Expected a list"]})
    return value


def _carrier_fields(raw) -> tuple[str | None, str | None]:
    if isinstance(raw, dict):
        return raw.get("name"), raw.get("service")
    return raw, None


def translate_shipments(raw_shipments: list) -> tuple[ShipmentPatch, ...]:
    patches = []
    for raw in raw_shipments:
        if not isinstance(raw, dict) or not raw.get("id"):
            raise MalformedCallback({"shipments": ["Every shipment needs an id"]})
        carrier, service = _carrier_fields(raw.get("carrier"))
        location = raw.get("fulfillmentLocation")
        if isinstance(location, dict):
            location = location.get("labCode")
        tracking = raw.get("tracking") or {}
        status = SHIPMENT_STATUS.get(raw.get("status"), ShipmentStatus.PENDING)
        patches.append(
            ShipmentPatch(
                provider_shipment_id=str(raw["id"]),
                status=status.value,
                carrier=carrier,
                service=service,
                tracking_number=tracking.get("number"),
                tracking_url=tracking.get("url"),
                dispatch_date=_parse_datetime(raw.get("dispatchDate"), "dispatchDate"),
                item_ids=tuple(str(i.get("itemId")) for i in raw.get("items") or [] if i.get("itemId")),
                fulfillment_location=location,
            )
        )
    return tuple(patches)


def translate_charges(raw_charges: list) -> ChargesPatch | None:
    """Sum ``Item`` and ``Shipping`` charges.

    Returns None when there is nothing to apply: no charges, or an item
    subtotal of zero (the provider has not priced the order yet).
    """
    subtotal = Decimal("0")
    shipping = Decimal("0")
    currency = None
    for charge in raw_charges:
        total_cost = charge.get("totalCost") or {}
        amount = _money(total_cost.get("amount", "0"), "charges")
        currency = currency or total_cost.get("currency")
        if charge.get("chargeType") == "Item":
            subtotal += amount
        elif charge.get("chargeType") == "Shipping":
            shipping += amount
    if subtotal <= 0:
        return None
    return ChargesPatch(subtotal=subtotal, shipping_total=shipping, currency=currency or "GBP")


def translate_items(raw_items: list) -> tuple[ItemPatch, ...]:
    patches = []
    for raw in raw_items:
        status = raw.get("status")
        asset_status = None
        if status is not None:
            asset_status = ASSET_STATUS.get(status, AssetStatus.IN_PROGRESS).value
        patches.append(ItemPatch(external_item_id=raw.get("id"), sku=raw.get("sku"), asset_status=asset_status))
    return tuple(patches)


def target_for_stage(stage: str | None, details: dict) -> OrderStatus | None:
    """Map a provider stage plus its detail flags to an order status."""
    target = STAGE_STATUS.get(stage)
    if target == OrderStatus.PROCESSING:
        if details.get("shipping") in _STARTED:
            return OrderStatus.SHIPPED
        if details.get("inProduction") in _STARTED:
            return OrderStatus.IN_PRODUCTION
    return target


def _later_on_main_chain(candidate: OrderStatus, current: OrderStatus | None) -> bool:
    if current is None:
        return True
    if current not in MAIN_CHAIN:
        return False
    return MAIN_CHAIN.index(candidate) > MAIN_CHAIN.index(current)


def translate(payload: dict, provider_order_id: str | None = None) -> OrderCallback | IgnoredCallback:
    """Decode one callback envelope."""
    if not isinstance(payload, dict):
        raise MalformedCallback({"payload": ["Callback body must be an object"]})

    callback_type = parse_callback_type(payload.get("type"))
    if callback_type.entity != "order":
        return IgnoredCallback(callback_type=callback_type, reason=f"{callback_type.entity} events are not handled")

    data = payload.get("data") or {}
    order = data.get("order")
    if not isinstance(order, dict):
        raise MalformedCallback({"data": ["Order snapshot is missing"]})

    provider_order_id = provider_order_id or payload.get("subject") or order.get("id")
    if not provider_order_id:
        raise MalformedCallback({"subject": ["Provider order id is missing"]})

    status = order.get("status") or {}
    stage = status.get("stage") or callback_type.new_value
    details = status.get("details") or {}

    target = target_for_stage(stage, details)
    mark_sent = stage == "InProgress" and details.get("inProduction", "NotStarted") != "NotStarted"

    shipments = translate_shipments(_section(data, order, "shipments"))
    if any(s.is_shipped for s in shipments) and _later_on_main_chain(OrderStatus.SHIPPED, target):
        target = OrderStatus.SHIPPED

    return OrderCallback(
        callback_type=callback_type,
        patch=OrderPatch(
            provider_order_id=str(provider_order_id),
            provider_status=stage,
            target_status=target,
            mark_sent_to_production=mark_sent,
            shipments=shipments,
            charges=translate_charges(_section(data, order, "charges")),
            items=translate_items(_section(data, order, "items")),
            occurred_at=_parse_datetime(payload.get("time"), "time"),
        ),
    )
