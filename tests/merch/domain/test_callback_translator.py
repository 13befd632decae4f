"""Tests for decoding provider callbacks into order patches."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from merch.callbacks.translator import (
    IgnoredCallback,
    OrderCallback,
    parse_callback_type,
    target_for_stage,
    translate,
    translate_charges,
    translate_items,
    translate_shipments,
)
from merch.errors import MalformedCallback
from merch.order.order import OrderStatus


def _payload(stage="InProgress", details=None, subject="ord_1001", **order_fields):
    order = {"id": subject, "status": {"stage": stage, "details": details or {}}}
    order.update(order_fields)
    return {
        "type": f"com.prodigi.order.status.stage.changed#{stage}",
        "subject": subject,
        "time": "2024-05-01T10:00:00Z",
        "data": {"order": order},
    }


class TestParseCallbackType:
    def test_vendor_prefix_and_value_are_split(self):
        parsed = parse_callback_type("com.prodigi.order.status.stage.changed#InProgress")
        assert parsed.entity == "order"
        assert parsed.field_path == ("status", "stage", "changed")
        assert parsed.new_value == "InProgress"

    def test_type_without_value(self):
        parsed = parse_callback_type("order.shipments.updated")
        assert parsed.entity == "order"
        assert parsed.new_value is None

    @pytest.mark.parametrize("raw", ["", "   ", None, "#Complete"])
    def test_unparseable_types_are_malformed(self, raw):
        with pytest.raises(MalformedCallback):
            parse_callback_type(raw)


class TestStageMapping:
    @pytest.mark.parametrize(
        "stage,details,expected",
        [
            ("InProgress", {}, OrderStatus.PROCESSING),
            ("InProgress", {"inProduction": "NotStarted"}, OrderStatus.PROCESSING),
            ("InProgress", {"inProduction": "InProgress"}, OrderStatus.IN_PRODUCTION),
            ("InProgress", {"inProduction": "Complete"}, OrderStatus.IN_PRODUCTION),
            ("InProgress", {"inProduction": "Complete", "shipping": "InProgress"}, OrderStatus.SHIPPED),
            ("InProgress", {"shipping": "Complete"}, OrderStatus.SHIPPED),
            ("Complete", {}, OrderStatus.DELIVERED),
            ("Cancelled", {}, OrderStatus.CANCELLED),
            ("OnHold", {}, None),
            (None, {}, None),
        ],
    )
    def test_target_for_stage(self, stage, details, expected):
        assert target_for_stage(stage, details) == expected


class TestTranslate:
    def test_order_callback_carries_patch(self):
        result = translate(_payload(details={"inProduction": "InProgress"}))
        assert isinstance(result, OrderCallback)
        patch = result.patch
        assert patch.provider_order_id == "ord_1001"
        assert patch.provider_status == "InProgress"
        assert patch.target_status == OrderStatus.IN_PRODUCTION
        assert patch.mark_sent_to_production is True
        assert patch.occurred_at == datetime(2024, 5, 1, 10, tzinfo=UTC)

    def test_not_started_production_is_not_marked_sent(self):
        patch = translate(_payload(details={"inProduction": "NotStarted"})).patch
        assert patch.mark_sent_to_production is False
        assert patch.target_status == OrderStatus.PROCESSING

    def test_missing_production_detail_counts_as_not_started(self):
        patch = translate(_payload(details={"download": "Complete"})).patch
        assert patch.mark_sent_to_production is False

    def test_explicit_provider_order_id_wins(self):
        patch = translate(_payload(), provider_order_id="ord_override").patch
        assert patch.provider_order_id == "ord_override"

    def test_order_id_falls_back_to_snapshot(self):
        payload = _payload()
        del payload["subject"]
        assert translate(payload).patch.provider_order_id == "ord_1001"

    def test_stage_falls_back_to_type_value(self):
        payload = _payload(stage="Complete")
        payload["data"]["order"]["status"] = {}
        assert translate(payload).patch.target_status == OrderStatus.DELIVERED

    def test_non_order_events_are_ignored(self):
        result = translate({"type": "com.prodigi.product.updated", "data": {}})
        assert isinstance(result, IgnoredCallback)
        assert result.callback_type.entity == "product"

    def test_shipped_shipment_bumps_processing_to_shipped(self):
        payload = _payload(shipments=[{"id": "shp_1", "status": "Shipped"}])
        assert translate(payload).patch.target_status == OrderStatus.SHIPPED

    def test_shipped_shipment_does_not_pull_delivered_back(self):
        payload = _payload(stage="Complete", shipments=[{"id": "shp_1", "status": "Shipped"}])
        assert translate(payload).patch.target_status == OrderStatus.DELIVERED

    def test_sections_beside_the_order_snapshot_are_read(self):
        payload = _payload()
        payload["data"]["shipments"] = [{"id": "shp_1", "status": "Processing"}]
        patch = translate(payload).patch
        assert [s.provider_shipment_id for s in patch.shipments] == ["shp_1"]

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "not json",
            {"type": "com.prodigi.order.status.stage.changed#InProgress", "data": {}},
            {"type": "com.prodigi.order.status.stage.changed#InProgress", "data": {"order": {"status": {}}}},
            {"data": {"order": {"id": "ord_1"}}},
        ],
    )
    def test_malformed_envelopes(self, payload):
        with pytest.raises(MalformedCallback):
            translate(payload)

    def test_bad_timestamp_is_malformed(self):
        payload = _payload()
        payload["time"] = "yesterday"
        with pytest.raises(MalformedCallback):
            translate(payload)

    def test_shipments_must_be_a_list(self):
        with pytest.raises(MalformedCallback):
            translate(_payload(shipments={"id": "shp_1"}))


class TestShipments:
    def test_full_shipment(self):
        (shipment,) = translate_shipments(
            [
                {
                    "id": "shp_1",
                    "status": "Shipped",
                    "carrier": {"name": "Correios", "service": "SEDEX"},
                    "tracking": {"number": "BR123", "url": "https://track.example/BR123"},
                    "dispatchDate": "2024-05-03T08:00:00+00:00",
                    "items": [{"itemId": "itm_1"}, {"itemId": "itm_2"}],
                    "fulfillmentLocation": {"countryCode": "GB", "labCode": "gb-lab-1"},
                }
            ]
        )
        assert shipment.provider_shipment_id == "shp_1"
        assert shipment.status == "shipped"
        assert shipment.carrier == "Correios"
        assert shipment.service == "SEDEX"
        assert shipment.tracking_number == "BR123"
        assert shipment.tracking_url == "https://track.example/BR123"
        assert shipment.dispatch_date == datetime(2024, 5, 3, 8, tzinfo=UTC)
        assert shipment.item_ids == ("itm_1", "itm_2")
        assert shipment.fulfillment_location == "gb-lab-1"
        assert shipment.is_shipped

    def test_plain_carrier_string(self):
        (shipment,) = translate_shipments([{"id": "shp_1", "carrier": "DHL"}])
        assert shipment.carrier == "DHL"
        assert shipment.service is None

    def test_unknown_status_defaults_to_pending(self):
        (shipment,) = translate_shipments([{"id": "shp_1", "status": "Mystery"}])
        assert shipment.status == "pending"
        assert not shipment.is_shipped

    def test_shipment_without_id_is_malformed(self):
        with pytest.raises(MalformedCallback):
            translate_shipments([{"status": "Shipped"}])


class TestCharges:
    def test_item_and_shipping_charges_are_summed(self):
        charges = translate_charges(
            [
                {"chargeType": "Item", "totalCost": {"amount": "12.50", "currency": "GBP"}},
                {"chargeType": "Item", "totalCost": {"amount": "7.50", "currency": "GBP"}},
                {"chargeType": "Shipping", "totalCost": {"amount": "4.95", "currency": "GBP"}},
            ]
        )
        assert charges.subtotal == Decimal("20.00")
        assert charges.shipping_total == Decimal("4.95")
        assert charges.currency == "GBP"

    def test_zero_subtotal_means_not_priced_yet(self):
        assert translate_charges([{"chargeType": "Item", "totalCost": {"amount": "0", "currency": "GBP"}}]) is None
        assert translate_charges([]) is None

    def test_bad_amount_is_malformed(self):
        with pytest.raises(MalformedCallback):
            translate_charges([{"chargeType": "Item", "totalCost": {"amount": "lots"}}])


class TestItems:
    @pytest.mark.parametrize(
        "provider_status,expected",
        [
            ("Ok", "complete"),
            ("Invalid", "error"),
            ("NotYetDownloaded", "NotYetDownloaded"),
            ("Downloading", "inProgress"),
            (None, None),
        ],
    )
    def test_asset_status_mapping(self, provider_status, expected):
        (item,) = translate_items([{"id": "itm_1", "sku": "GLOBAL-CAN-10X10", "status": provider_status}])
        assert item.asset_status == expected
        assert item.external_item_id == "itm_1"
