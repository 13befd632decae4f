"""Tests for the Order aggregate: creation, payment, provider facts and commission."""

import json
import re
from datetime import UTC, datetime

import pytest
from merch.order.events import OrderCreated
from merch.order.order import (
    AssetStatus,
    CommissionPaymentStatus,
    ItemStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    generate_order_number,
)
from protean.exceptions import ValidationError


def _item(**overrides):
    data = {
        "product_id": "prod-001",
        "provider_sku": "GLOBAL-CAN-10X10",
        "title": "Sunset Canvas",
        "quantity": 1,
        "base_cost": 60.0,
        "selling_price": 150.0,
    }
    data.update(overrides)
    return data


def _make_order(items=None, commission_rate=70.0, **kwargs):
    return Order.create(
        customer_id="cust-001",
        creator_id="creator-001",
        items_data=items or [_item()],
        shipping_address={
            "name": "Maria Silva",
            "line1": "Rua das Flores, 100",
            "city": "São Paulo",
            "postal_code": "01000-000",
            "country_code": "BR",
        },
        pricing={"subtotal": 150.0, "shipping_total": 20.0, "grand_total": 170.0},
        commission_rate=commission_rate,
        **kwargs,
    )


def _accepted_order(items=None):
    order = _make_order(items=items)
    order.record_provider_acceptance("ord_1001")
    return order


class TestOrderCreation:
    def test_new_order_is_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.commission_credited is False

    def test_commission_is_captured_per_item(self):
        order = _make_order()
        item = order.items[0]
        assert item.profit == 90.0
        assert item.creator_commission == 63.0
        assert item.platform_fee == 27.0

    def test_order_totals_sum_items(self):
        order = _make_order(
            items=[
                _item(),
                _item(product_id="prod-002", provider_sku="GLOBAL-MUG-11OZ", base_cost=30.0, selling_price=80.0),
            ]
        )
        assert order.total_creator_commission == 98.0
        assert order.total_platform_fee == 42.0

    def test_quantity_multiplies_line_commission(self):
        order = _make_order(items=[_item(quantity=2)])
        assert order.items[0].creator_commission == 126.0
        assert order.total_creator_commission == 126.0

    @pytest.mark.parametrize("quantity", [1, 2, 3, 7])
    def test_line_totals_conserve_profit(self, quantity):
        item = _make_order(items=[_item(quantity=quantity, base_cost=33.33, selling_price=99.99)]).items[0]
        assert item.unit_price == 99.99
        assert item.unit_cost == 33.33
        assert item.selling_price == round(99.99 * quantity, 2)
        assert item.base_cost == round(33.33 * quantity, 2)
        assert round(item.creator_commission + item.platform_fee, 2) == round(item.selling_price - item.base_cost, 2)
        assert item.profit == round(item.selling_price - item.base_cost, 2)

    def test_two_copies_store_line_totals(self):
        item = _make_order(items=[_item(quantity=2)]).items[0]
        assert (item.selling_price, item.base_cost) == (300.0, 120.0)
        assert (item.profit, item.creator_commission, item.platform_fee) == (180.0, 126.0, 54.0)
        assert item.creator_commission + item.platform_fee == item.selling_price - item.base_cost

    def test_loss_line_is_kept_with_negative_commission(self):
        order = _make_order(items=[_item(base_cost=60.0, selling_price=50.0)])
        assert order.items[0].profit == -10.0
        assert order.total_creator_commission == -7.0

    def test_order_needs_items(self):
        with pytest.raises(ValidationError) as exc:
            Order.create(
                customer_id="cust-001",
                creator_id="creator-001",
                items_data=[],
                shipping_address={
                    "name": "A",
                    "line1": "B",
                    "city": "C",
                    "postal_code": "D",
                    "country_code": "BR",
                },
                pricing={"grand_total": 0.0},
                commission_rate=70.0,
            )
        assert "items" in exc.value.messages

    def test_explicit_order_number_is_kept(self):
        order = _make_order(order_number="POD-FIXED-0001")
        assert order.order_number == "POD-FIXED-0001"

    def test_creation_raises_order_created(self):
        order = _make_order()
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderCreated)
        assert event.total_creator_commission == 63.0
        assert json.loads(event.items)[0]["provider_sku"] == "GLOBAL-CAN-10X10"

    def test_sales_amount_is_grand_total(self):
        assert _make_order().sales_amount == 170.0


class TestOrderNumber:
    def test_format(self):
        number = generate_order_number(datetime(2024, 5, 1, tzinfo=UTC))
        assert re.fullmatch(r"POD-[0-9A-Z]+-[0-9A-Z]{4}", number)

    def test_numbers_differ(self):
        now = datetime(2024, 5, 1, tzinfo=UTC)
        assert len({generate_order_number(now) for _ in range(20)}) > 1


class TestPayment:
    def test_payment_confirms_pending_order(self):
        order = _make_order()
        paid_at = datetime(2024, 5, 1, 9, tzinfo=UTC)
        order.record_payment(at=paid_at)
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.paid_at == paid_at
        assert order.status == OrderStatus.CONFIRMED.value

    def test_payment_does_not_move_order_past_pending(self):
        order = _make_order()
        order.transition_to(OrderStatus.IN_PRODUCTION)
        order.record_payment()
        assert order.status == OrderStatus.IN_PRODUCTION.value

    def test_double_payment_is_rejected(self):
        order = _make_order()
        order.record_payment()
        with pytest.raises(ValidationError):
            order.record_payment()

    def test_payment_of_cancelled_order_is_rejected(self):
        order = _make_order()
        order.cancel()
        with pytest.raises(ValidationError):
            order.record_payment()


class TestProviderAcceptance:
    def test_provider_order_id_is_stored(self):
        order = _accepted_order()
        assert order.provider_order_id == "ord_1001"

    def test_same_id_again_is_a_noop(self):
        order = _accepted_order()
        order._events.clear()
        order.record_provider_acceptance("ord_1001")
        assert order._events == []

    def test_provider_order_id_is_write_once(self):
        order = _accepted_order()
        with pytest.raises(ValidationError):
            order.record_provider_acceptance("ord_2002")
        assert order.provider_order_id == "ord_1001"

    def test_external_item_ids_are_mapped_by_sku(self):
        order = _make_order()
        order.record_provider_acceptance("ord_1001", external_item_ids={"GLOBAL-CAN-10X10": "itm_1"})
        assert order.items[0].external_item_id == "itm_1"

    def test_external_item_ids_are_mapped_by_item_id(self):
        order = _make_order()
        item_id = str(order.items[0].id)
        order.record_provider_acceptance("ord_1001", external_item_ids={item_id: "itm_9"})
        assert order.items[0].external_item_id == "itm_9"

    def test_unknown_item_key_is_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.record_provider_acceptance("ord_1001", external_item_ids={"NOPE": "itm_1"})
        assert order.provider_order_id is None


class TestShipments:
    def test_new_shipment_is_added(self):
        order = _accepted_order()
        order.upsert_shipment("shp_1", status="shipped", carrier="Correios", tracking_number="BR123")
        assert len(order.shipments) == 1
        shipment = order.shipments[0]
        assert shipment.carrier == "Correios"
        assert shipment.tracking_number == "BR123"

    def test_same_provider_shipment_id_is_merged(self):
        order = _accepted_order()
        order.upsert_shipment("shp_1", status="shipped", carrier="Correios", tracking_number="BR123")
        order.upsert_shipment("shp_1", status="delivered")
        assert len(order.shipments) == 1
        shipment = order.shipments[0]
        assert shipment.status == "delivered"
        assert shipment.carrier == "Correios"
        assert shipment.tracking_number == "BR123"

    def test_merged_shipment_takes_newer_tracking(self):
        order = _accepted_order()
        order.upsert_shipment("shp_1", status="shipped", tracking_number="BR123")
        order.upsert_shipment("shp_1", status="shipped", tracking_number="BR999")
        assert order.shipments[0].tracking_number == "BR999"

    def test_shipped_items_move_individually(self):
        order = _accepted_order(
            items=[
                _item(),
                _item(product_id="prod-002", provider_sku="GLOBAL-MUG-11OZ", base_cost=30.0, selling_price=80.0),
            ]
        )
        order.items[0].external_item_id = "itm_1"
        order.items[1].external_item_id = "itm_2"
        order.upsert_shipment("shp_1", status="shipped", item_ids=["itm_1"])
        statuses = {item.external_item_id: item.status for item in order.items}
        assert statuses == {"itm_1": ItemStatus.SHIPPED.value, "itm_2": ItemStatus.PENDING.value}

    def test_item_ids_are_stored_as_json(self):
        order = _accepted_order()
        order.upsert_shipment("shp_1", status="shipped", item_ids=["itm_1", "itm_2"])
        assert json.loads(order.shipments[0].item_ids) == ["itm_1", "itm_2"]

    def test_upsert_reports_whether_shipment_is_new(self):
        order = _accepted_order()
        order._events.clear()
        order.upsert_shipment("shp_1", status="shipped")
        order.upsert_shipment("shp_1", status="in_transit")
        assert [event.is_new for event in order._events] == [True, False]


class TestProviderCostsAndItems:
    def test_provider_costs_are_replaced(self):
        order = _accepted_order()
        order.replace_provider_costs(subtotal=20.0, shipping_total=5.0, currency="GBP")
        order.replace_provider_costs(subtotal=22.5, shipping_total=6.0, currency="GBP")
        assert order.provider_costs.subtotal == 22.5
        assert order.provider_costs.shipping_total == 6.0

    def test_item_report_matches_by_sku_and_stores_external_id(self):
        order = _accepted_order()
        item = order.update_item_from_provider(external_item_id="itm_1", sku="GLOBAL-CAN-10X10", asset_status="complete")
        assert item == order.items[0]
        assert item.external_item_id == "itm_1"
        assert item.asset_status == AssetStatus.COMPLETE.value

    def test_item_report_for_unknown_item_returns_none(self):
        order = _accepted_order()
        assert order.update_item_from_provider(external_item_id="itm_x", sku="UNKNOWN") is None


class TestCommissionAccrual:
    def test_accrual_requires_delivery(self):
        order = _accepted_order()
        with pytest.raises(ValidationError):
            order.accrue_commission()

    def test_accrual_flags_order_and_opens_payment(self):
        order = _accepted_order()
        order.transition_to(OrderStatus.DELIVERED)
        payment = order.accrue_commission()
        assert order.commission_credited is True
        assert payment.amount == 63.0
        assert payment.status == CommissionPaymentStatus.PENDING.value

    def test_accrual_happens_only_once(self):
        order = _accepted_order()
        order.transition_to(OrderStatus.DELIVERED)
        order.accrue_commission()
        with pytest.raises(ValidationError):
            order.accrue_commission()
        assert len(order.commission_payments) == 1

    def test_payout_moves_pending_commission_to_processing(self):
        order = _accepted_order()
        order.transition_to(OrderStatus.DELIVERED)
        order.accrue_commission()
        at = datetime(2024, 6, 1, tzinfo=UTC)
        moved = order.mark_commission_processing("pix", at=at)
        payment = order.commission_payments[0]
        assert moved == 63.0
        assert payment.status == CommissionPaymentStatus.PROCESSING.value
        assert payment.payout_method == "pix"
        assert payment.notes == f"Payout requested at {at.isoformat()}"

    def test_second_payout_moves_nothing(self):
        order = _accepted_order()
        order.transition_to(OrderStatus.DELIVERED)
        order.accrue_commission()
        order.mark_commission_processing("pix")
        assert order.mark_commission_processing("pix") == 0.0
