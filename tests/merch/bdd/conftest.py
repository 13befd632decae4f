"""Shared BDD fixtures and step definitions for the Merch domain."""

import pytest
from merch.earnings.earnings import CreatorEarnings
from merch.order.order import Order
from protean import current_domain
from pytest_bdd import given, parsers, then

CREATOR_ID = "creator-bdd"


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


def _new_order(base_cost=60.0, selling_price=150.0, commission_rate=70.0):
    return Order.create(
        customer_id="cust-bdd",
        creator_id=CREATOR_ID,
        items_data=[
            {
                "product_id": "prod-bdd",
                "provider_sku": "GLOBAL-CAN-10X10",
                "title": "BDD Canvas",
                "quantity": 1,
                "base_cost": base_cost,
                "selling_price": selling_price,
            }
        ],
        shipping_address={
            "name": "Maria Silva",
            "line1": "Rua das Flores, 100",
            "city": "São Paulo",
            "postal_code": "01000-000",
            "country_code": "BR",
        },
        pricing={"subtotal": selling_price, "grand_total": selling_price},
        commission_rate=commission_rate,
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse(
        "an order with an item costing {base_cost:f} selling for {selling_price:f} at {rate:f}% commission"
    ),
    target_fixture="order",
)
def priced_order(base_cost, selling_price, rate):
    return _new_order(base_cost=base_cost, selling_price=selling_price, commission_rate=rate)


@given("a pending order", target_fixture="order")
def pending_order():
    order = _new_order()
    current_domain.repository_for(Order).add(order)
    return order


@given(
    parsers.cfparse('a paid order accepted by the provider as "{provider_order_id}"'),
    target_fixture="order",
)
def accepted_order(provider_order_id):
    order = _new_order()
    order.record_payment()
    order.record_provider_acceptance(provider_order_id, external_item_ids={"GLOBAL-CAN-10X10": "itm_bdd"})
    current_domain.repository_for(Order).add(order)
    return order


@given(
    parsers.cfparse("a creator with {total:f} earned, {paid:f} paid and {pending:f} pending"),
    target_fixture="creator_id",
)
def creator_with_balance(total, paid, pending):
    current_domain.repository_for(CreatorEarnings).add(
        CreatorEarnings(
            creator_id=CREATOR_ID,
            total_earnings=total,
            paid_earnings=paid,
            pending_earnings=pending,
        )
    )
    return CREATOR_ID


@given(parsers.cfparse('the creator is paid by pix to "{pix_key}"'))
def creator_paid_by_pix(services, creator_id, pix_key):
    services.ledger.update_payout_details(creator_id, "pix", {"pix_key": pix_key})


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the creator has earned {amount:f}"))
def creator_has_earned(services, amount):
    assert services.ledger.get(CREATOR_ID).total_earnings == amount


@then(parsers.cfparse('the action fails with "{message}"'))
def action_fails(error, message):
    assert error["exc"] is not None
    assert message in str(error["exc"].messages)
