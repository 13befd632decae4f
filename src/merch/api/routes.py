"""FastAPI routes for the Merch domain.

Four routers: provider callbacks, orders, creator earnings and quotes.
Long-lived collaborators (locks, ledger, reconciler, quote provider) are
read from ``request.app.state.services``.
"""

import json

from fastapi import APIRouter, Request
from protean.utils.globals import current_domain

from merch.api.schemas import (
    CallbackResponse,
    CreateOrderRequest,
    DeliveryEstimateResponse,
    EarningsResponse,
    MaskedPayoutDetailsResponse,
    MonthlyRollupResponse,
    OrderCreatedResponse,
    OrderItemResponse,
    OrderResponse,
    PayoutDetailsRequest,
    PayoutResponse,
    PeriodStatsResponse,
    ProviderAcceptanceRequest,
    QuoteOptionResponse,
    QuoteRequest,
    QuoteResponse,
    ReasonRequest,
    RecordPaymentRequest,
    ShipmentResponse,
    StatusResponse,
    TopProductResponse,
)
from merch.domain import logger
from merch.errors import MalformedCallback
from merch.order.cancellation import CancelOrder, FailOrder, RefundOrder
from merch.order.creation import CreateOrder
from merch.order.order import Order
from merch.order.payment import RecordPayment
from merch.order.submission import RecordProviderAcceptance
from merch.pricing.quote import margin_for, price_quotes
from merch.provider.port import QuoteLine
from merch.services import Services
from merch.utils.logging import log_context


def get_services(request: Request) -> Services:
    return request.app.state.services


# ---------------------------------------------------------------------------
# Provider Callback Router
# ---------------------------------------------------------------------------
callback_router = APIRouter(prefix="/provider/callbacks", tags=["provider"])


@callback_router.post("", response_model=CallbackResponse, response_model_exclude_none=True)
async def receive_callback(request: Request) -> CallbackResponse:
    """Apply a provider lifecycle callback.

    Always answers 200 so the provider does not keep retrying; problems are
    logged and reported in the body.
    """
    services = get_services(request)
    try:
        payload = await request.json()
        result = services.reconciler.reconcile(None, payload)
    except (MalformedCallback, ValueError) as exc:
        logger.warning("Malformed provider callback", error=str(exc))
        return CallbackResponse(received=True, handled=False)
    except Exception as exc:
        logger.exception("Provider callback failed", error=str(exc))
        return CallbackResponse(received=True, handled=False, error=str(exc))

    return CallbackResponse(
        received=result.accepted,
        handled=result.handled,
        order_number=result.order_number,
        previous_status=result.previous_status,
        new_status=result.new_status,
        credited=result.credited,
    )


@callback_router.get("", response_model=StatusResponse)
async def callback_health() -> StatusResponse:
    """Lets the provider verify the callback URL."""
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        provider_order_id=order.provider_order_id,
        customer_id=str(order.customer_id),
        creator_id=str(order.creator_id),
        status=order.status,
        payment_status=order.payment_status,
        provider_status=order.provider_status,
        grand_total=order.sales_amount,
        currency=order.pricing.currency if order.pricing else "BRL",
        commission_rate=order.commission_rate,
        total_creator_commission=order.total_creator_commission or 0.0,
        total_platform_fee=order.total_platform_fee or 0.0,
        commission_credited=bool(order.commission_credited),
        items=[
            OrderItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                provider_sku=item.provider_sku,
                title=item.title,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
                unit_price=item.unit_price,
                base_cost=item.base_cost,
                selling_price=item.selling_price,
                profit=item.profit or 0.0,
                creator_commission=item.creator_commission or 0.0,
                platform_fee=item.platform_fee or 0.0,
                status=item.status,
                external_item_id=item.external_item_id,
                asset_status=item.asset_status,
            )
            for item in order.items
        ],
        shipments=[
            ShipmentResponse(
                provider_shipment_id=shipment.provider_shipment_id,
                status=shipment.status,
                carrier=shipment.carrier,
                tracking_number=shipment.tracking_number,
                tracking_url=shipment.tracking_url,
                dispatch_date=shipment.dispatch_date,
                item_ids=json.loads(shipment.item_ids) if shipment.item_ids else [],
            )
            for shipment in order.shipments
        ],
        paid_at=order.paid_at,
        sent_to_production_at=order.sent_to_production_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        refunded_at=order.refunded_at,
    )


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
async def create_order(body: CreateOrderRequest, request: Request) -> OrderCreatedResponse:
    """Record a fully-priced order."""
    settings = get_services(request).settings
    commission_rate = body.commission_rate
    if commission_rate is None:
        commission_rate = settings.default_commission_rate

    command = CreateOrder(
        customer_id=body.customer_id,
        customer_email=body.customer_email,
        customer_name=body.customer_name,
        creator_id=body.creator_id,
        creator_email=body.creator_email,
        creator_name=body.creator_name,
        items=json.dumps([item.model_dump() for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        pricing=json.dumps(body.pricing.model_dump()),
        commission_rate=commission_rate,
        shipping_method=body.shipping_method,
        order_number=body.order_number,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderCreatedResponse(order_id=result["order_id"], order_number=result["order_number"])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return _order_response(order)


@order_router.put("/{order_id}/payment", response_model=StatusResponse)
async def record_payment(order_id: str, body: RecordPaymentRequest, request: Request) -> StatusResponse:
    """Record that payment for an order was captured."""
    with get_services(request).order_locks.hold(order_id):
        current_domain.process(RecordPayment(order_id=order_id, paid_at=body.paid_at), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/provider-acceptance", response_model=StatusResponse)
async def record_provider_acceptance(
    order_id: str, body: ProviderAcceptanceRequest, request: Request
) -> StatusResponse:
    """Record the provider's order id once the provider accepts the order."""
    command = RecordProviderAcceptance(
        order_id=order_id,
        provider_order_id=body.provider_order_id,
        external_item_ids=json.dumps(body.external_item_ids),
        provider_status=body.provider_status,
    )
    with get_services(request).order_locks.hold(order_id):
        current_domain.process(command, asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: ReasonRequest, request: Request) -> StatusResponse:
    with get_services(request).order_locks.hold(order_id):
        current_domain.process(CancelOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/refund", response_model=StatusResponse)
async def refund_order(order_id: str, request: Request) -> StatusResponse:
    with get_services(request).order_locks.hold(order_id):
        current_domain.process(RefundOrder(order_id=order_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/fail", response_model=StatusResponse)
async def fail_order(order_id: str, body: ReasonRequest, request: Request) -> StatusResponse:
    with get_services(request).order_locks.hold(order_id):
        current_domain.process(FailOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Creator Earnings Router
# ---------------------------------------------------------------------------
creator_router = APIRouter(prefix="/creators", tags=["creators"])


@creator_router.get("/{creator_id}/earnings", response_model=EarningsResponse)
async def get_earnings(creator_id: str, request: Request, period: int = 30) -> EarningsResponse:
    """The creator's earnings page. Read-only."""
    summary = get_services(request).ledger.summary(creator_id, period_days=period)
    details = summary.payout_details
    return EarningsResponse(
        creator_id=summary.creator_id,
        total_earnings=float(summary.total_earnings),
        pending_earnings=float(summary.pending_earnings),
        paid_earnings=float(summary.paid_earnings),
        available_for_payout=float(summary.available_for_payout),
        total_sales=float(summary.total_sales),
        total_orders=summary.total_orders,
        commission_rate=summary.commission_rate,
        min_payout_amount=float(summary.min_payout_amount),
        can_request_payout=summary.can_request_payout,
        period=PeriodStatsResponse(
            days=summary.period_days,
            orders=summary.period.orders,
            sales=float(summary.period.sales),
            commission=float(summary.period.commission),
        ),
        monthly=[
            MonthlyRollupResponse(
                month=m.month,
                orders=m.orders,
                sales=float(m.sales),
                commission=float(m.commission),
            )
            for m in summary.monthly
        ],
        top_products=[
            TopProductResponse(
                product_id=p.product_id,
                title=p.title,
                units_sold=p.units_sold,
                revenue=float(p.revenue),
                commission=float(p.commission),
            )
            for p in summary.top_products
        ],
        payout_details=MaskedPayoutDetailsResponse(
            method=details.method,
            pix_key=details.pix_key,
            bank_account=details.bank_account,
            bank_name=details.bank_name,
            paypal_email=details.paypal_email,
            last_payout_date=details.last_payout_date,
        ),
    )


@creator_router.post("/{creator_id}/payouts", status_code=201, response_model=PayoutResponse)
async def request_payout(creator_id: str, request: Request) -> PayoutResponse:
    """Withdraw the creator's whole available balance."""
    receipt = get_services(request).ledger.request_payout(creator_id)
    return PayoutResponse(
        creator_id=receipt.creator_id,
        amount=float(receipt.amount),
        payout_method=receipt.payout_method,
        requested_at=receipt.requested_at,
        orders_settled=receipt.orders_settled,
    )


@creator_router.put("/{creator_id}/payout-details", response_model=StatusResponse)
async def update_payout_details(creator_id: str, body: PayoutDetailsRequest, request: Request) -> StatusResponse:
    details = body.model_dump(exclude={"payout_method"}, exclude_none=True)
    get_services(request).ledger.update_payout_details(creator_id, body.payout_method, details)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Quote Router
# ---------------------------------------------------------------------------
quote_router = APIRouter(prefix="/quotes", tags=["quotes"])


@quote_router.post("", response_model=QuoteResponse)
async def get_quotes(body: QuoteRequest, request: Request) -> QuoteResponse:
    """Provider quotes for every shipping method, cheapest first."""
    services = get_services(request)
    settings = services.settings
    if body.margin_percent is not None:
        margin = body.margin_percent
    elif body.category:
        margin = margin_for(body.category)
    else:
        margin = settings.default_margin

    with log_context(destination_country_code=body.destination_country_code):
        raw_quotes = services.quote_provider.get_quotes(
            [QuoteLine(sku=item.sku, copies=item.copies, attributes=item.attributes) for item in body.items],
            body.destination_country_code,
        )

    sheet = price_quotes(
        raw_quotes,
        margin,
        body.destination_country_code,
        local_currency=settings.local_currency,
        rates=settings.exchange_rates,
    )
    return QuoteResponse(
        currency=sheet.currency,
        destination_country_code=sheet.destination_country_code,
        margin_percent=float(sheet.margin_percent),
        quotes=[
            QuoteOptionResponse(
                shipping_method=q.shipping_method,
                shipping_method_label=q.shipping_method_label,
                items_cost=float(q.items_cost),
                shipping_cost=float(q.shipping_cost),
                total_cost=float(q.total_cost),
                suggested_items_price=float(q.suggested_items_price),
                suggested_shipping_charge=float(q.suggested_shipping_charge),
                suggested_total=float(q.suggested_total),
                profit=float(q.profit),
                profit_margin_percent=float(q.profit_margin_percent),
                delivery=DeliveryEstimateResponse(
                    min_days=q.delivery.min_days,
                    max_days=q.delivery.max_days,
                    earliest=q.delivery.earliest,
                    latest=q.delivery.latest,
                ),
            )
            for q in sheet.quotes
        ],
        cheapest_option=sheet.cheapest_option,
        fastest_option=sheet.fastest_option,
        recommended_option=sheet.recommended_option,
    )
