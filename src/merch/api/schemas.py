"""Pydantic API schemas for the Merch domain.

These are the external API contracts, kept separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    provider_sku: str
    provider_variant_id: str | None = None
    title: str
    variant_label: str | None = None
    quantity: int = Field(default=1, ge=1)
    base_cost: float = Field(ge=0)  # per copy
    selling_price: float = Field(ge=0)  # per copy
    shipping_cost: float = 0.0


class ShippingAddressRequest(BaseModel):
    name: str
    line1: str
    line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country_code: str = "BR"
    country: str | None = None
    email: str | None = None
    phone: str | None = None


class PricingRequest(BaseModel):
    subtotal: float
    shipping_total: float = 0.0
    tax_total: float = 0.0
    discount_total: float = 0.0
    grand_total: float
    currency: str = "BRL"


class CreateOrderRequest(BaseModel):
    customer_id: str
    customer_email: str | None = None
    customer_name: str | None = None
    creator_id: str
    creator_email: str | None = None
    creator_name: str | None = None
    items: list[OrderItemRequest]
    shipping_address: ShippingAddressRequest
    pricing: PricingRequest
    commission_rate: float | None = Field(default=None, ge=0, le=100)
    shipping_method: str | None = None
    order_number: str | None = None


class RecordPaymentRequest(BaseModel):
    paid_at: datetime | None = None


class ProviderAcceptanceRequest(BaseModel):
    provider_order_id: str
    external_item_ids: dict[str, str] = {}
    provider_status: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = None


class PayoutDetailsRequest(BaseModel):
    payout_method: str
    pix_key: str | None = None
    bank_account: str | None = None
    bank_agency: str | None = None
    bank_name: str | None = None
    paypal_email: str | None = None


class QuoteItemRequest(BaseModel):
    sku: str
    copies: int = Field(default=1, ge=1)
    attributes: dict[str, str] | None = None


class QuoteRequest(BaseModel):
    items: list[QuoteItemRequest] = Field(min_length=1)
    destination_country_code: str = "BR"
    category: str | None = None
    margin_percent: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class OrderCreatedResponse(BaseModel):
    order_id: str
    order_number: str
    status: str = "pending"


class CallbackResponse(BaseModel):
    received: bool = True
    handled: bool = False
    order_number: str | None = None
    previous_status: str | None = None
    new_status: str | None = None
    credited: bool = False
    error: str | None = None


class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    provider_sku: str
    title: str
    quantity: int
    unit_cost: float
    unit_price: float
    base_cost: float
    selling_price: float
    profit: float
    creator_commission: float
    platform_fee: float
    status: str
    external_item_id: str | None = None
    asset_status: str | None = None


class ShipmentResponse(BaseModel):
    provider_shipment_id: str
    status: str
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    dispatch_date: datetime | None = None
    item_ids: list[str] = []


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    provider_order_id: str | None = None
    customer_id: str
    creator_id: str
    status: str
    payment_status: str
    provider_status: str | None = None
    grand_total: float
    currency: str
    commission_rate: float
    total_creator_commission: float
    total_platform_fee: float
    commission_credited: bool
    items: list[OrderItemResponse]
    shipments: list[ShipmentResponse]
    paid_at: datetime | None = None
    sent_to_production_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None


class PeriodStatsResponse(BaseModel):
    days: int
    orders: int
    sales: float
    commission: float


class MonthlyRollupResponse(BaseModel):
    month: str
    orders: int
    sales: float
    commission: float


class TopProductResponse(BaseModel):
    product_id: str
    title: str
    units_sold: int
    revenue: float
    commission: float


class MaskedPayoutDetailsResponse(BaseModel):
    method: str | None = None
    pix_key: str | None = None
    bank_account: str | None = None
    bank_name: str | None = None
    paypal_email: str | None = None
    last_payout_date: datetime | None = None


class EarningsResponse(BaseModel):
    creator_id: str
    total_earnings: float
    pending_earnings: float
    paid_earnings: float
    available_for_payout: float
    total_sales: float
    total_orders: int
    commission_rate: float
    min_payout_amount: float
    can_request_payout: bool
    period: PeriodStatsResponse
    monthly: list[MonthlyRollupResponse]
    top_products: list[TopProductResponse]
    payout_details: MaskedPayoutDetailsResponse


class PayoutResponse(BaseModel):
    creator_id: str
    amount: float
    payout_method: str
    requested_at: datetime
    orders_settled: int


class DeliveryEstimateResponse(BaseModel):
    min_days: int
    max_days: int
    earliest: date
    latest: date


class QuoteOptionResponse(BaseModel):
    shipping_method: str
    shipping_method_label: str
    items_cost: float
    shipping_cost: float
    total_cost: float
    suggested_items_price: float
    suggested_shipping_charge: float
    suggested_total: float
    profit: float
    profit_margin_percent: float
    delivery: DeliveryEstimateResponse


class QuoteResponse(BaseModel):
    currency: str
    destination_country_code: str
    margin_percent: float
    quotes: list[QuoteOptionResponse]
    cheapest_option: str | None = None
    fastest_option: str
    recommended_option: str
