"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. Money is always integer minor units.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CardDetailsSchema(BaseModel):
    number: str = Field(min_length=12, max_length=19)
    holder_name: str = Field(min_length=1, max_length=100)
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int = Field(ge=2000)
    cvv: str = Field(min_length=3, max_length=4)


class MoneySchema(BaseModel):
    subtotal: int
    shipping: int
    tax: int
    total: int
    currency: str


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class CreateCartRequest(BaseModel):
    customer_id: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                }
            ]
        }
    }


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    unit_price: int = Field(ge=0)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=0)


class CheckoutRequest(BaseModel):
    shipping_method: str = Field(examples=["PICKUP", "DELIVERY", "NATIONAL"])
    payment_method: str = Field(examples=["CREDIT_CARD", "YAPE", "CASH"])
    address_id: str | None = None
    card_details: CardDetailsSchema | None = None
    customer_notes: str | None = Field(default=None, max_length=500)
    client_total: int | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_method": "DELIVERY",
                    "payment_method": "CREDIT_CARD",
                    "address_id": "addr-001",
                    "card_details": {
                        "number": "4111111111111111",
                        "holder_name": "Ana Torres",
                        "expiry_month": 12,
                        "expiry_year": 2030,
                        "cvv": "123",
                    },
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order / Payment Request Schemas
# ---------------------------------------------------------------------------
class RetryPaymentRequest(BaseModel):
    payment_method: str
    card_details: CardDetailsSchema | None = None


class ChangeStatusRequest(BaseModel):
    new_status: str
    note: str | None = None
    expected_status: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class ReconcilePaymentRequest(BaseModel):
    gateway_status: str
    gateway_reference: str | None = None


class ConfigureGatewayRequest(BaseModel):
    status: str = "approved"  # approved, pending, declined
    failure_reason: str = "Card declined"
    raise_error: bool = False


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class CartIdResponse(BaseModel):
    cart_id: str


class ItemIdResponse(BaseModel):
    item_id: str


class CartLineResponse(BaseModel):
    item_id: str
    product_id: str
    quantity: int
    unit_price: int
    line_total: int


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str
    items: list[CartLineResponse]
    subtotal: int
    checkout_in_progress: bool


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_id: str | None = None
    payment_status: str | None = None
    total: int
    currency: str
    message: str | None = None
    replayed: bool = False


class OrderLineResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: int
    line_total: int


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    cart_id: str | None = None
    address_id: str | None = None
    shipping_method: str
    status: str
    lines: list[OrderLineResponse]
    totals: MoneySchema
    customer_notes: str | None = None
    internal_notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderSummaryResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    total: int
    currency: str
    created_at: datetime | None = None


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    attempt_number: int
    method: str
    amount: int
    currency: str
    status: str
    card_last4: str | None = None
    gateway_reference: str | None = None
    created_at: datetime | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    status: str
    failure_reason: str
    raise_error: bool


class StatusResponse(BaseModel):
    status: str = "ok"
