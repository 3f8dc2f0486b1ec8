"""FastAPI routes for the Ordering domain: carts, checkout, orders, payments
and the staff-only admin order views.

The caller's identity arrives in the ``X-Customer-Id`` header, set by the
authenticating gateway in front of this service.
"""

import os

from fastapi import APIRouter, Header, HTTPException, Response
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CardDetailsSchema,
    CartIdResponse,
    CartLineResponse,
    CartResponse,
    ChangeStatusRequest,
    CheckoutRequest,
    CheckoutResponse,
    ConfigureGatewayRequest,
    CreateCartRequest,
    GatewayConfigResponse,
    ItemIdResponse,
    MoneySchema,
    OrderLineResponse,
    OrderResponse,
    OrderSummaryResponse,
    PaymentResponse,
    ReconcilePaymentRequest,
    RetryPaymentRequest,
    StatusResponse,
    UpdateCartQuantityRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import CreateCart
from ordering.checkout import workflow as checkout_workflow
from ordering.config import get_settings
from ordering.exceptions import AccessDeniedError
from ordering.gateway import get_gateway
from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.port import CardDetails
from ordering.order.cancellation import CancelOrder
from ordering.order.order import CancellationActor, Order, OrderStatus
from ordering.order.queries import get_order, orders_by_status, orders_for_customer
from ordering.order.status import ChangeOrderStatus
from ordering.payment.payment import Payment, PaymentStatus
from ordering.payment.queries import get_payment, payments_for_order

_workflow = checkout_workflow.CheckoutWorkflow()


def _card(schema: CardDetailsSchema | None) -> CardDetails | None:
    if schema is None:
        return None
    return CardDetails(**schema.model_dump())


def _checkout_response(result: checkout_workflow.CheckoutResult, response: Response) -> CheckoutResponse:
    if result.payment_status == PaymentStatus.PENDING.value:
        response.status_code = 202
    return CheckoutResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        status=result.status,
        payment_id=result.payment_id,
        payment_status=result.payment_status,
        total=result.total,
        currency=result.currency,
        message=result.message,
        replayed=result.replayed,
    )


def _cart_response(cart: ShoppingCart) -> CartResponse:
    items = [
        CartLineResponse(
            item_id=str(item.id),
            product_id=str(item.product_id),
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.quantity * item.unit_price,
        )
        for item in cart.items
    ]
    return CartResponse(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id),
        items=items,
        subtotal=sum(item.line_total for item in items),
        checkout_in_progress=cart.checkout_in_progress(ttl_seconds=get_settings().checkout_lock_ttl),
    )


def _order_response(order: Order, internal: bool = True) -> OrderResponse:
    """Full order view. Customers get it without the staff-only internal notes."""
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        cart_id=str(order.cart_id) if order.cart_id else None,
        address_id=str(order.address_id) if order.address_id else None,
        shipping_method=order.shipping_method,
        status=order.status,
        lines=[
            OrderLineResponse(
                product_id=str(line.product_id),
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.lines
        ],
        totals=MoneySchema(
            subtotal=order.totals.subtotal,
            shipping=order.totals.shipping,
            tax=order.totals.tax,
            total=order.totals.total,
            currency=order.totals.currency,
        ),
        customer_notes=order.customer_notes,
        internal_notes=order.internal_notes if internal else None,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        order_id=str(payment.order_id),
        attempt_number=payment.attempt_number,
        method=payment.method,
        amount=payment.amount.amount,
        currency=payment.amount.currency,
        status=payment.status,
        card_last4=payment.card_last4,
        gateway_reference=payment.gateway_reference,
        created_at=payment.created_at,
    )


def _owned_cart(cart_id: str, customer_id: str) -> ShoppingCart:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    if str(cart.customer_id) != customer_id:
        raise AccessDeniedError("This cart belongs to another customer")
    return cart


def _owned_order(order_id: str, customer_id: str) -> Order:
    order = get_order(order_id)
    if str(order.customer_id) != customer_id:
        raise AccessDeniedError("This order belongs to another customer")
    return order


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=CartIdResponse)
async def create_cart(body: CreateCartRequest) -> CartIdResponse:
    result = current_domain.process(CreateCart(customer_id=body.customer_id), asynchronous=False)
    return CartIdResponse(cart_id=result)


@cart_router.get("/{cart_id}", response_model=CartResponse)
async def get_cart(cart_id: str, x_customer_id: str = Header()) -> CartResponse:
    return _cart_response(_owned_cart(cart_id, x_customer_id))


@cart_router.post("/{cart_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_cart_item(cart_id: str, body: AddToCartRequest, x_customer_id: str = Header()) -> ItemIdResponse:
    _owned_cart(cart_id, x_customer_id)
    command = AddToCart(
        cart_id=cart_id,
        product_id=body.product_id,
        quantity=body.quantity,
        unit_price=body.unit_price,
    )
    item_id = current_domain.process(command, asynchronous=False)
    return ItemIdResponse(item_id=item_id)


@cart_router.put("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item_quantity(
    cart_id: str,
    item_id: str,
    body: UpdateCartQuantityRequest,
    x_customer_id: str = Header(),
) -> StatusResponse:
    _owned_cart(cart_id, x_customer_id)
    command = UpdateCartQuantity(
        cart_id=cart_id,
        item_id=item_id,
        new_quantity=body.new_quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{cart_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(cart_id: str, item_id: str, x_customer_id: str = Header()) -> StatusResponse:
    _owned_cart(cart_id, x_customer_id)
    current_domain.process(RemoveFromCart(cart_id=cart_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{cart_id}/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout_cart(
    cart_id: str,
    body: CheckoutRequest,
    response: Response,
    x_customer_id: str = Header(),
    idempotency_key: str | None = Header(default=None),
) -> CheckoutResponse:
    """Convert the cart into an order and charge it.

    201 when the payment completed, 202 when the gateway is still
    processing it, 402 (with the order id) when it failed.
    """
    result = _workflow.checkout(
        checkout_workflow.CheckoutRequest(
            customer_id=x_customer_id,
            cart_id=cart_id,
            shipping_method=body.shipping_method,
            payment_method=body.payment_method,
            address_id=body.address_id,
            card_details=_card(body.card_details),
            customer_notes=body.customer_notes,
            idempotency_key=idempotency_key,
            client_total=body.client_total,
        )
    )
    return _checkout_response(result, response)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _status_filter(status: str | None) -> str | None:
    if status is None:
        return None
    try:
        return OrderStatus(status).value
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown order status {status!r}") from exc


def _order_summaries(orders: list[Order]) -> list[OrderSummaryResponse]:
    return [
        OrderSummaryResponse(
            order_id=str(order.id),
            order_number=order.order_number,
            status=order.status,
            total=order.totals.total,
            currency=order.totals.currency,
            created_at=order.created_at,
        )
        for order in orders
    ]


@order_router.get("", response_model=list[OrderSummaryResponse])
async def list_orders(x_customer_id: str = Header(), status: str | None = None) -> list[OrderSummaryResponse]:
    """The caller's orders, newest first, optionally narrowed to one status."""
    status = _status_filter(status)
    orders = orders_for_customer(x_customer_id)
    if status:
        orders = [o for o in orders if o.status == status]
    return _order_summaries(orders)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_detail(order_id: str, x_customer_id: str = Header()) -> OrderResponse:
    return _order_response(_owned_order(order_id, x_customer_id), internal=False)


@order_router.post("/{order_id}/payments", status_code=201, response_model=CheckoutResponse)
async def retry_payment(
    order_id: str,
    body: RetryPaymentRequest,
    response: Response,
    x_customer_id: str = Header(),
) -> CheckoutResponse:
    """Pay a PENDING order again after a failed attempt."""
    result = _workflow.retry_payment(
        customer_id=x_customer_id,
        order_id=order_id,
        payment_method=body.payment_method,
        card_details=_card(body.card_details),
    )
    return _checkout_response(result, response)


@order_router.get("/{order_id}/payments", response_model=list[PaymentResponse])
async def list_order_payments(order_id: str, x_customer_id: str = Header()) -> list[PaymentResponse]:
    _owned_order(order_id, x_customer_id)
    return [_payment_response(p) for p in payments_for_order(order_id)]


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def change_order_status(order_id: str, body: ChangeStatusRequest) -> OrderResponse:
    """Admin status change. Illegal transitions answer 400."""
    command = ChangeOrderStatus(
        order_id=order_id,
        new_status=body.new_status,
        note=body.note,
        expected_status=body.expected_status,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(get_order(order_id))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest, x_customer_id: str = Header()) -> OrderResponse:
    _owned_order(order_id, x_customer_id)
    command = CancelOrder(
        order_id=order_id,
        reason=body.reason,
        cancelled_by=CancellationActor.CUSTOMER.value,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(get_order(order_id), internal=False)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_router.get("", response_model=list[OrderSummaryResponse])
async def list_orders_by_status(status: str) -> list[OrderSummaryResponse]:
    """Every order in one status, oldest first."""
    return _order_summaries(orders_by_status(_status_filter(status)))


@admin_router.get("/{order_id}", response_model=OrderResponse)
async def get_any_order(order_id: str) -> OrderResponse:
    return _order_response(get_order(order_id))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment_detail(payment_id: str, x_customer_id: str = Header()) -> PaymentResponse:
    payment = get_payment(payment_id)
    if str(payment.customer_id) != x_customer_id:
        raise AccessDeniedError("This payment belongs to another customer")
    return _payment_response(payment)


@payment_router.post("/{payment_id}/reconcile", response_model=CheckoutResponse)
async def reconcile_payment(payment_id: str, body: ReconcilePaymentRequest, response: Response) -> CheckoutResponse:
    """Gateway callback settling a payment that was left processing."""
    result = _workflow.reconcile_payment(
        payment_id=payment_id,
        gateway_status=body.gateway_status,
        gateway_reference=body.gateway_reference,
    )
    return _checkout_response(result, response)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        status=body.status,
        failure_reason=body.failure_reason,
        raise_error=body.raise_error,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        status=gateway.status,
        failure_reason=gateway.failure_reason,
        raise_error=gateway.raise_error,
    )
