"""Checkout workflow: cart → order → payment, one step at a time.

Each step is a separate command, committed in its own unit of work:

    BeginCheckout      claim the cart (persisted token)
    PlaceOrder         durable PENDING order from the frozen snapshot
    ChargeOrder        one Payment per attempt, outcome persisted
    ChangeOrderStatus  PENDING → CONFIRMED, only when the payment completed
    CheckOutCart       only when the payment completed: take the order's
                       lines out of the cart and release the claim
    EndCheckout        release the claim unless the cart was checked out
                       or the payment is still processing

There is no distributed transaction and nothing is rolled back: a failed
payment leaves a PENDING order and an untouched cart, and the customer
retries the payment on the same order. The whole sequence runs while the
in-process CheckoutGuard holds the cart, so a concurrent attempt on the
same cart fails fast instead of producing a second order.
"""

import json
from contextlib import ExitStack
from dataclasses import dataclass
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.addresses import get_address_book
from ordering.cart.cart import ShoppingCart
from ordering.cart.management import BeginCheckout, CheckOutCart, EndCheckout
from ordering.checkout.guard import CheckoutGuard, default_guard
from ordering.checkout.pricing import compute_totals
from ordering.checkout.snapshot import snapshot_cart
from ordering.config import CheckoutSettings, get_settings
from ordering.exceptions import AccessDeniedError, CheckoutInProgressError, PaymentError
from ordering.gateway.port import CardDetails
from ordering.order.creation import PlaceOrder
from ordering.order.order import Order, OrderStatus, ShippingMethod
from ordering.order.queries import find_by_idempotency_key, get_order
from ordering.order.status import ChangeOrderStatus
from ordering.payment.charge import charge, validate_payment_method
from ordering.payment.payment import MAX_PAYMENT_ATTEMPTS, Payment, PaymentStatus
from ordering.payment.queries import get_payment, latest_payment
from ordering.payment.reconciliation import ReconcilePayment

logger = structlog.get_logger(__name__)

PROCESSING_MESSAGE = "Your payment is being processed. We will confirm your order shortly."
CLOSED_ORDER_MESSAGE = "The payment completed on an order that is no longer open. A refund is required."


@dataclass(frozen=True)
class CheckoutRequest:
    customer_id: str
    cart_id: str
    shipping_method: str
    payment_method: str
    address_id: str | None = None
    card_details: CardDetails | None = None
    customer_notes: str | None = None
    idempotency_key: str | None = None
    client_total: int | None = None  # advisory only


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    order_number: str
    status: str
    payment_id: str | None
    payment_status: str | None
    total: int
    currency: str
    message: str | None = None
    retryable: bool = False
    replayed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value


def _result_for(order: Order, payment: Payment | None, message=None, retryable=False, replayed=False):
    return CheckoutResult(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        payment_id=str(payment.id) if payment else None,
        payment_status=payment.status if payment else None,
        total=order.totals.total,
        currency=order.totals.currency,
        message=message,
        retryable=retryable,
        replayed=replayed,
    )


class CheckoutWorkflow:
    def __init__(self, guard: CheckoutGuard | None = None, settings: CheckoutSettings | None = None) -> None:
        self.guard = guard or default_guard()
        self.settings = settings

    @property
    def _settings(self) -> CheckoutSettings:
        return self.settings or get_settings()

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """Turn the customer's cart into a paid order.

        Returns the result for COMPLETED and still-processing payments.
        Raises PaymentError (carrying the PENDING order's id) when the
        payment failed, and the validation errors of each step before
        anything is written.
        """
        log = logger.bind(customer_id=str(request.customer_id), cart_id=str(request.cart_id))

        with self.guard.hold(request.cart_id):
            replay = self._replay(request)
            if replay is not None:
                log.info("checkout_replayed", order_id=replay.order_id)
                return replay

            cart = current_domain.repository_for(ShoppingCart).get(str(request.cart_id))
            if str(cart.customer_id) != str(request.customer_id):
                raise AccessDeniedError("This cart belongs to another customer")
            if cart.checkout_in_progress(ttl_seconds=self._settings.checkout_lock_ttl):
                raise CheckoutInProgressError(str(cart.id))

            snapshot = snapshot_cart(cart)
            method = self._validate_shipping(request)
            validate_payment_method(request.payment_method, request.card_details)
            totals = compute_totals(snapshot, method, self._settings)

            if request.client_total is not None and request.client_total != totals.total:
                log.info("client_total_ignored", client_total=request.client_total, total=totals.total)

            token = uuid4().hex
            current_domain.process(
                BeginCheckout(
                    cart_id=str(cart.id),
                    token=token,
                    ttl_seconds=self._settings.checkout_lock_ttl,
                ),
                asynchronous=False,
            )

            keep_claim = False
            try:
                order_id = current_domain.process(
                    PlaceOrder(
                        customer_id=str(request.customer_id),
                        cart_id=str(cart.id),
                        address_id=request.address_id if method.requires_address else None,
                        shipping_method=method.value,
                        lines=snapshot.lines_json(),
                        subtotal=totals.subtotal,
                        shipping=totals.shipping,
                        tax=totals.tax,
                        total=totals.total,
                        currency=totals.currency,
                        customer_notes=request.customer_notes,
                        idempotency_key=request.idempotency_key,
                        checkout_token=token,
                    ),
                    asynchronous=False,
                )
                log = log.bind(order_id=order_id)
                log.info("order_placed", total=totals.total, lines=snapshot.line_count)

                order = get_order(order_id)
                payment = charge(
                    order_id,
                    order.totals.total,
                    request.payment_method,
                    card_details=request.card_details,
                )

                if PaymentStatus(payment.status) is PaymentStatus.PENDING:
                    # The cart stays claimed until reconciliation settles the payment
                    keep_claim = True
                    log.info("checkout_payment_processing", payment_id=str(payment.id))
                    return _result_for(get_order(order_id), payment, message=PROCESSING_MESSAGE)

                keep_claim = self._complete(order_id, str(cart.id), token=token)
                log.info("checkout_completed", payment_id=str(payment.id))
                return _result_for(get_order(order_id), payment)
            except PaymentError as exc:
                log.warning("checkout_payment_failed", payment_id=exc.payment_id, retryable=exc.retryable)
                raise
            finally:
                if not keep_claim:
                    current_domain.process(
                        EndCheckout(cart_id=str(cart.id), token=token),
                        asynchronous=False,
                    )

    def _replay(self, request: CheckoutRequest) -> CheckoutResult | None:
        order = find_by_idempotency_key(request.customer_id, request.idempotency_key)
        if order is None:
            return None

        payment = latest_payment(order.id)
        if payment is not None and PaymentStatus(payment.status) is PaymentStatus.FAILED:
            raise PaymentError(
                "A previous attempt with this key failed; retry the payment on the existing order",
                order_id=str(order.id),
                payment_id=str(payment.id),
                retryable=True,
            )
        message = PROCESSING_MESSAGE if payment and not payment.is_settled else None
        return _result_for(order, payment, message=message, replayed=True)

    def _validate_shipping(self, request: CheckoutRequest) -> ShippingMethod:
        try:
            method = ShippingMethod(request.shipping_method)
        except ValueError as exc:
            raise ValidationError(
                {"shipping_method": [f"Unknown shipping method {request.shipping_method!r}"]}
            ) from exc

        if not method.requires_address:
            return method
        if not request.address_id:
            raise ValidationError({"address_id": [f"An address is required for {method.value} orders"]})
        if not get_address_book().exists(str(request.address_id), str(request.customer_id)):
            raise ValidationError({"address_id": ["Address not found for this customer"]})
        return method

    def _complete(self, order_id: str, cart_id: str | None, token: str | None = None) -> bool:
        """Confirm a paid order and take the lines it bought out of its source cart.

        Returns True when the checkout claim held by ``token`` went with it.
        """
        current_domain.process(
            ChangeOrderStatus(
                order_id=order_id,
                new_status=OrderStatus.CONFIRMED.value,
                expected_status=OrderStatus.PENDING.value,
            ),
            asynchronous=False,
        )
        if not cart_id:
            return False

        order = get_order(order_id)
        lines = [{"product_id": str(line.product_id), "quantity": line.quantity} for line in order.lines]
        current_domain.process(
            CheckOutCart(cart_id=cart_id, order_id=order_id, lines=json.dumps(lines), token=token),
            asynchronous=False,
        )
        return token is not None

    # -------------------------------------------------------------------
    # Payment retry
    # -------------------------------------------------------------------
    def retry_payment(self, customer_id, order_id, payment_method, card_details: CardDetails | None = None):
        """Charge a PENDING order again after a failed attempt.

        The source cart is held for the duration as well, so a checkout
        of that cart cannot run while the retry is taking lines out of it.
        """
        with ExitStack() as held:
            held.enter_context(self.guard.hold(f"order:{order_id}"))
            order = get_order(order_id)
            if str(order.customer_id) != str(customer_id):
                raise AccessDeniedError("This order belongs to another customer")
            if OrderStatus(order.status) is not OrderStatus.PENDING:
                raise ValidationError({"order_id": [f"Only PENDING orders can be paid; order is {order.status}"]})

            if order.cart_id:
                held.enter_context(self.guard.hold(str(order.cart_id)))
                cart = current_domain.repository_for(ShoppingCart).get(str(order.cart_id))
                if cart.checkout_in_progress(ttl_seconds=self._settings.checkout_lock_ttl):
                    raise CheckoutInProgressError(str(cart.id))

            log = logger.bind(customer_id=str(customer_id), order_id=str(order.id))
            try:
                payment = charge(order.id, order.totals.total, payment_method, card_details=card_details)
            except PaymentError as exc:
                log.warning("payment_retry_failed", payment_id=exc.payment_id, retryable=exc.retryable)
                raise

            if PaymentStatus(payment.status) is PaymentStatus.PENDING:
                return _result_for(get_order(order.id), payment, message=PROCESSING_MESSAGE)

            self._complete(str(order.id), order.cart_id)
            log.info("payment_retry_completed", payment_id=str(payment.id), attempt=payment.attempt_number)
            return _result_for(get_order(order.id), payment)

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def reconcile_payment(self, payment_id, gateway_status, gateway_reference=None) -> CheckoutResult:
        """Settle a payment the gateway left processing.

        Runs while the order's source cart is held, so the lines a paid
        order bought are never taken out under a checkout in flight.
        """
        order = get_order(get_payment(payment_id).order_id)
        with ExitStack() as held:
            if order.cart_id:
                held.enter_context(self.guard.hold(str(order.cart_id)))

            outcome = current_domain.process(
                ReconcilePayment(
                    payment_id=str(payment_id),
                    gateway_status=gateway_status,
                    gateway_reference=gateway_reference,
                ),
                asynchronous=False,
            )
            payment = get_payment(payment_id)
            order = get_order(payment.order_id)
            log = logger.bind(payment_id=str(payment.id), order_id=str(order.id))

            if outcome == PaymentStatus.COMPLETED.value:
                if OrderStatus(order.status) is not OrderStatus.PENDING:
                    self._release_claim(order)
                    log.error("payment_completed_on_closed_order", order_status=order.status)
                    return _result_for(order, payment, message=CLOSED_ORDER_MESSAGE)

                self._complete(str(order.id), order.cart_id, token=order.checkout_token)
                log.info("payment_reconciled", outcome=outcome)
                return _result_for(get_order(order.id), payment)

            if outcome == PaymentStatus.FAILED.value:
                self._release_claim(order)
                log.info("payment_reconciled", outcome=outcome)
                return _result_for(
                    order,
                    payment,
                    message="The payment was not completed",
                    retryable=payment.attempt_number < MAX_PAYMENT_ATTEMPTS,
                )
            return _result_for(order, payment, message=PROCESSING_MESSAGE)

    def _release_claim(self, order: Order) -> None:
        """Release the cart claim taken by the checkout that placed ``order``, if it still holds it."""
        if not order.cart_id or not order.checkout_token:
            return
        current_domain.process(
            EndCheckout(cart_id=str(order.cart_id), token=order.checkout_token),
            asynchronous=False,
        )
