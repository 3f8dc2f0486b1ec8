"""Payment orchestration: charge an order's persisted total.

``charge()`` is the only way money is requested from the gateway:

1. The amount to charge must equal the order's persisted total. A mismatch
   is a programming error and stops before the gateway is contacted.
2. Card details are tokenized first; raw card data never enters a command
   or a stored record.
3. The ChargeOrder command records the attempt, calls the gateway and
   persists the outcome in one unit of work. Gateway failures become a
   FAILED payment instead of an exception, so the attempt is always on
   record.
4. A FAILED payment is then surfaced as PaymentError with a message that is
   safe to show the customer.
"""

import re

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.exceptions import AmountMismatchError, PaymentError
from ordering.gateway import get_gateway
from ordering.gateway.port import CardDetails, ChargeRequest, GatewayError
from ordering.order.order import Order, OrderStatus
from ordering.payment.payment import (
    MAX_PAYMENT_ATTEMPTS,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from ordering.payment.queries import payments_for_order

logger = structlog.get_logger(__name__)

DECLINED_MESSAGE = "Your payment was declined. Please check your payment details or try another method."
UNAVAILABLE_MESSAGE = "We could not reach the payment provider. Your order is saved; please try again."
EXHAUSTED_MESSAGE = "This order has reached the maximum number of payment attempts."

_CARD_NUMBER = re.compile(r"^\d{12,19}$")
_CVV = re.compile(r"^\d{3,4}$")


def validate_payment_method(method, card_details: CardDetails | None = None) -> PaymentMethod:
    """Check the method exists and that card details come exactly with card methods."""
    try:
        method = PaymentMethod(method)
    except ValueError as exc:
        raise ValidationError({"payment_method": [f"Unsupported payment method {method!r}"]}) from exc

    if not method.is_card:
        if card_details is not None:
            raise ValidationError({"card_details": ["Card details are only accepted for card payments"]})
        return method

    if card_details is None:
        raise ValidationError({"card_details": [f"Card details are required for {method.value} payments"]})
    if not _CARD_NUMBER.match(card_details.number or ""):
        raise ValidationError({"card_details": ["Card number is invalid"]})
    if not 1 <= int(card_details.expiry_month) <= 12:
        raise ValidationError({"card_details": ["Expiry month must be between 1 and 12"]})
    if not _CVV.match(card_details.cvv or ""):
        raise ValidationError({"card_details": ["Security code is invalid"]})
    return method


@ordering.command(part_of="Payment")
class ChargeOrder:
    order_id = Identifier(required=True)
    amount = Integer(required=True, min_value=0)
    method = String(required=True, max_length=20)
    card_token = String(max_length=255)
    card_last4 = String(max_length=4)


@ordering.command_handler(part_of=Payment)
class ChargeOrderHandler:
    @handle(ChargeOrder)
    def charge_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if command.amount != order.totals.total:
            raise AmountMismatchError(str(order.id), order.totals.total, command.amount)
        if OrderStatus(order.status) is not OrderStatus.PENDING:
            raise ValidationError({"order_id": [f"Only PENDING orders can be charged; order is {order.status}"]})

        attempts = payments_for_order(order.id)
        if any(PaymentStatus(p.status) is not PaymentStatus.FAILED for p in attempts):
            raise PaymentError(
                "A payment for this order is already completed or being processed",
                order_id=str(order.id),
                retryable=False,
            )
        if len(attempts) >= MAX_PAYMENT_ATTEMPTS:
            raise PaymentError(EXHAUSTED_MESSAGE, order_id=str(order.id), retryable=False)

        payment = Payment.create(
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            amount=order.totals.total,
            currency=order.totals.currency,
            method=command.method,
            attempt_number=len(attempts) + 1,
            card_last4=command.card_last4,
        )

        request = ChargeRequest(
            amount_minor_units=order.totals.total,
            currency=order.totals.currency,
            method=payment.method,
            idempotency_key=payment.idempotency_key,
            card_token=command.card_token,
        )
        try:
            result = get_gateway().create_charge(request)
        except GatewayError as exc:
            logger.warning(
                "gateway_charge_error",
                order_id=str(order.id),
                payment_id=str(payment.id),
                attempt=payment.attempt_number,
                error=str(exc),
            )
            payment.mark_failed(f"Gateway error: {exc}")
        else:
            payment.apply_gateway_result(result.status, result.gateway_reference, result.message)

        current_domain.repository_for(Payment).add(payment)
        logger.info(
            "payment_attempted",
            order_id=str(order.id),
            payment_id=str(payment.id),
            attempt=payment.attempt_number,
            status=payment.status,
        )
        return str(payment.id)


def _customer_message(payment: Payment) -> str:
    if payment.failure_reason and payment.failure_reason.startswith("Gateway error"):
        return UNAVAILABLE_MESSAGE
    return DECLINED_MESSAGE


def charge(order_id, amount: int, method, card_details: CardDetails | None = None) -> Payment:
    """Charge ``amount`` minor units against an order.

    Returns the Payment when the gateway completed it or is still
    processing it. Raises PaymentError when the attempt failed; the FAILED
    Payment is persisted either way.
    """
    order = current_domain.repository_for(Order).get(str(order_id))
    if amount != order.totals.total:
        logger.error(
            "payment_amount_mismatch",
            order_id=str(order.id),
            expected=order.totals.total,
            received=amount,
        )
        raise AmountMismatchError(str(order.id), order.totals.total, amount)

    method = validate_payment_method(method, card_details)

    card_token = None
    card_last4 = None
    if method.is_card:
        card_last4 = card_details.last4
        try:
            card_token = get_gateway().tokenize_card(card_details)
        except GatewayError as exc:
            logger.warning("card_tokenization_failed", order_id=str(order.id), error=str(exc))
            raise PaymentError(UNAVAILABLE_MESSAGE, order_id=str(order.id), retryable=True) from exc

    payment_id = current_domain.process(
        ChargeOrder(
            order_id=str(order.id),
            amount=amount,
            method=method.value,
            card_token=card_token,
            card_last4=card_last4,
        ),
        asynchronous=False,
    )

    payment = current_domain.repository_for(Payment).get(payment_id)
    if PaymentStatus(payment.status) is PaymentStatus.FAILED:
        raise PaymentError(
            _customer_message(payment),
            order_id=str(order.id),
            payment_id=str(payment.id),
            retryable=payment.attempt_number < MAX_PAYMENT_ATTEMPTS,
        )
    return payment
