"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Payment")
class PaymentAttempted:
    """A charge was sent to the gateway for an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    attempt_number = Integer(required=True)
    amount = Integer(required=True)
    currency = String(required=True)
    method = String(required=True)
    attempted_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentCompleted:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    amount = Integer(required=True)
    gateway_reference = String()
    completed_at = DateTime(required=True)


@ordering.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    attempt_number = Integer(required=True)
    reason = String()
    failed_at = DateTime(required=True)
