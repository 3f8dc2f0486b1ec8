"""Order cancellation: command and handler.

An order whose payment is still processing at the gateway cannot be
cancelled: the charge may yet complete, and a completed charge on a
cancelled order is money taken for nothing.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import CancellationActor, Order
from ordering.payment.payment import PaymentStatus
from ordering.payment.queries import payments_for_order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(choices=CancellationActor, default=CancellationActor.CUSTOMER.value)


def refuse_while_payment_processing(order_id) -> None:
    if any(p.status == PaymentStatus.PENDING.value for p in payments_for_order(order_id)):
        raise ValidationError(
            {"status": ["A payment for this order is still processing; it can be cancelled once the payment settles"]}
        )


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        refuse_while_payment_processing(order.id)
        order.cancel(
            reason=command.reason,
            cancelled_by=command.cancelled_by or CancellationActor.CUSTOMER.value,
        )
        repo.add(order)
