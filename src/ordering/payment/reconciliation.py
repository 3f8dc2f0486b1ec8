"""Gateway reconciliation: settle a payment the gateway left processing."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.payment.payment import Payment, PaymentStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Payment")
class ReconcilePayment:
    payment_id = Identifier(required=True)
    gateway_status = String(required=True, max_length=50)
    gateway_reference = String(max_length=255)


@ordering.command_handler(part_of=Payment)
class ReconcilePaymentHandler:
    @handle(ReconcilePayment)
    def reconcile_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        if PaymentStatus(payment.status) is not PaymentStatus.PENDING:
            raise ValidationError({"payment_id": [f"Payment is already {payment.status}"]})

        outcome = payment.apply_gateway_result(command.gateway_status, command.gateway_reference)
        repo.add(payment)

        logger.info(
            "payment_reconciled",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            status=outcome.value,
        )
        return outcome.value
