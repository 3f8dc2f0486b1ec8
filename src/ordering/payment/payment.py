"""Payment aggregate (CQRS): one charge attempt against an order.

Every attempt is its own Payment record, so the history of an order's
payments reads as a list of attempts. Records are written only by the
payment orchestrator (``ordering.payment.charge``) and by gateway
reconciliation.

State Machine:
    PENDING → COMPLETED
    PENDING → FAILED

A PENDING payment is one the gateway is still processing.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, ValueObject

from ordering.domain import ordering
from ordering.payment.events import PaymentAttempted, PaymentCompleted, PaymentFailed
from ordering.shared.money import Money

MAX_PAYMENT_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentMethod(Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    YAPE = "YAPE"
    PLIN = "PLIN"

    @property
    def is_card(self) -> bool:
        return self in (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD)


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),  # Terminal
    PaymentStatus.FAILED: set(),  # Terminal
}

# Gateways disagree on vocabulary; anything unrecognised counts as a failure
_GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.COMPLETED,
    "succeeded": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "completado": PaymentStatus.COMPLETED,
    "autorizado": PaymentStatus.COMPLETED,
    "pending": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "processing": PaymentStatus.PENDING,
    "procesando": PaymentStatus.PENDING,
}


def map_gateway_status(gateway_status) -> PaymentStatus:
    if not gateway_status:
        return PaymentStatus.FAILED
    return _GATEWAY_STATUS_MAP.get(str(gateway_status).strip().lower(), PaymentStatus.FAILED)


def idempotency_key_for(order_id, attempt_number) -> str:
    return f"{order_id}:{attempt_number}"


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Payment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = ValueObject(Money)
    method = String(required=True, choices=PaymentMethod)
    attempt_number = Integer(required=True, min_value=1)
    idempotency_key = String(required=True, max_length=100)
    card_last4 = String(max_length=4)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    gateway_reference = String(max_length=255)
    gateway_status = String(max_length=50)
    failure_reason = String(max_length=500)  # technical detail, never shown to customers
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id, customer_id, amount, currency, method, attempt_number, card_last4=None):
        now = datetime.now(UTC)
        method = PaymentMethod(method)
        payment = cls(
            order_id=order_id,
            customer_id=customer_id,
            amount=Money(amount=amount, currency=currency),
            method=method.value,
            attempt_number=attempt_number,
            idempotency_key=idempotency_key_for(order_id, attempt_number),
            card_last4=card_last4,
            status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentAttempted(
                payment_id=str(payment.id),
                order_id=str(order_id),
                attempt_number=attempt_number,
                amount=amount,
                currency=currency,
                method=method.value,
                attempted_at=now,
            )
        )
        return payment

    @property
    def is_settled(self) -> bool:
        return PaymentStatus(self.status) is not PaymentStatus.PENDING

    def _assert_can_transition(self, target_status):
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition payment from {current.value} to {target_status.value}"]})

    def apply_gateway_result(self, gateway_status, gateway_reference=None, message=None):
        """Record what the gateway said about this charge."""
        self.gateway_status = str(gateway_status)[:50] if gateway_status else None
        if gateway_reference:
            self.gateway_reference = gateway_reference

        outcome = map_gateway_status(gateway_status)
        if outcome is PaymentStatus.COMPLETED:
            self.mark_completed(gateway_reference)
        elif outcome is PaymentStatus.FAILED:
            self.mark_failed(message or f"Gateway answered {gateway_status!r}")
        else:
            self.updated_at = datetime.now(UTC)
        return outcome

    def mark_completed(self, gateway_reference=None):
        self._assert_can_transition(PaymentStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.COMPLETED.value
        if gateway_reference:
            self.gateway_reference = gateway_reference
        self.updated_at = now

        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=self.amount.amount,
                gateway_reference=self.gateway_reference,
                completed_at=now,
            )
        )

    def mark_failed(self, reason):
        self._assert_can_transition(PaymentStatus.FAILED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = (reason or "")[:500] or None
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                attempt_number=self.attempt_number,
                reason=self.failure_reason,
                failed_at=now,
            )
        )
