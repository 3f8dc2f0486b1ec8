"""Order aggregate (CQRS): a frozen cart, priced and waiting for payment.

An order is created from an OrderSnapshot and never re-reads the cart.
Its lines and totals are fixed at creation; afterwards only the status,
the internal notes and the cancellation details change.

State Machine (6 states):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED (from any non-terminal state)

DELIVERED and CANCELLED are terminal. Moving an order to the status it
already holds is not a transition and is rejected.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.exceptions import InvalidTransitionError, StaleStatusError
from ordering.order.events import OrderCancelled, OrderPlaced, OrderStatusChanged


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ShippingMethod(Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"
    NATIONAL = "NATIONAL"

    @property
    def requires_address(self) -> bool:
        return self is not ShippingMethod.PICKUP


class CancellationActor(Enum):
    CUSTOMER = "CUSTOMER"
    SYSTEM = "SYSTEM"
    ADMIN = "ADMIN"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def allowed_transitions(status) -> set[OrderStatus]:
    return set(_VALID_TRANSITIONS[OrderStatus(status)])


def _coerce_status(value) -> OrderStatus:
    try:
        return OrderStatus(value.value if isinstance(value, OrderStatus) else value)
    except ValueError as exc:
        raise InvalidTransitionError({"status": [f"Unknown order status {value!r}"]}) from exc


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class OrderTotals:
    """Subtotal, shipping, tax and total of an order, in minor units.

    Computed once from the cart snapshot and never recomputed.
    """

    subtotal = Integer(required=True, min_value=0)
    shipping = Integer(required=True, min_value=0)
    tax = Integer(required=True, min_value=0)
    total = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="PEN")

    @invariant.post
    def total_is_the_sum_of_its_parts(self):
        if self.total != self.subtotal + self.shipping + self.tax:
            raise ValidationError({"total": ["Total must equal subtotal + shipping + tax"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    line_total = Integer(required=True, min_value=0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=30)
    customer_id = Identifier(required=True)
    cart_id = Identifier()
    checkout_token = String(max_length=64)  # claim this order's checkout holds on the cart
    address_id = Identifier()
    shipping_method = String(required=True, choices=ShippingMethod)
    lines = HasMany(OrderLine)
    totals = ValueObject(OrderTotals)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    internal_notes = Text()
    customer_notes = String(max_length=500)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=CancellationActor)
    idempotency_key = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        lines_data,
        totals,
        shipping_method,
        address_id=None,
        cart_id=None,
        customer_notes=None,
        idempotency_key=None,
        checkout_token=None,
    ):
        """Create a PENDING order from frozen cart lines.

        Args:
            customer_id: The customer placing the order.
            lines_data: List of dicts with product_id, quantity, unit_price.
            totals: Dict with subtotal, shipping, tax, total, currency.
            shipping_method: One of PICKUP, DELIVERY, NATIONAL.
            address_id: Required unless the order is picked up.
        """
        if not lines_data:
            raise ValidationError({"lines": ["An order needs at least one line"]})

        try:
            method = ShippingMethod(shipping_method)
        except ValueError as exc:
            raise ValidationError({"shipping_method": [f"Unknown shipping method {shipping_method!r}"]}) from exc
        if method.requires_address and not address_id:
            raise ValidationError({"address_id": [f"An address is required for {method.value} orders"]})

        lines = [
            OrderLine(
                product_id=line["product_id"],
                quantity=int(line["quantity"]),
                unit_price=int(line["unit_price"]),
                line_total=int(line["unit_price"]) * int(line["quantity"]),
            )
            for line in lines_data
        ]
        if sum(line.line_total for line in lines) != totals["subtotal"]:
            raise ValidationError({"subtotal": ["Subtotal does not match the order lines"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=generate_order_number(now),
            customer_id=customer_id,
            cart_id=cart_id,
            checkout_token=checkout_token,
            address_id=address_id if method.requires_address else None,
            shipping_method=method.value,
            totals=OrderTotals(**totals),
            status=OrderStatus.PENDING.value,
            customer_notes=customer_notes,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )
        order.add_lines(lines)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                cart_id=str(cart_id) if cart_id else None,
                shipping_method=method.value,
                line_count=len(lines),
                total=order.totals.total,
                currency=order.totals.currency,
                placed_at=now,
            )
        )
        return order

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransitionError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def transition(self, new_status, note=None, expected_status=None):
        """Move the order to ``new_status``.

        ``expected_status`` is a compare-and-set guard for callers that read
        the order before deciding: the change is refused if the order has
        moved on in between. A supplied note replaces the internal notes;
        omitting it leaves them untouched.
        """
        target = _coerce_status(new_status)
        current = OrderStatus(self.status)

        if expected_status is not None and _coerce_status(expected_status) != current:
            raise StaleStatusError(
                {"status": [f"Order is {current.value}, expected {_coerce_status(expected_status).value}"]}
            )
        self._assert_can_transition(target)

        if target is OrderStatus.CANCELLED:
            self.cancel(reason=note or "Cancelled by an administrator", cancelled_by=CancellationActor.ADMIN)
        else:
            self.status = target.value
            self.updated_at = datetime.now(UTC)

        if note is not None:
            self.internal_notes = note

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target.value,
                note=note,
                changed_at=self.updated_at,
            )
        )

    def cancel(self, reason, cancelled_by=CancellationActor.CUSTOMER):
        self._assert_can_transition(OrderStatus.CANCELLED)
        previous = self.status
        now = datetime.now(UTC)

        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = CancellationActor(cancelled_by).value
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                cancelled_at=now,
            )
        )


def generate_order_number(now=None) -> str:
    """Human-facing order number, e.g. ``ORD-20240315-3FA9C1``."""
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}"
