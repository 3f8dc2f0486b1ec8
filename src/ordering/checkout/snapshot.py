"""Cart snapshot: the frozen copy of a cart that checkout works from.

The snapshot is the unit of consistency for a checkout attempt: totals,
the order lines and the charged amount all derive from it, so a price or
quantity change made to the cart while checkout runs never reaches the
order retroactively.
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.exceptions import EmptyCartError


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass(frozen=True)
class OrderSnapshot:
    cart_id: str
    lines: tuple[CartLine, ...]
    taken_at: datetime

    def __post_init__(self) -> None:
        if not self.lines:
            raise EmptyCartError({"cart": ["Cannot check out an empty cart"]})
        for line in self.lines:
            if line.quantity < 1:
                raise ValidationError({"quantity": [f"Invalid quantity {line.quantity} for product {line.product_id}"]})
            if line.unit_price < 0:
                raise ValidationError({"unit_price": [f"Invalid unit price for product {line.product_id}"]})

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def lines_json(self) -> str:
        return json.dumps([line.to_dict() for line in self.lines])


def snapshot_cart(cart: ShoppingCart) -> OrderSnapshot:
    """Freeze an already-loaded cart. The cart itself is not modified."""
    if not cart.items:
        raise EmptyCartError({"cart": ["Cannot check out an empty cart"]})

    lines = tuple(
        CartLine(
            product_id=str(item.product_id),
            quantity=int(item.quantity),
            unit_price=int(item.unit_price),
        )
        for item in cart.items
    )
    return OrderSnapshot(cart_id=str(cart.id), lines=lines, taken_at=datetime.now(UTC))


def snapshot(cart_id: str) -> OrderSnapshot:
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return snapshot_cart(cart)
