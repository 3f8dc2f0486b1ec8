"""Order placement: command and handler.

The order is placed from a cart snapshot that checkout already froze and
priced; the handler re-validates the shipping address against the
address book before anything is persisted.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.addresses import get_address_book
from ordering.domain import ordering
from ordering.order.order import Order, ShippingMethod


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    cart_id = Identifier()
    address_id = Identifier()
    shipping_method = String(required=True, max_length=20)
    lines = Text(required=True)  # JSON: list of {product_id, quantity, unit_price}
    subtotal = Integer(required=True, min_value=0)
    shipping = Integer(default=0, min_value=0)
    tax = Integer(default=0, min_value=0)
    total = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="PEN")
    customer_notes = String(max_length=500)
    idempotency_key = String(max_length=100)
    checkout_token = String(max_length=64)


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines_data = json.loads(command.lines) if isinstance(command.lines, str) else command.lines

        try:
            method = ShippingMethod(command.shipping_method)
        except ValueError as exc:
            raise ValidationError({"shipping_method": [f"Unknown shipping method {command.shipping_method!r}"]}) from exc

        if method.requires_address and command.address_id:
            if not get_address_book().exists(str(command.address_id), str(command.customer_id)):
                raise ValidationError({"address_id": ["Address not found for this customer"]})

        order = Order.create(
            customer_id=command.customer_id,
            lines_data=lines_data,
            totals={
                "subtotal": command.subtotal,
                "shipping": command.shipping or 0,
                "tax": command.tax or 0,
                "total": command.total,
                "currency": command.currency or "PEN",
            },
            shipping_method=method.value,
            address_id=command.address_id,
            cart_id=command.cart_id,
            customer_notes=command.customer_notes,
            idempotency_key=command.idempotency_key,
            checkout_token=command.checkout_token,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
