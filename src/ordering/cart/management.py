"""Cart management: commands and handler.

Handles cart creation and clearing, taking paid lines out after checkout,
and the checkout-in-progress claim that keeps two attempts off the same cart.
"""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class CreateCart:
    """Create a new shopping cart for an authenticated customer."""

    customer_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    """Empty the cart."""

    cart_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class CheckOutCart:
    """Remove the lines a paid order bought. Issued only after the payment completes."""

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of {product_id, quantity}
    token = String(max_length=64)


@ordering.command(part_of="ShoppingCart")
class BeginCheckout:
    """Claim the cart for a single checkout attempt."""

    cart_id = Identifier(required=True)
    token = String(required=True, max_length=64)
    ttl_seconds = Integer(default=900)


@ordering.command(part_of="ShoppingCart")
class EndCheckout:
    """Release a checkout claim without touching the cart lines."""

    cart_id = Identifier(required=True)
    token = String(required=True, max_length=64)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(customer_id=command.customer_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.clear()
        repo.add(cart)

    @handle(CheckOutCart)
    def check_out_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        purchased = [(line["product_id"], int(line["quantity"])) for line in json.loads(command.lines)]
        cart.check_out(command.order_id, purchased, token=command.token)
        repo.add(cart)

    @handle(BeginCheckout)
    def begin_checkout(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.begin_checkout(command.token, ttl_seconds=command.ttl_seconds or 900)
        repo.add(cart)

    @handle(EndCheckout)
    def end_checkout(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        if cart.end_checkout(command.token):
            repo.add(cart)
