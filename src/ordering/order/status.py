"""Order status changes: command and handler.

Used by checkout to confirm a paid order and by the admin endpoint to move
orders through fulfillment. Illegal moves surface as
InvalidTransitionError and leave the persisted status untouched.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.cancellation import refuse_while_payment_processing
from ordering.order.order import Order, OrderStatus


@ordering.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=20)
    note = Text()
    expected_status = String(max_length=20)


@ordering.command_handler(part_of=Order)
class ChangeOrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.new_status == OrderStatus.CANCELLED.value:
            refuse_while_payment_processing(order.id)
        order.transition(
            command.new_status,
            note=command.note,
            expected_status=command.expected_status,
        )
        repo.add(order)
