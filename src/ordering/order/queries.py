"""Order read helpers for the API and the checkout workflow."""

from protean.utils.globals import current_domain

from ordering.order.order import Order, OrderStatus


def get_order(order_id) -> Order:
    """Raises ObjectNotFoundError when the order does not exist."""
    return current_domain.repository_for(Order).get(str(order_id))


def orders_for_customer(customer_id) -> list[Order]:
    """A customer's orders, newest first."""
    orders = (
        current_domain.repository_for(Order)._dao.query.filter(customer_id=str(customer_id)).all().items
    )
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def orders_by_status(status) -> list[Order]:
    status = OrderStatus(status).value
    orders = current_domain.repository_for(Order)._dao.query.filter(status=status).all().items
    return sorted(orders, key=lambda o: o.created_at)


def find_by_idempotency_key(customer_id, idempotency_key) -> Order | None:
    """The order an earlier checkout created with this client key, if any."""
    if not idempotency_key:
        return None
    orders = (
        current_domain.repository_for(Order)
        ._dao.query.filter(customer_id=str(customer_id), idempotency_key=idempotency_key)
        .all()
        .items
    )
    return orders[0] if orders else None
