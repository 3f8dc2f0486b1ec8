"""Payment read helpers."""

from protean.utils.globals import current_domain

from ordering.payment.payment import Payment


def get_payment(payment_id) -> Payment:
    return current_domain.repository_for(Payment).get(str(payment_id))


def payments_for_order(order_id) -> list[Payment]:
    """Every attempt made against an order, oldest first."""
    payments = current_domain.repository_for(Payment)._dao.query.filter(order_id=str(order_id)).all().items
    return sorted(payments, key=lambda p: p.attempt_number)


def latest_payment(order_id) -> Payment | None:
    payments = payments_for_order(order_id)
    return payments[-1] if payments else None
