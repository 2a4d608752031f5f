"""
Payment status transitions and the Payment -> Order coupling.

Every code path that completes or fails a payment goes through
``settle_payment`` so that a completed Payment always has a payment_date and
its Order is always ``paid``.
"""
from datetime import datetime

from checkout.database import utcnow
from checkout.errors import InvalidPaymentTransition
from checkout.models import OrderStatus, PaymentStatus

ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


def transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """
    Validate a status change.

    Returns True when the payment must be written, False when it is already
    in ``target`` (redelivered event). Raises InvalidPaymentTransition for
    anything else.
    """
    current = PaymentStatus(current)
    target = PaymentStatus(target)

    if current == target and current != PaymentStatus.PENDING:
        return False
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidPaymentTransition(
            f"Cannot move payment from {current.value} to {target.value}"
        )
    return True


def settle_payment(payment, outcome: PaymentStatus, transaction_id: str = None, now: datetime = None) -> bool:
    """
    Apply a terminal outcome to ``payment`` and, on success, to its Order.

    The caller owns the transaction. Returns False if nothing changed.
    """
    if not transition(payment.payment_status, outcome):
        return False

    payment.payment_status = outcome
    if transaction_id:
        payment.transaction_id = transaction_id

    if outcome == PaymentStatus.COMPLETED:
        payment.payment_date = now or utcnow()
        if payment.order is not None:
            payment.order.status = OrderStatus.PAID
    return True
