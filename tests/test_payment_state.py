from datetime import datetime, timezone
from decimal import Decimal

import pytest

from checkout.database import utcnow
from checkout.errors import InvalidPaymentTransition
from checkout.models import Order, Payment, OrderStatus, PaymentMethod, PaymentStatus
from checkout.payment_state import transition, settle_payment


@pytest.mark.parametrize("target", [PaymentStatus.COMPLETED, PaymentStatus.FAILED])
def test_pending_can_settle(target):
    assert transition(PaymentStatus.PENDING, target) is True


@pytest.mark.parametrize("terminal", [PaymentStatus.COMPLETED, PaymentStatus.FAILED])
def test_repeating_terminal_state_is_noop(terminal):
    assert transition(terminal, terminal) is False


@pytest.mark.parametrize("current,target", [
    (PaymentStatus.COMPLETED, PaymentStatus.FAILED),
    (PaymentStatus.FAILED, PaymentStatus.COMPLETED),
    (PaymentStatus.COMPLETED, PaymentStatus.PENDING),
    (PaymentStatus.PENDING, PaymentStatus.PENDING),
    (PaymentStatus.PENDING, PaymentStatus.REFUNDED),
])
def test_illegal_transitions(current, target):
    with pytest.raises(InvalidPaymentTransition) as exc_info:
        transition(current, target)
    assert exc_info.value.status_code == 409


def _payment():
    order = Order(id=1, user_id=1, total_amount=Decimal("20.00"), status=OrderStatus.PENDING)
    return Payment(
        order=order,
        amount=Decimal("20.00"),
        method=PaymentMethod.STRIPE,
        payment_status=PaymentStatus.PENDING,
    )


def test_settle_completed_marks_order_paid():
    payment = _payment()
    when = datetime(2026, 1, 2, tzinfo=timezone.utc)

    assert settle_payment(payment, PaymentStatus.COMPLETED, transaction_id="pi_1", now=when) is True

    assert payment.payment_status == PaymentStatus.COMPLETED
    assert payment.payment_date == when
    assert payment.transaction_id == "pi_1"
    assert payment.order.status == OrderStatus.PAID


def test_settle_failed_leaves_order_pending():
    payment = _payment()

    settle_payment(payment, PaymentStatus.FAILED, transaction_id="pi_1")

    assert payment.payment_status == PaymentStatus.FAILED
    assert payment.payment_date is None
    assert payment.order.status == OrderStatus.PENDING


def test_settle_completed_defaults_to_aware_utc_now():
    payment = _payment()

    settle_payment(payment, PaymentStatus.COMPLETED)

    assert payment.payment_date.tzinfo == timezone.utc


def test_utcnow_is_timezone_aware():
    assert utcnow().utcoffset().total_seconds() == 0
