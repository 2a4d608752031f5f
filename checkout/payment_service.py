"""
Payment Service - starts payments with a provider and records captures.
"""
from typing import Dict, Optional

from sqlalchemy.orm import Session

from checkout.database import atomic
from checkout.errors import ValidationError, NotFoundError
from checkout.gateways import PaymentGateway
from checkout.logging_config import get_logger
from checkout.models import Order, Payment, PaymentMethod, PaymentStatus
from checkout.payment_state import settle_payment

logger = get_logger(__name__)


class PaymentService:

    def __init__(self, db: Session, gateways: Dict[PaymentMethod, PaymentGateway]):
        self.db = db
        self.gateways = gateways

    def _gateway(self, method) -> PaymentGateway:
        try:
            gateway = self.gateways.get(PaymentMethod(method))
        except ValueError:
            gateway = None
        if gateway is None:
            raise ValidationError("Unsupported payment method")
        return gateway

    def handle_payment_by_method(self, order_id: int, method) -> dict:
        """
        Ask the provider for ``method`` to start a payment for an order and
        record a pending Payment for it.

        Returns the provider's client handle (``clientSecret`` for Stripe,
        ``orderID`` for PayPal) plus ``paymentId``.

        Raises:
            ValidationError: unsupported method
            NotFoundError: order missing or without an amount
            ProviderError: the provider call failed
        """
        gateway = self._gateway(method)

        order = self.db.get(Order, order_id)
        if not order or not order.total_amount:
            raise NotFoundError("Order not found or invalid amount")

        intent = gateway.create_intent(order)

        payment = Payment(
            order_id=order.id,
            amount=order.total_amount,
            method=gateway.method,
            payment_status=PaymentStatus.PENDING,
        )
        setattr(payment, gateway.reference_column, intent.reference)

        with atomic(self.db):
            self.db.add(payment)
            self.db.flush()
            payment_id = payment.id

        logger.info(
            "Payment initiated",
            extra={"order_id": order_id, "payment_id": payment_id, "method": gateway.method.value}
        )
        return {**intent.client_handle, "paymentId": payment_id}

    def create_payment_intent(self, order_id: int) -> dict:
        return self.handle_payment_by_method(order_id, PaymentMethod.STRIPE)

    def create_paypal_order(self, order_id: int) -> dict:
        return self.handle_payment_by_method(order_id, PaymentMethod.PAYPAL)

    def capture_payment(self, method, reference: str) -> Optional[Payment]:
        """
        Capture ``reference`` with the provider, then complete the matching
        Payment and mark its Order paid in one transaction.

        A successful capture with no local Payment row is a no-op and
        returns None.
        """
        gateway = self._gateway(method)
        gateway.capture(reference)

        column = getattr(Payment, gateway.reference_column)
        payment = self.db.query(Payment).filter(column == reference).first()
        if not payment:
            logger.warning(
                "Captured payment has no local record",
                extra={"method": gateway.method.value, "reference": reference}
            )
            return None

        with atomic(self.db):
            settle_payment(payment, PaymentStatus.COMPLETED, transaction_id=reference)

        logger.info(
            "Payment captured",
            extra={"payment_id": payment.id, "order_id": payment.order_id, "method": gateway.method.value}
        )
        return payment

    def capture_paypal_payment(self, paypal_order_id: str) -> Optional[Payment]:
        return self.capture_payment(PaymentMethod.PAYPAL, paypal_order_id)

    def confirm_stripe_payment(self, payment_intent_id: str) -> Optional[Payment]:
        return self.capture_payment(PaymentMethod.STRIPE, payment_intent_id)
