"""
Applies verified Stripe webhook events to local Payment and Order rows.
"""
from sqlalchemy.orm import Session

from checkout.database import atomic
from checkout.errors import InvalidPaymentTransition
from checkout.logging_config import get_logger
from checkout.models import Payment, PaymentStatus
from checkout.payment_state import settle_payment

logger = get_logger(__name__)

EVENT_OUTCOMES = {
    "payment_intent.succeeded": PaymentStatus.COMPLETED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
}


class WebhookReconciler:
    """Only ever handed events whose signature has already been verified."""

    def __init__(self, db: Session):
        self.db = db

    def handle_event(self, event) -> bool:
        """Returns True when a Payment row was changed."""
        event_type = event["type"]
        outcome = EVENT_OUTCOMES.get(event_type)
        if outcome is None:
            logger.debug("Ignoring webhook event", extra={"event_type": event_type})
            return False

        intent_id = event["data"]["object"]["id"]
        payment = (
            self.db.query(Payment)
            .filter(Payment.stripe_payment_intent_id == intent_id)
            .first()
        )
        if not payment:
            logger.info(
                "Webhook for unknown payment intent",
                extra={"event_type": event_type, "payment_intent_id": intent_id}
            )
            return False

        try:
            with atomic(self.db):
                changed = settle_payment(payment, outcome, transaction_id=intent_id)
        except InvalidPaymentTransition as exc:
            logger.warning(
                "Webhook event rejected by payment state",
                extra={"payment_id": payment.id, "event_type": event_type, "error": exc.message}
            )
            return False

        if changed:
            logger.info(
                "Payment reconciled",
                extra={"payment_id": payment.id, "order_id": payment.order_id, "status": outcome.value}
            )
        return changed
