"""
Order Service - creates, updates and deletes orders together with their
line items and payment rows.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from checkout.database import atomic, utcnow
from checkout.errors import ValidationError, NotFoundError
from checkout.logging_config import get_logger
from checkout.models import Order, OrderItem, Payment, OrderStatus, PaymentMethod, PaymentStatus
from checkout.payment_state import settle_payment

logger = get_logger(__name__)


def _to_decimal(value, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid value for {field}")


def _to_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {field}")


def _validate_items(items: List[dict]) -> List[dict]:
    cleaned = []
    for index, item in enumerate(items):
        variant_id = item.get("variant_id")
        quantity = item.get("quantity")
        price_at_time = item.get("price_at_time")

        if variant_id is None or quantity is None or price_at_time is None:
            raise ValidationError(
                f"Item {index}: variant_id, quantity and price_at_time are required"
            )
        quantity = _to_int(quantity, "quantity")
        if quantity < 1:
            raise ValidationError(f"Item {index}: quantity must be at least 1")

        cleaned.append({
            "variant_id": _to_int(variant_id, "variant_id"),
            "quantity": quantity,
            "price_at_time": _to_decimal(price_at_time, "price_at_time"),
        })
    return cleaned


class OrderService:
    """Service layer for the order aggregate (Order + OrderItems + Payment)"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Order).options(
            selectinload(Order.items),
            selectinload(Order.payments),
        )

    def list_orders(self) -> List[Order]:
        return self._query().order_by(Order.id).all()

    def get_order(self, order_id: int) -> Order:
        order = self._query().filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def create_order(
        self,
        user_id: int,
        total_amount,
        items: List[dict],
        coupon_id: Optional[int] = None,
        discount_amount=None,
        expected_delivery_date: Optional[datetime] = None,
        payment: Optional[dict] = None,
    ) -> Order:
        """
        Create an order, its items and an optional pending payment.

        All rows are written in one transaction; if any insert fails nothing
        is left behind and the error is re-raised.

        Raises:
            ValidationError: missing user_id/total_amount/items or a bad item
        """
        if not user_id or not total_amount or not items:
            raise ValidationError(
                "Missing required fields: user_id, total_amount, and items are required"
            )

        cleaned_items = _validate_items(items)
        total = _to_decimal(total_amount, "total_amount")

        method = None
        if payment is not None:
            try:
                method = PaymentMethod(payment.get("method"))
            except ValueError:
                raise ValidationError("Unsupported payment method")

        now = utcnow()

        try:
            with atomic(self.db):
                order = Order(
                    user_id=user_id,
                    total_amount=total,
                    order_date=now,
                    expected_delivery_date=expected_delivery_date or now,
                    status=OrderStatus.PENDING,
                    coupon_id=coupon_id,
                    discount_amount=_to_decimal(discount_amount or 0, "discount_amount"),
                    created_at=now,
                    updated_at=now,
                )
                self.db.add(order)
                self.db.flush()

                self.db.add_all([
                    OrderItem(order_id=order.id, **item) for item in cleaned_items
                ])

                if method is not None:
                    self.db.add(Payment(
                        order_id=order.id,
                        amount=total,
                        method=method,
                        payment_status=PaymentStatus.PENDING,
                        transaction_id=payment.get("transaction_id"),
                        stripe_payment_intent_id=payment.get("stripe_payment_intent_id"),
                        created_at=now,
                    ))
                self.db.flush()
        except Exception:
            logger.error("Error creating order", extra={"user_id": user_id}, exc_info=True)
            raise

        logger.info(
            "Order created",
            extra={"order_id": order.id, "user_id": user_id, "items": len(cleaned_items)}
        )
        self.db.expire_all()
        return self.get_order(order.id)

    def update_order_status(self, order_id: int, new_status: str) -> Order:
        """
        Set an order's status. Marking it ``paid`` also completes the latest
        payment in the same transaction.
        """
        try:
            status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError("Invalid order status")

        with atomic(self.db):
            order = self.db.get(Order, order_id)
            if not order:
                raise NotFoundError("Order not found")

            order.status = status
            order.updated_at = utcnow()

            if status == OrderStatus.PAID and order.payment is not None:
                settle_payment(order.payment, PaymentStatus.COMPLETED)

        logger.info("Order status updated", extra={"order_id": order_id, "status": status.value})
        self.db.expire_all()
        return self.get_order(order_id)

    def delete_order(self, order_id: int) -> None:
        with atomic(self.db):
            self.db.query(Payment).filter(Payment.order_id == order_id).delete(synchronize_session=False)
            self.db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
            deleted = self.db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False)

            if not deleted:
                raise NotFoundError("Order not found")

        self.db.expire_all()
        logger.info("Order deleted", extra={"order_id": order_id})
