from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette import status

from checkout.auth import can_view_orders
from checkout.config import get_settings
from checkout.database import get_db
from checkout.gateways import build_gateways
from checkout.order_service import OrderService
from checkout.payment_service import PaymentService
from checkout.schemas import (
    OrderCreate,
    OrderStatusUpdate,
    OrderOut,
    PaymentIntentRequest,
    InitiatePaymentRequest,
    CapturePayPalRequest,
    ConfirmStripeRequest,
)

orders_router = APIRouter(prefix="/orders", tags=["orders"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])


def get_gateways():
    return build_gateways(get_settings())


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_payment_service(db: Session = Depends(get_db), gateways=Depends(get_gateways)) -> PaymentService:
    return PaymentService(db, gateways)


@orders_router.get("")
def list_orders(service: OrderService = Depends(get_order_service)):
    orders = service.list_orders()
    return {"success": True, "data": [OrderOut.model_validate(o) for o in orders]}


@orders_router.get("/{order_id}")
def get_order(order_id: int, service: OrderService = Depends(get_order_service)):
    return {"success": True, "data": OrderOut.model_validate(service.get_order(order_id))}


@orders_router.post("", status_code=status.HTTP_201_CREATED)
def create_order(request: OrderCreate, service: OrderService = Depends(get_order_service)):
    order = service.create_order(
        user_id=request.user_id,
        total_amount=request.total_amount,
        items=[item.model_dump() for item in request.items],
        coupon_id=request.coupon_id,
        discount_amount=request.discount_amount,
        expected_delivery_date=request.expected_delivery_date,
        payment=request.payment.model_dump() if request.payment else None,
    )
    return {
        "success": True,
        "message": "Order created successfully",
        "data": OrderOut.model_validate(order),
    }


@orders_router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    request: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service)
):
    order = service.update_order_status(order_id, request.status)
    return {
        "success": True,
        "message": "Order status updated successfully",
        "data": OrderOut.model_validate(order),
    }


@orders_router.delete("/{order_id}")
def delete_order(order_id: int, service: OrderService = Depends(get_order_service)):
    service.delete_order(order_id)
    return {"success": True, "message": "Order and related records deleted successfully"}


@payments_router.post("/create-payment-intent")
def create_payment_intent(
    request: PaymentIntentRequest,
    service: PaymentService = Depends(get_payment_service),
    claims=Depends(can_view_orders)
):
    return {"success": True, "data": service.create_payment_intent(request.orderId)}


@payments_router.post("/initiate-payment")
def initiate_payment(
    request: InitiatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    claims=Depends(can_view_orders)
):
    result = service.handle_payment_by_method(request.orderId, request.paymentMethod)
    return {"success": True, "data": result}


@payments_router.post("/capture-paypal-payment")
def capture_paypal_payment(
    request: CapturePayPalRequest,
    service: PaymentService = Depends(get_payment_service),
    claims=Depends(can_view_orders)
):
    service.capture_paypal_payment(request.orderID)
    return {"success": True, "message": "Payment captured successfully"}


@payments_router.post("/confirm-stripe-payment")
def confirm_stripe_payment(
    request: ConfirmStripeRequest,
    service: PaymentService = Depends(get_payment_service),
    claims=Depends(can_view_orders)
):
    service.confirm_stripe_payment(request.paymentIntentId)
    return {"success": True, "message": "Payment confirmed successfully"}
