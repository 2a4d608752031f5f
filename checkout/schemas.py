"""
Pydantic schemas for request/response validation
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, AliasChoices

from checkout.models import OrderStatus, PaymentMethod, PaymentStatus


class OrderItemIn(BaseModel):
    variant_id: int
    quantity: int = Field(..., ge=1)
    price_at_time: Decimal


class PaymentIn(BaseModel):
    method: PaymentMethod
    transaction_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None


class OrderCreate(BaseModel):
    # Presence of user_id/total_amount/items is checked by OrderService
    user_id: Optional[int] = None
    total_amount: Optional[Decimal] = None
    items: List[OrderItemIn] = []
    expected_delivery_date: Optional[datetime] = None
    coupon_id: Optional[int] = None
    discount_amount: Optional[Decimal] = None
    payment: Optional[PaymentIn] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    variant_id: int
    quantity: int
    price_at_time: Decimal


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    payment_status: PaymentStatus
    payment_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    order_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    status: OrderStatus
    total_amount: Decimal
    coupon_id: Optional[int] = None
    discount_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = []
    payment: Optional[PaymentOut] = None


class PaymentIntentRequest(BaseModel):
    orderId: int


class InitiatePaymentRequest(BaseModel):
    orderId: int
    paymentMethod: str = Field(..., validation_alias=AliasChoices("paymentMethod", "method"))


class CapturePayPalRequest(BaseModel):
    orderID: str = Field(..., validation_alias=AliasChoices("orderID", "orderId"))


class ConfirmStripeRequest(BaseModel):
    paymentIntentId: str
