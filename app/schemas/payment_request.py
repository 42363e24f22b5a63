# app/schemas/payment_request.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class PaymentRequestCreate(CamelModel):
    """Submitted by a student at checkout."""

    course_id: int = Field(..., description="Course being purchased")
    payment_method: str = Field(..., min_length=1, max_length=50, examples=["bkash"])
    sender_phone: Optional[str] = Field(None, max_length=30)
    transaction_id: Optional[str] = Field(None, max_length=100)
    amount: Decimal = Field(..., ge=0)
    currency: Optional[str] = Field(None, max_length=10)
    coupon_code: Optional[str] = Field(None, max_length=100)
    invite_code: Optional[str] = Field(None, max_length=100)


class PaymentRequestResponse(CamelModel):
    id: int
    course_id: int
    user_id: int
    payment_method: str
    sender_phone: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    coupon_code: Optional[str] = None
    invite_code: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime


class AdminPaymentRequestItem(PaymentRequestResponse):
    course_title: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class AdminPaymentRequestListResponse(CamelModel):
    requests: List[AdminPaymentRequestItem]
    total: int


class StudentPaymentRequestItem(PaymentRequestResponse):
    course_title: Optional[str] = None
    course_price: Optional[float] = None
    course_discount_price: Optional[float] = None
    course_currency: Optional[str] = None
    teacher_name: Optional[str] = None
    teacher_email: Optional[str] = None


class PaymentRequestDecisionResponse(CamelModel):
    message: str
    request_id: int
