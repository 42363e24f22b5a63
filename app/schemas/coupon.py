# app/schemas/coupon.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field

from app.schemas.base import CamelModel

# ==================== Redemption (student) ====================


class CouponCodeRequest(CamelModel):
    # Left optional so an empty code is reported as "Coupon code is required"
    coupon_code: Optional[str] = Field(None, description="Code entered at checkout")


class CouponRedemptionResponse(CamelModel):
    success: bool = True
    title: str
    message: str
    coupon_type: str = Field(..., description="admin or teacher")
    coupon_id: int
    type: str
    discount_type: Optional[str] = None
    discount_amount: Optional[float] = None


# ==================== Teacher coupon CRUD ====================


class TeacherCouponCreate(CamelModel):
    """Fields are validated by the service so clients get its exact messages."""

    title: Optional[str] = None
    coupon_code: Optional[str] = None
    type: Optional[str] = Field(None, examples=["original", "discount"])
    discount_type: Optional[str] = Field(None, examples=["amount", "percentage"])
    discount_amount: Optional[Union[Decimal, str]] = None
    start_at: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    status: Optional[str] = Field(None, examples=["active", "inactive"])


class TeacherCouponUpdate(TeacherCouponCreate):
    """Partial update: only fields present in the body are applied."""


class CouponStatusUpdate(CamelModel):
    status: Optional[str] = None


class TeacherCouponResponse(CamelModel):
    id: int
    teacher_id: int
    title: str
    coupon_code: str
    type: str
    discount_type: Optional[str] = None
    discount_amount: Optional[float] = None
    start_at: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime


class TeacherCouponListResponse(CamelModel):
    coupons: List[TeacherCouponResponse]
    total: int
    page: int
    limit: int
    total_pages: int
