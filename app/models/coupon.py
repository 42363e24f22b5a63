from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base


class CouponColumnsMixin:
    """Columns shared by the admin and teacher coupon families."""

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    coupon_code = Column(String(100), nullable=False, unique=True, index=True)

    type = Column(String(20), nullable=False, default="original")  # original, discount
    discount_type = Column(String(20), nullable=True)  # amount, percentage
    discount_amount = Column(Numeric(10, 2), nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=True)
    expire_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default="active")  # active, inactive

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AdminCoupon(CouponColumnsMixin, Base):
    """Platform-wide coupons. Checked before teacher coupons on redemption."""

    __tablename__ = "admin_coupons"

    def __repr__(self):
        return f"<AdminCoupon(id={self.id}, code='{self.coupon_code}')>"


class TeacherCoupon(CouponColumnsMixin, Base):
    __tablename__ = "teacher_coupons"

    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    def __repr__(self):
        return f"<TeacherCoupon(id={self.id}, teacher_id={self.teacher_id}, code='{self.coupon_code}')>"


class CouponUsage(Base):
    """One row per student per redeemed coupon."""

    __tablename__ = "coupon_usages"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "coupon_type", "coupon_id", name="uq_coupon_usages_student_coupon"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    coupon_type = Column(String(20), nullable=False)  # admin, teacher
    coupon_id = Column(Integer, nullable=False)
    used_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
