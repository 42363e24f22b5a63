# app/services/coupon_ledger.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    CouponAlreadyUsed,
    CouponCodeRequired,
    CouponExpiredOrNotYetValid,
    InvalidCoupon,
)
from app.models.coupon import AdminCoupon, CouponUsage, TeacherCoupon

logger = logging.getLogger(__name__)

Coupon = Union[AdminCoupon, TeacherCoupon]


def normalize_code(code: Optional[str]) -> str:
    return str(code or "").strip().upper()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_discount_valid_now(coupon: Coupon, now: Optional[datetime] = None) -> bool:
    """Closed interval check; a missing bound is unbounded on that side."""
    now = now or datetime.now(timezone.utc)
    if coupon.start_at is not None and _as_utc(coupon.start_at) > now:
        return False
    if coupon.expire_at is not None and _as_utc(coupon.expire_at) < now:
        return False
    return True


def format_amount(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "0"
    value = Decimal(str(amount)).normalize()
    return format(value, "f")


def discount_label(coupon: Coupon) -> str:
    if coupon.type == "original":
        return "100% (Original)"
    if coupon.discount_type == "percentage":
        return f"{format_amount(coupon.discount_amount)}% off"
    return f"${format_amount(coupon.discount_amount)} off"


class CouponLedgerService:
    """
    Validates and redeems coupon codes for students.

    Admin coupons take priority over teacher coupons with the same code.
    A student may redeem a given coupon once.
    """

    def __init__(self, db: Session):
        self.db = db

    def _find_active(self, model, code: str) -> Optional[Coupon]:
        return (
            self.db.query(model)
            .filter(
                func.upper(func.trim(model.coupon_code)) == code,
                model.status == "active",
            )
            .order_by(model.id.asc())
            .first()
        )

    def _resolve(self, coupon_code: Optional[str], student_id: int) -> Tuple[str, Coupon]:
        code = normalize_code(coupon_code)
        if not code:
            raise CouponCodeRequired()

        coupon_type, coupon = "admin", self._find_active(AdminCoupon, code)
        if coupon is None:
            coupon_type, coupon = "teacher", self._find_active(TeacherCoupon, code)
        if coupon is None:
            raise InvalidCoupon()

        if coupon.type == "discount" and not is_discount_valid_now(coupon):
            raise CouponExpiredOrNotYetValid()

        if self.has_used(student_id, coupon_type, coupon.id):
            raise CouponAlreadyUsed()

        return coupon_type, coupon

    def has_used(self, student_id: int, coupon_type: str, coupon_id: int) -> bool:
        return (
            self.db.query(CouponUsage.id)
            .filter(
                CouponUsage.student_id == student_id,
                CouponUsage.coupon_type == coupon_type,
                CouponUsage.coupon_id == coupon_id,
            )
            .first()
            is not None
        )

    @staticmethod
    def _result(coupon_type: str, coupon: Coupon, message: str) -> dict:
        return {
            "success": True,
            "title": coupon.title,
            "message": message,
            "coupon_type": coupon_type,
            "coupon_id": coupon.id,
            "type": coupon.type,
            "discount_type": coupon.discount_type,
            "discount_amount": (
                float(coupon.discount_amount)
                if coupon.discount_amount is not None
                else None
            ),
        }

    def validate(self, coupon_code: Optional[str], student_id: int) -> dict:
        """Preview a coupon for checkout without recording usage."""
        coupon_type, coupon = self._resolve(coupon_code, student_id)
        return self._result(
            coupon_type, coupon, f"Coupon applied. You get {discount_label(coupon)}."
        )

    def apply(
        self, coupon_code: Optional[str], student_id: int, commit: bool = True
    ) -> dict:
        """
        Validate a coupon and record its use by the student.

        With ``commit=False`` the usage row is only flushed, leaving the
        surrounding transaction to the caller.
        """
        coupon_type, coupon = self._resolve(coupon_code, student_id)

        usage = CouponUsage(
            student_id=student_id, coupon_type=coupon_type, coupon_id=coupon.id
        )
        self.db.add(usage)
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent redemption won the race for the unique row
            self.db.rollback()
            raise CouponAlreadyUsed()

        if commit:
            self.db.commit()

        logger.info(
            f"Coupon {coupon_type}:{coupon.id} redeemed by student {student_id}"
        )
        return self._result(
            coupon_type,
            coupon,
            f'Coupon "{coupon.title}" applied successfully. You get {discount_label(coupon)}.',
        )
