# app/services/coupon.py
import math
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import CouponValidationError
from app.models.coupon import TeacherCoupon
from app.schemas.coupon import TeacherCouponCreate, TeacherCouponUpdate
from app.services.coupon_ledger import normalize_code

COUPON_TYPES = ("original", "discount")
DISCOUNT_TYPES = ("amount", "percentage")
COUPON_STATUSES = ("active", "inactive")
DISCOUNT_FIELDS = ("discount_type", "discount_amount", "start_at", "expire_at")


def _parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise CouponValidationError(CouponValidationError.INVALID_DISCOUNT_AMOUNT)
    if not amount.is_finite() or amount < 0:
        raise CouponValidationError(CouponValidationError.INVALID_DISCOUNT_AMOUNT)
    return amount


def _check_discount(discount_type: Optional[str], discount_amount) -> Decimal:
    if discount_type not in DISCOUNT_TYPES:
        raise CouponValidationError(CouponValidationError.INVALID_DISCOUNT_TYPE)
    amount = _parse_amount(discount_amount)
    if discount_type == "percentage" and amount > 100:
        raise CouponValidationError(CouponValidationError.PERCENTAGE_TOO_HIGH)
    return amount


class TeacherCouponService:
    """Ownership-scoped CRUD over a teacher's own coupons."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_by_teacher(
        self,
        teacher_id: int,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        max_limit: int = 50,
    ) -> Tuple[List[TeacherCoupon], dict]:
        page = max(1, page)
        limit = min(max_limit, max(1, limit))

        query = self.db.query(TeacherCoupon).filter(
            TeacherCoupon.teacher_id == teacher_id
        )
        if status in COUPON_STATUSES:
            query = query.filter(TeacherCoupon.status == status)

        total = query.count()
        coupons = (
            query.order_by(TeacherCoupon.created_at.desc(), TeacherCoupon.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        pagination = {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) or 1,
        }
        return coupons, pagination

    def get_by_id(self, coupon_id: int, teacher_id: int) -> Optional[TeacherCoupon]:
        return (
            self.db.query(TeacherCoupon)
            .filter(TeacherCoupon.id == coupon_id, TeacherCoupon.teacher_id == teacher_id)
            .first()
        )

    def _code_taken(self, code: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(TeacherCoupon.id).filter(
            func.upper(func.trim(TeacherCoupon.coupon_code)) == code
        )
        if exclude_id is not None:
            query = query.filter(TeacherCoupon.id != exclude_id)
        return query.first() is not None

    def _save(self, coupon: TeacherCoupon) -> TeacherCoupon:
        try:
            self.db.commit()
        except IntegrityError:
            # Unique index on coupon_code caught a concurrent insert
            self.db.rollback()
            raise CouponValidationError(CouponValidationError.CODE_EXISTS)
        self.db.refresh(coupon)
        return coupon

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create(self, teacher_id: int, coupon_in: TeacherCouponCreate) -> TeacherCoupon:
        data = coupon_in.model_dump()

        code = normalize_code(data.get("coupon_code"))
        if not code:
            raise CouponValidationError(CouponValidationError.CODE_REQUIRED)
        title = (data.get("title") or "").strip()
        if not title:
            raise CouponValidationError(CouponValidationError.TITLE_REQUIRED)
        coupon_type = data.get("type")
        if coupon_type not in COUPON_TYPES:
            raise CouponValidationError(CouponValidationError.INVALID_TYPE)

        coupon = TeacherCoupon(
            teacher_id=teacher_id,
            title=title,
            coupon_code=code,
            type=coupon_type,
            status=data.get("status") if data.get("status") in COUPON_STATUSES else "active",
        )
        if coupon_type == "discount":
            coupon.discount_type = data.get("discount_type")
            coupon.discount_amount = _check_discount(
                data.get("discount_type"), data.get("discount_amount")
            )
            coupon.start_at = data.get("start_at")
            coupon.expire_at = data.get("expire_at")

        if self._code_taken(code):
            raise CouponValidationError(CouponValidationError.CODE_EXISTS)

        self.db.add(coupon)
        return self._save(coupon)

    def update(
        self, coupon_id: int, teacher_id: int, coupon_in: TeacherCouponUpdate
    ) -> Optional[TeacherCoupon]:
        coupon = self.get_by_id(coupon_id, teacher_id)
        if not coupon:
            return None

        data = coupon_in.model_dump(exclude_unset=True)
        if not data:
            return coupon

        changes = {}

        if "title" in data:
            title = (data["title"] or "").strip()
            if not title:
                raise CouponValidationError(CouponValidationError.TITLE_REQUIRED)
            changes["title"] = title

        if "coupon_code" in data:
            code = normalize_code(data["coupon_code"])
            if not code:
                raise CouponValidationError(CouponValidationError.CODE_REQUIRED)
            if self._code_taken(code, exclude_id=coupon.id):
                raise CouponValidationError(CouponValidationError.CODE_EXISTS)
            changes["coupon_code"] = code

        if "status" in data:
            if data["status"] not in COUPON_STATUSES:
                raise CouponValidationError(CouponValidationError.INVALID_STATUS)
            changes["status"] = data["status"]

        if "type" in data:
            if data["type"] not in COUPON_TYPES:
                raise CouponValidationError(CouponValidationError.INVALID_TYPE)
            changes["type"] = data["type"]

        if changes.get("type", coupon.type) == "original":
            changes.update(dict.fromkeys(DISCOUNT_FIELDS))
        elif "type" in changes or any(field in data for field in DISCOUNT_FIELDS):
            discount_type = data.get("discount_type", coupon.discount_type)
            changes["discount_amount"] = _check_discount(
                discount_type, data.get("discount_amount", coupon.discount_amount)
            )
            changes["discount_type"] = discount_type
            for field in ("start_at", "expire_at"):
                if field in data:
                    changes[field] = data[field]

        for field, value in changes.items():
            setattr(coupon, field, value)

        return self._save(coupon)

    def update_status(
        self, coupon_id: int, teacher_id: int, status: Optional[str]
    ) -> Optional[TeacherCoupon]:
        if status not in COUPON_STATUSES:
            raise CouponValidationError(CouponValidationError.INVALID_STATUS)
        coupon = self.get_by_id(coupon_id, teacher_id)
        if not coupon:
            return None
        coupon.status = status
        return self._save(coupon)

    def delete(self, coupon_id: int, teacher_id: int) -> bool:
        deleted = (
            self.db.query(TeacherCoupon)
            .filter(TeacherCoupon.id == coupon_id, TeacherCoupon.teacher_id == teacher_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted > 0
