# app/routers/coupon.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import get_current_student, get_current_teacher
from app.core.exceptions import CouponError, CouponValidationError
from app.core.limiter import limiter
from app.models.user import User
from app.schemas.base import MessageResponse
from app.schemas.coupon import (
    CouponCodeRequest,
    CouponRedemptionResponse,
    CouponStatusUpdate,
    TeacherCouponCreate,
    TeacherCouponListResponse,
    TeacherCouponResponse,
    TeacherCouponUpdate,
)
from app.services.coupon import TeacherCouponService
from app.services.coupon_ledger import CouponLedgerService

router = APIRouter(
    prefix="/coupons",
    tags=["Coupons"],
    responses={404: {"description": "Not found"}},
)


# ==================== Student Endpoints ====================


@router.post("/validate", response_model=CouponRedemptionResponse)
@limiter.limit(settings.coupon_rate_limit)
def validate_coupon(
    request: Request,
    body: CouponCodeRequest,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    """
    Preview a coupon at checkout. Does not consume it.
    """
    service = CouponLedgerService(db)
    try:
        return service.validate(body.coupon_code, current_student.id)
    except CouponError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/apply", response_model=CouponRedemptionResponse)
@limiter.limit(settings.coupon_rate_limit)
def apply_coupon(
    request: Request,
    body: CouponCodeRequest,
    db: Session = Depends(get_db),
    current_student: User = Depends(get_current_student),
):
    """
    Redeem a coupon for the current student. Each coupon works once per student.
    """
    service = CouponLedgerService(db)
    try:
        return service.apply(body.coupon_code, current_student.id)
    except CouponError as e:
        raise HTTPException(status_code=400, detail=e.message)


# ==================== Teacher Endpoints ====================


@router.get("", response_model=TeacherCouponListResponse)
def list_coupons(
    page: int = Query(1),
    limit: int = Query(20),
    status: Optional[str] = Query(None, description="active or inactive"),
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    service = TeacherCouponService(db)
    coupons, pagination = service.list_by_teacher(
        current_teacher.id,
        page=page,
        limit=limit,
        status=status,
        max_limit=settings.coupons_max_page_size,
    )
    return {"coupons": coupons, **pagination}


@router.get("/{coupon_id}", response_model=TeacherCouponResponse)
def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    coupon = TeacherCouponService(db).get_by_id(coupon_id, current_teacher.id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.post("", response_model=TeacherCouponResponse, status_code=201)
def create_coupon(
    coupon_in: TeacherCouponCreate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    service = TeacherCouponService(db)
    try:
        return service.create(current_teacher.id, coupon_in)
    except CouponValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{coupon_id}", response_model=TeacherCouponResponse)
def update_coupon(
    coupon_id: int,
    coupon_in: TeacherCouponUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    service = TeacherCouponService(db)
    try:
        coupon = service.update(coupon_id, current_teacher.id, coupon_in)
    except CouponValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.patch("/{coupon_id}/status", response_model=TeacherCouponResponse)
def update_coupon_status(
    coupon_id: int,
    status_in: CouponStatusUpdate,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    service = TeacherCouponService(db)
    try:
        coupon = service.update_status(coupon_id, current_teacher.id, status_in.status)
    except CouponValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.delete("/{coupon_id}", response_model=MessageResponse)
def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    current_teacher: User = Depends(get_current_teacher),
):
    deleted = TeacherCouponService(db).delete(coupon_id, current_teacher.id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return {"message": "Coupon deleted successfully"}
