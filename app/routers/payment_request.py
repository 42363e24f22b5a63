# app/routers/payment_request.py
from functools import partial
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db, get_session_factory
from app.core.dependencies import get_current_admin, get_current_student
from app.core.dispatch import BestEffortDispatcher
from app.core.exceptions import CouponError
from app.models.user import User
from app.schemas.payment_request import (
    AdminPaymentRequestListResponse,
    PaymentRequestCreate,
    PaymentRequestDecisionResponse,
    PaymentRequestResponse,
    StudentPaymentRequestItem,
)
from app.services.notification import record_user_notification
from app.services.payment_request import PaymentRequestService
from app.utils.sms_service import SmsService, get_sms_service

router = APIRouter(
    prefix="/payment-requests",
    tags=["Payment Requests"],
    responses={404: {"description": "Not found"}},
)

NOT_FOUND_OR_PROCESSED = "Request not found or already processed"


def get_payment_request_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    sms: SmsService = Depends(get_sms_service),
) -> PaymentRequestService:
    return PaymentRequestService(
        db,
        notifier=partial(record_user_notification, session_factory),
        sms=sms,
        dispatcher=BestEffortDispatcher(background_tasks),
    )


# ==================== Admin Endpoints ====================


@router.get("", response_model=AdminPaymentRequestListResponse)
def list_payment_requests(
    skip: int = Query(0, description="Rows to skip"),
    limit: int = Query(20, description="Page size, clamped to 1..100"),
    status: Optional[str] = Query(None, description="pending, accepted or rejected"),
    search: Optional[str] = Query(None, description="Course, student, phone or transaction id"),
    q: Optional[str] = Query(None, include_in_schema=False),
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_admin: User = Depends(get_current_admin),
):
    """
    List payment requests for review.
    Only admins can list payment requests.
    """
    requests, total = service.list_requests(
        skip=skip, limit=limit, status=status, search=search or q
    )
    return {"requests": requests, "total": total}


@router.patch("/{request_id}/accept", response_model=PaymentRequestDecisionResponse)
def accept_payment_request(
    request_id: int,
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_admin: User = Depends(get_current_admin),
):
    """
    Accept a pending payment request and enroll the student.
    """
    try:
        result = service.accept(request_id, current_admin.id)
    except CouponError as e:
        # The request stays pending; the admin sees which coupon rule failed
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message
        )

    if not result:
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_PROCESSED)
    return {
        "message": "Payment accepted; student has been enrolled.",
        "request_id": result["request_id"],
    }


@router.patch("/{request_id}/reject", response_model=PaymentRequestDecisionResponse)
def reject_payment_request(
    request_id: int,
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_admin: User = Depends(get_current_admin),
):
    """
    Reject a pending payment request.
    """
    result = service.reject(request_id, current_admin.id)
    if not result:
        raise HTTPException(status_code=404, detail=NOT_FOUND_OR_PROCESSED)
    return {"message": "Payment request rejected.", "request_id": result["request_id"]}


# ==================== Student Endpoints ====================


@router.post("", response_model=PaymentRequestResponse, status_code=201)
def create_payment_request(
    request_in: PaymentRequestCreate,
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_student: User = Depends(get_current_student),
):
    """
    Submit a manual payment for admin review.
    Enrollment happens only when an admin accepts the request.
    """
    try:
        payment_request = service.create(current_student.id, request_in)
    except CouponError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not payment_request:
        raise HTTPException(status_code=404, detail="Course not found")
    return payment_request


@router.get("/mine", response_model=List[StudentPaymentRequestItem])
def list_my_payment_requests(
    status: Optional[str] = Query(None),
    limit: int = Query(50),
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_student: User = Depends(get_current_student),
):
    return service.get_by_student(current_student.id, status=status, limit=limit)


@router.get("/mine/{request_id}", response_model=StudentPaymentRequestItem)
def get_my_payment_request(
    request_id: int,
    service: PaymentRequestService = Depends(get_payment_request_service),
    current_student: User = Depends(get_current_student),
):
    payment_request = service.get_by_id_for_student(request_id, current_student.id)
    if not payment_request:
        raise HTTPException(status_code=404, detail="Payment request not found")
    return payment_request
