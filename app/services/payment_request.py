# app/services/payment_request.py
import logging
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, aliased

from app.core.config import settings
from app.core.decorator import db_exception
from app.core.dispatch import BestEffortDispatcher
from app.models.course import Course
from app.models.payment_request import PaymentRequest
from app.models.user import User
from app.schemas.payment_request import PaymentRequestCreate
from app.services.coupon_ledger import CouponLedgerService
from app.services.course_enrollment import EnrollmentService
from app.services.notification import UserNotificationService
from app.utils.sms_service import SmsService

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
PAYMENT_STATUSES = (PENDING, ACCEPTED, REJECTED)


def _request_fields(pr: PaymentRequest) -> dict:
    return {
        "id": pr.id,
        "course_id": pr.course_id,
        "user_id": pr.user_id,
        "payment_method": pr.payment_method,
        "sender_phone": pr.sender_phone,
        "transaction_id": pr.transaction_id,
        "amount": float(pr.amount) if pr.amount is not None else 0.0,
        "currency": pr.currency,
        "status": pr.status,
        "coupon_code": pr.coupon_code,
        "invite_code": pr.invite_code,
        "reviewed_at": pr.reviewed_at,
        "created_at": pr.created_at,
    }


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class PaymentRequestService:
    """
    Manual payment requests: student checkout and admin review.

    Acceptance redeems the coupon, enrolls the student and marks the request
    accepted in one transaction. Notification and SMS run afterwards through
    the dispatcher and never affect the outcome.
    """

    def __init__(
        self,
        db: Session,
        coupon_ledger: Optional[CouponLedgerService] = None,
        enrollment_service: Optional[EnrollmentService] = None,
        notifier: Optional[Callable[..., object]] = None,
        sms: Optional[SmsService] = None,
        dispatcher: Optional[BestEffortDispatcher] = None,
    ):
        self.db = db
        self.coupon_ledger = coupon_ledger or CouponLedgerService(db)
        self.enrollment_service = enrollment_service or EnrollmentService(db)
        self.notifier = notifier or UserNotificationService(db).create
        self.sms = sms
        self.dispatcher = dispatcher or BestEffortDispatcher()

    # ------------------------------------------------------------------
    # Student checkout
    # ------------------------------------------------------------------
    @db_exception
    def create(self, user_id: int, request_in: PaymentRequestCreate) -> Optional[PaymentRequest]:
        """
        Record a pending payment request. Returns None if the course does not exist.
        A supplied coupon is previewed (not redeemed) so obvious mistakes fail early.
        """
        course = self.db.query(Course).filter(Course.id == request_in.course_id).first()
        if not course:
            return None

        coupon_code = (request_in.coupon_code or "").strip() or None
        if coupon_code:
            self.coupon_ledger.validate(coupon_code, user_id)

        sender_phone = (request_in.sender_phone or "").strip()
        payment_request = PaymentRequest(
            course_id=course.id,
            user_id=user_id,
            payment_method=request_in.payment_method,
            sender_phone=sender_phone,
            transaction_id=(request_in.transaction_id or "").strip(),
            amount=request_in.amount,
            currency=(request_in.currency or "").strip() or settings.payment_currency,
            coupon_code=coupon_code,
            invite_code=(request_in.invite_code or "").strip() or None,
            status=PENDING,
        )
        self.db.add(payment_request)
        self.db.commit()
        self.db.refresh(payment_request)

        if sender_phone and self.sms is not None:
            self.dispatcher.submit(
                "Payment pending SMS", self.sms.send_payment_pending_sms, sender_phone
            )

        return payment_request

    # ------------------------------------------------------------------
    # Admin listing
    # ------------------------------------------------------------------
    def list_requests(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[dict], int]:
        skip = max(0, skip)
        limit = min(settings.payment_requests_max_page_size, max(1, limit))

        query = (
            self.db.query(PaymentRequest, Course.title, User.email, User.full_name)
            .join(Course, Course.id == PaymentRequest.course_id)
            .join(User, User.id == PaymentRequest.user_id)
        )

        if status in PAYMENT_STATUSES:
            query = query.filter(PaymentRequest.status == status)

        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Course.title.ilike(term),
                    User.email.ilike(term),
                    func.coalesce(User.full_name, "").ilike(term),
                    PaymentRequest.sender_phone.ilike(term),
                    PaymentRequest.transaction_id.ilike(term),
                )
            )

        total = query.count()
        rows = (
            query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

        requests = [
            {
                **_request_fields(pr),
                "course_title": course_title,
                "user_email": email,
                "user_name": full_name or email,
            }
            for pr, course_title, email, full_name in rows
        ]
        return requests, total

    # ------------------------------------------------------------------
    # Student history
    # ------------------------------------------------------------------
    def _student_query(self):
        teacher = aliased(User)
        return (
            self.db.query(
                PaymentRequest,
                Course.title,
                Course.price,
                Course.discount_price,
                Course.currency,
                teacher.full_name,
                teacher.email,
            )
            .join(Course, Course.id == PaymentRequest.course_id)
            .outerjoin(teacher, teacher.id == Course.teacher_id)
        )

    @staticmethod
    def _student_item(row) -> dict:
        pr, title, price, discount_price, currency, teacher_name, teacher_email = row
        return {
            **_request_fields(pr),
            "course_title": title,
            "course_price": _optional_float(price) or 0.0,
            "course_discount_price": _optional_float(discount_price),
            "course_currency": currency,
            "teacher_name": teacher_name or teacher_email,
            "teacher_email": teacher_email,
        }

    def get_by_student(
        self, user_id: int, status: Optional[str] = None, limit: int = 50
    ) -> List[dict]:
        limit = min(50, max(1, limit))
        query = self._student_query().filter(PaymentRequest.user_id == user_id)
        if status in PAYMENT_STATUSES:
            query = query.filter(PaymentRequest.status == status)
        rows = (
            query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
            .limit(limit)
            .all()
        )
        return [self._student_item(row) for row in rows]

    def get_by_id_for_student(self, request_id: int, user_id: int) -> Optional[dict]:
        row = (
            self._student_query()
            .filter(PaymentRequest.id == request_id, PaymentRequest.user_id == user_id)
            .first()
        )
        return self._student_item(row) if row else None

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------
    def _get_pending(self, request_id: int) -> Optional[Tuple[PaymentRequest, str]]:
        return (
            self.db.query(PaymentRequest, Course.title)
            .join(Course, Course.id == PaymentRequest.course_id)
            .filter(PaymentRequest.id == request_id, PaymentRequest.status == PENDING)
            .first()
        )

    def _mark_reviewed(self, request_id: int, status: str, admin_user_id: Optional[int]) -> int:
        # Only a pending row can move; a concurrent reviewer finds nothing to update
        return (
            self.db.query(PaymentRequest)
            .filter(PaymentRequest.id == request_id, PaymentRequest.status == PENDING)
            .update(
                {
                    PaymentRequest.status: status,
                    PaymentRequest.reviewed_at: func.now(),
                    PaymentRequest.reviewed_by: admin_user_id,
                    PaymentRequest.updated_at: func.now(),
                },
                synchronize_session=False,
            )
        )

    def accept(self, request_id: int, admin_user_id: Optional[int]) -> Optional[dict]:
        """
        Accept a pending request. Returns None when it is missing or already reviewed.

        Coupon redemption, enrollment and the status change commit together or
        not at all; any failure is rolled back and re-raised.
        """
        found = self._get_pending(request_id)
        if not found:
            return None

        payment_request, course_title = found
        course_title = course_title or "Course"
        user_id = payment_request.user_id
        course_id = payment_request.course_id
        coupon_code = payment_request.coupon_code
        sender_phone = (payment_request.sender_phone or "").strip()
        amount_paid = (
            Decimal(payment_request.amount) if payment_request.amount is not None else None
        )
        currency = (payment_request.currency or "").strip() or None

        try:
            if coupon_code:
                self.coupon_ledger.apply(coupon_code, user_id, commit=False)

            self.enrollment_service.enroll_user(
                user_id,
                course_id,
                invite_code=payment_request.invite_code or None,
                amount_paid=amount_paid,
                currency=currency,
                commit=False,
            )

            if not self._mark_reviewed(request_id, ACCEPTED, admin_user_id):
                self.db.rollback()
                return None

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Accepting payment request {request_id} failed, rolled back: {e}")
            raise

        logger.info(f"Payment request {request_id} accepted by admin {admin_user_id}")

        self.dispatcher.submit(
            "Payment accepted notification",
            self.notifier,
            user_id,
            type="payment_accepted",
            title="Payment accepted",
            body=(
                f'Your payment for "{course_title}" has been accepted. '
                "You now have access to the course."
            ),
            course_id=course_id,
        )
        if sender_phone and self.sms is not None:
            self.dispatcher.submit(
                "Payment accepted SMS",
                self.sms.send_payment_accepted_sms,
                sender_phone,
                course_title,
            )

        return {"accepted": True, "request_id": request_id}

    def reject(self, request_id: int, admin_user_id: Optional[int]) -> Optional[dict]:
        """Reject a pending request. Returns None when it is missing or already reviewed."""
        found = self._get_pending(request_id)
        if not found:
            return None

        payment_request, course_title = found
        sender_phone = (payment_request.sender_phone or "").strip()

        updated = self._mark_reviewed(request_id, REJECTED, admin_user_id)
        self.db.commit()
        if not updated:
            return None

        logger.info(f"Payment request {request_id} rejected by admin {admin_user_id}")

        if sender_phone and self.sms is not None:
            self.dispatcher.submit(
                "Payment declined SMS",
                self.sms.send_payment_declined_sms,
                sender_phone,
                course_title,
            )

        return {"rejected": True, "request_id": request_id}
