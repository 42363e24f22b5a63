# app/services/course_enrollment.py
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.core.exceptions import EnrollmentError
from app.models.course import Course
from app.models.course_enrollment import CourseEnrollment

logger = logging.getLogger(__name__)


class EnrollmentService:
    def __init__(self, db: Session):
        self.db = db

    def enroll_user(
        self,
        user_id: int,
        course_id: int,
        invite_code: Optional[str] = None,
        amount_paid: Optional[Decimal] = None,
        currency: Optional[str] = None,
        commit: bool = True,
    ) -> CourseEnrollment:
        """
        Enroll a user in a course.
        - Raises EnrollmentError if the course does not exist
        - An existing enrollment is returned unchanged
        - With commit=False the insert is only flushed so the caller owns the transaction
        """
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise EnrollmentError("Course not found")

        existing = self.get_enrollment(user_id, course_id)
        if existing:
            logger.info(f"User {user_id} already enrolled in course {course_id}")
            return existing

        enrollment = CourseEnrollment(
            user_id=user_id,
            course_id=course_id,
            enrollment_type="paid",
            price_paid=amount_paid,
            currency=currency,
            invite_code=invite_code,
        )
        self.db.add(enrollment)
        self.db.flush()

        if commit:
            self.db.commit()
            self.db.refresh(enrollment)

        logger.info(f"User {user_id} enrolled in course {course_id}")
        return enrollment

    def get_enrollment(self, user_id: int, course_id: int) -> Optional[CourseEnrollment]:
        """Get specific enrollment for a user and course"""
        return (
            self.db.query(CourseEnrollment)
            .filter(
                and_(
                    CourseEnrollment.user_id == user_id,
                    CourseEnrollment.course_id == course_id,
                )
            )
            .first()
        )
