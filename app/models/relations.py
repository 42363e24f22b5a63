# app/models/relations.py

from sqlalchemy.orm import relationship

from .coupon import TeacherCoupon
from .course import Course
from .course_enrollment import CourseEnrollment
from .payment_request import PaymentRequest
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Courses ---
    Course.teacher = relationship("User", foreign_keys=[Course.teacher_id])

    # --- Enrollments ---
    CourseEnrollment.user = relationship("User", backref="enrollments")
    CourseEnrollment.course = relationship("Course", backref="enrollments")

    # --- Payment requests ---
    PaymentRequest.course = relationship("Course")
    PaymentRequest.user = relationship("User", foreign_keys=[PaymentRequest.user_id])
    PaymentRequest.reviewer = relationship(
        "User", foreign_keys=[PaymentRequest.reviewed_by]
    )

    # --- Coupons ---
    TeacherCoupon.teacher = relationship("User", backref="coupons")
