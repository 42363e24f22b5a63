# app/models/course_enrollment.py
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


class CourseEnrollment(Base):
    """
    Grants a user access to a course.
    Paid enrollments record what was paid and any invite code used at checkout.
    """

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_enrollments_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)

    enrollment_type = Column(
        String(50), nullable=False, default="paid"
    )  # 'free', 'paid'
    price_paid = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(10), nullable=True)
    invite_code = Column(String(100), nullable=True)

    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<CourseEnrollment(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, type={self.enrollment_type})>"
