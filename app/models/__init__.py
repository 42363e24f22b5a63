"""
Models package initialization
Import all models and setup relationships
"""

from .coupon import AdminCoupon, CouponUsage, TeacherCoupon
from .course import Course
from .course_enrollment import CourseEnrollment
from .notification import UserNotification
from .payment_request import PaymentRequest

# Import and setup relationships
from .relations import setup_relationships
from .user import User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "AdminCoupon",
    "Course",
    "CourseEnrollment",
    "CouponUsage",
    "PaymentRequest",
    "TeacherCoupon",
    "User",
    "UserNotification",
]
