from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from app.core.database import Base


class PaymentRequest(Base):
    """
    A student's claim of a manual (bank / mobile wallet) payment for a course.
    Moves from pending to accepted or rejected exactly once, by an admin.
    """

    __tablename__ = "course_payment_requests"

    id = Column(Integer, primary_key=True, index=True)

    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Payment details as entered at checkout
    payment_method = Column(String(50), nullable=False)  # e.g. bkash, nagad, bank
    sender_phone = Column(String(30), nullable=False, default="")
    transaction_id = Column(String(100), nullable=False, default="")
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="BDT")
    coupon_code = Column(String(100), nullable=True)
    invite_code = Column(String(100), nullable=True)

    # Review state
    status = Column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, accepted, rejected
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<PaymentRequest(id={self.id}, course_id={self.course_id}, user_id={self.user_id}, status={self.status})>"
