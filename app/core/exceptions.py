"""
Domain exceptions raised by the service layer.

Routers translate them 1:1 into HTTP 400 responses; the message is the
stable string clients match against.
"""


class CouponError(ValueError):
    """Base class for coupon redemption failures."""

    kind = "CouponError"
    default_message = "Coupon error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CouponCodeRequired(CouponError):
    kind = "CodeRequired"
    default_message = "Coupon code is required"


class InvalidCoupon(CouponError):
    kind = "InvalidCoupon"
    default_message = "Invalid or inactive coupon"


class CouponExpiredOrNotYetValid(CouponError):
    kind = "ExpiredOrNotYetValid"
    default_message = "Coupon has expired or is not yet valid"


class CouponAlreadyUsed(CouponError):
    kind = "AlreadyUsed"
    default_message = "This coupon has already been used with your account"


class CouponValidationError(ValueError):
    """Teacher coupon create/update rule violation."""

    CODE_REQUIRED = "Coupon code is required"
    CODE_EXISTS = "Coupon code already exists"
    TITLE_REQUIRED = "Title is required"
    INVALID_TYPE = "Type must be original or discount"
    INVALID_DISCOUNT_TYPE = "Discount type must be amount or percentage"
    INVALID_DISCOUNT_AMOUNT = "Invalid discount amount"
    PERCENTAGE_TOO_HIGH = "Percentage discount cannot exceed 100"
    INVALID_STATUS = "Status must be active or inactive"


class EnrollmentError(ValueError):
    """Raised when a student cannot be enrolled in a course."""
