from .coupon import router as coupon_router
from .notification import router as notification_router
from .payment_request import router as payment_request_router

routes = [
    payment_request_router,
    coupon_router,
    notification_router,
]
