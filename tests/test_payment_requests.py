from decimal import Decimal

import pytest

from app.core.dispatch import BestEffortDispatcher
from app.core.exceptions import CouponAlreadyUsed
from app.models import CouponUsage, CourseEnrollment, PaymentRequest, UserNotification
from app.routers.payment_request import get_payment_request_service
from app.services.payment_request import PaymentRequestService
from main import app


class ExplodingEnrollment:
    def enroll_user(self, *args, **kwargs):
        raise RuntimeError("enrollment store unavailable")


def _status(db, request_id):
    db.expire_all()
    return db.get(PaymentRequest, request_id).status


# ============================================================================
# Admin review: accept
# ============================================================================


class TestAccept:
    def test_accept_enrolls_student(
        self, client, db, auth_headers, admin, student, course, make_payment_request, sms
    ):
        pr = make_payment_request()

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {
            "message": "Payment accepted; student has been enrolled.",
            "requestId": pr.id,
        }
        db.expire_all()
        reviewed = db.get(PaymentRequest, pr.id)
        assert reviewed.status == "accepted"
        assert reviewed.reviewed_by == admin.id
        assert reviewed.reviewed_at is not None

        enrollment = db.query(CourseEnrollment).filter_by(user_id=student.id).one()
        assert enrollment.course_id == course.id
        assert enrollment.price_paid == Decimal("1200.00")
        assert enrollment.currency == "BDT"

    def test_accept_sends_notification_and_sms(
        self, client, db, auth_headers, admin, student, make_payment_request, sms
    ):
        pr = make_payment_request(sender_phone=" 01712345678 ")

        client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        notification = db.query(UserNotification).filter_by(user_id=student.id).one()
        assert notification.type == "payment_accepted"
        assert notification.title == "Payment accepted"
        assert notification.body == (
            'Your payment for "Intro to Python" has been accepted. '
            "You now have access to the course."
        )
        assert sms.sent == [("accepted", "01712345678", "Intro to Python")]

    def test_second_accept_is_404(self, client, db, auth_headers, admin, make_payment_request):
        pr = make_payment_request()
        headers = auth_headers(admin)

        first = client.patch(f"/payment-requests/{pr.id}/accept", headers=headers)
        second = client.patch(f"/payment-requests/{pr.id}/accept", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 404
        assert second.json()["detail"] == "Request not found or already processed"
        assert db.query(CourseEnrollment).count() == 1

    def test_unknown_request_is_404(self, client, auth_headers, admin):
        response = client.patch("/payment-requests/9999/accept", headers=auth_headers(admin))
        assert response.status_code == 404

    def test_accept_redeems_coupon(
        self, client, db, auth_headers, admin, student, make_payment_request, make_admin_coupon
    ):
        coupon = make_admin_coupon(code="WELCOME")
        pr = make_payment_request(coupon_code="welcome")

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        assert response.status_code == 200
        usage = db.query(CouponUsage).one()
        assert (usage.student_id, usage.coupon_type, usage.coupon_id) == (
            student.id,
            "admin",
            coupon.id,
        )

    def test_used_coupon_blocks_accept(
        self, client, db, auth_headers, admin, student, make_payment_request, make_admin_coupon
    ):
        coupon = make_admin_coupon(code="WELCOME")
        db.add(CouponUsage(student_id=student.id, coupon_type="admin", coupon_id=coupon.id))
        db.commit()
        pr = make_payment_request(coupon_code="WELCOME")

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        assert response.status_code == 500
        assert response.json()["detail"] == "This coupon has already been used with your account"
        assert _status(db, pr.id) == "pending"
        assert db.query(CourseEnrollment).count() == 0

    def test_enrollment_failure_rolls_everything_back(
        self, db, admin, make_payment_request, make_admin_coupon
    ):
        make_admin_coupon(code="WELCOME")
        pr = make_payment_request(coupon_code="WELCOME")
        service = PaymentRequestService(db, enrollment_service=ExplodingEnrollment())

        with pytest.raises(RuntimeError):
            service.accept(pr.id, admin.id)

        assert _status(db, pr.id) == "pending"
        assert db.query(CouponUsage).count() == 0
        assert db.query(UserNotification).count() == 0

    def test_enrollment_failure_over_http_is_opaque_500(
        self, client, db, auth_headers, admin, make_payment_request
    ):
        pr = make_payment_request()
        app.dependency_overrides[get_payment_request_service] = lambda: PaymentRequestService(
            db, enrollment_service=ExplodingEnrollment()
        )

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert _status(db, pr.id) == "pending"

    def test_sms_failure_does_not_affect_outcome(
        self, client, db, auth_headers, admin, make_payment_request, sms
    ):
        sms.fail = True
        pr = make_payment_request()

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(admin))

        assert response.status_code == 200
        assert _status(db, pr.id) == "accepted"

    def test_notification_failure_does_not_affect_outcome(
        self, db, admin, make_payment_request
    ):
        pr = make_payment_request()

        def broken_notifier(*args, **kwargs):
            raise RuntimeError("notification store down")

        service = PaymentRequestService(
            db, notifier=broken_notifier, dispatcher=BestEffortDispatcher()
        )
        result = service.accept(pr.id, admin.id)

        assert result == {"accepted": True, "request_id": pr.id}
        assert _status(db, pr.id) == "accepted"

    def test_already_enrolled_student_is_still_accepted(
        self, db, admin, student, course, make_payment_request
    ):
        db.add(CourseEnrollment(user_id=student.id, course_id=course.id, enrollment_type="free"))
        db.commit()
        pr = make_payment_request()

        result = PaymentRequestService(db).accept(pr.id, admin.id)

        assert result["accepted"] is True
        assert db.query(CourseEnrollment).count() == 1

    def test_only_admins_can_accept(self, client, auth_headers, student, make_payment_request):
        pr = make_payment_request()
        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=auth_headers(student))
        assert response.status_code == 403


# ============================================================================
# Admin review: reject
# ============================================================================


class TestReject:
    def test_reject(self, client, db, auth_headers, admin, make_payment_request, sms):
        pr = make_payment_request()

        response = client.patch(f"/payment-requests/{pr.id}/reject", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {"message": "Payment request rejected.", "requestId": pr.id}
        assert _status(db, pr.id) == "rejected"
        assert db.query(CourseEnrollment).count() == 0
        assert sms.sent == [("declined", "01712345678", "Intro to Python")]

    def test_reject_after_accept_is_404(self, client, db, auth_headers, admin, make_payment_request):
        pr = make_payment_request()
        headers = auth_headers(admin)
        client.patch(f"/payment-requests/{pr.id}/accept", headers=headers)

        response = client.patch(f"/payment-requests/{pr.id}/reject", headers=headers)

        assert response.status_code == 404
        assert _status(db, pr.id) == "accepted"

    def test_accept_after_reject_is_404(self, client, db, auth_headers, admin, make_payment_request):
        pr = make_payment_request()
        headers = auth_headers(admin)
        client.patch(f"/payment-requests/{pr.id}/reject", headers=headers)

        response = client.patch(f"/payment-requests/{pr.id}/accept", headers=headers)

        assert response.status_code == 404
        assert _status(db, pr.id) == "rejected"
        assert db.query(CourseEnrollment).count() == 0

    def test_reject_without_phone_sends_nothing(
        self, client, auth_headers, admin, make_payment_request, sms
    ):
        pr = make_payment_request(sender_phone="")
        client.patch(f"/payment-requests/{pr.id}/reject", headers=auth_headers(admin))
        assert sms.sent == []


# ============================================================================
# Admin listing
# ============================================================================


class TestList:
    def test_list_joins_course_and_student(
        self, client, auth_headers, admin, student, make_payment_request
    ):
        make_payment_request()

        body = client.get("/payment-requests", headers=auth_headers(admin)).json()

        assert body["total"] == 1
        item = body["requests"][0]
        assert item["courseTitle"] == "Intro to Python"
        assert item["userEmail"] == student.email
        assert item["userName"] == "Karim Ahmed"
        assert item["amount"] == 1200.0
        assert item["status"] == "pending"

    def test_newest_first(self, db, make_payment_request):
        first = make_payment_request(transaction_id="A")
        second = make_payment_request(transaction_id="B")

        requests, _ = PaymentRequestService(db).list_requests()

        assert [r["id"] for r in requests] == [second.id, first.id]

    @pytest.mark.parametrize("limit, expected", [(0, 1), (-3, 1), (1000, 100), (2, 2)])
    def test_limit_is_clamped(self, db, make_payment_request, limit, expected):
        for i in range(3):
            make_payment_request(transaction_id=f"T{i}")

        requests, total = PaymentRequestService(db).list_requests(limit=limit)

        assert total == 3
        assert len(requests) == min(expected, 3)

    def test_status_filter(self, db, make_payment_request):
        make_payment_request(status="accepted")
        pending = make_payment_request()

        requests, total = PaymentRequestService(db).list_requests(status="pending")

        assert total == 1
        assert requests[0]["id"] == pending.id

    @pytest.mark.parametrize("term", ["intro", "KARIM", "student", "0171999", "bk-777"])
    def test_search(self, db, make_payment_request, term):
        make_payment_request(sender_phone="01719998888", transaction_id="BK-777")

        _, total = PaymentRequestService(db).list_requests(search=term)

        assert total == 1

    def test_search_without_match(self, db, make_payment_request):
        make_payment_request()
        requests, total = PaymentRequestService(db).list_requests(search="nothing-like-this")
        assert (requests, total) == ([], 0)

    def test_q_alias(self, client, auth_headers, admin, make_payment_request):
        make_payment_request(transaction_id="UNIQUE-42")
        make_payment_request(transaction_id="OTHER")

        body = client.get(
            "/payment-requests", params={"q": "unique-42"}, headers=auth_headers(admin)
        ).json()

        assert body["total"] == 1

    def test_teachers_cannot_list(self, client, auth_headers, teacher):
        assert client.get("/payment-requests", headers=auth_headers(teacher)).status_code == 403


# ============================================================================
# Student checkout and history
# ============================================================================


class TestStudentCheckout:
    def _payload(self, course, **overrides):
        payload = {
            "courseId": course.id,
            "paymentMethod": "bkash",
            "senderPhone": "01712345678",
            "transactionId": "8N7A6B5C",
            "amount": 1200,
        }
        payload.update(overrides)
        return payload

    def test_create_pending_request(self, client, auth_headers, student, course, sms):
        response = client.post(
            "/payment-requests", json=self._payload(course), headers=auth_headers(student)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["currency"] == "BDT"
        assert body["userId"] == student.id
        assert sms.sent == [("pending", "01712345678", None)]

    def test_create_with_valid_coupon(
        self, client, db, auth_headers, student, course, make_admin_coupon
    ):
        make_admin_coupon(code="WELCOME")

        response = client.post(
            "/payment-requests",
            json=self._payload(course, couponCode=" welcome "),
            headers=auth_headers(student),
        )

        assert response.status_code == 201
        assert response.json()["couponCode"] == "welcome"
        # Checkout only previews the coupon
        assert db.query(CouponUsage).count() == 0

    def test_create_with_bad_coupon(self, client, db, auth_headers, student, course):
        response = client.post(
            "/payment-requests",
            json=self._payload(course, couponCode="NOPE"),
            headers=auth_headers(student),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or inactive coupon"
        assert db.query(PaymentRequest).count() == 0

    def test_unknown_course(self, client, auth_headers, student, course):
        response = client.post(
            "/payment-requests",
            json=self._payload(course, courseId=course.id + 100),
            headers=auth_headers(student),
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Course not found"

    def test_negative_amount_is_rejected(self, client, auth_headers, student, course):
        response = client.post(
            "/payment-requests",
            json=self._payload(course, amount=-5),
            headers=auth_headers(student),
        )
        assert response.status_code == 422

    def test_create_then_accept_flow(self, client, db, auth_headers, admin, student, course):
        created = client.post(
            "/payment-requests", json=self._payload(course), headers=auth_headers(student)
        ).json()

        client.patch(f"/payment-requests/{created['id']}/accept", headers=auth_headers(admin))

        mine = client.get("/payment-requests/mine", headers=auth_headers(student)).json()
        assert mine[0]["status"] == "accepted"
        assert db.query(CourseEnrollment).filter_by(user_id=student.id).count() == 1


class TestStudentHistory:
    def test_mine_lists_only_own_requests(
        self, client, auth_headers, student, make_user, make_payment_request
    ):
        own = make_payment_request()
        other = make_user("student")
        make_payment_request(user_id=other.id)

        body = client.get("/payment-requests/mine", headers=auth_headers(student)).json()

        assert [item["id"] for item in body] == [own.id]
        assert body[0]["courseTitle"] == "Intro to Python"
        assert body[0]["coursePrice"] == 1500.0
        assert body[0]["courseDiscountPrice"] == 1200.0
        assert body[0]["teacherName"] == "Rahim Uddin"

    def test_mine_status_filter(self, client, auth_headers, student, make_payment_request):
        make_payment_request(status="rejected")
        pending = make_payment_request()

        body = client.get(
            "/payment-requests/mine", params={"status": "pending"}, headers=auth_headers(student)
        ).json()

        assert [item["id"] for item in body] == [pending.id]

    def test_single_request(self, client, auth_headers, student, make_user, make_payment_request):
        own = make_payment_request()
        other = make_user("student")
        foreign = make_payment_request(user_id=other.id)
        headers = auth_headers(student)

        assert client.get(f"/payment-requests/mine/{own.id}", headers=headers).status_code == 200
        missing = client.get(f"/payment-requests/mine/{foreign.id}", headers=headers)
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Payment request not found"


class TestServiceWithoutHttp:
    def test_coupon_failure_leaves_request_pending(
        self, db, admin, student, make_payment_request, make_teacher_coupon
    ):
        coupon = make_teacher_coupon(code="USED")
        db.add(CouponUsage(student_id=student.id, coupon_type="teacher", coupon_id=coupon.id))
        db.commit()
        pr = make_payment_request(coupon_code="USED")

        with pytest.raises(CouponAlreadyUsed):
            PaymentRequestService(db).accept(pr.id, admin.id)

        assert _status(db, pr.id) == "pending"
