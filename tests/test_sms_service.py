import pytest
import requests

from app.utils.sms_service import (
    PAYMENT_ACCEPTED_MESSAGE,
    PAYMENT_DECLINED_MESSAGE,
    SmsConfig,
    SmsService,
    normalize_phone,
)


class FakeResponse:
    def __init__(self, payload=None, bad_json=False):
        self.payload = payload
        self.bad_json = bad_json

    def json(self):
        if self.bad_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


CONFIG = SmsConfig(api_key="key", sender_id="8809617", base_url="https://sms.example/api")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("01712345678", "8801712345678"),
        ("017-1234-5678", "8801712345678"),
        ("+8801712345678", "8801712345678"),
        ("8801712345678", "8801712345678"),
        ("1712345678", None),
        ("12345", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_not_configured_is_skipped():
    session = FakeSession()
    result = SmsService(SmsConfig(), session=session).send_sms("01712345678", "hi")
    assert result.skipped is True
    assert result.sent is False
    assert session.calls == []


def test_invalid_phone_is_not_sent():
    session = FakeSession()
    result = SmsService(CONFIG, session=session).send_sms("123", "hi")
    assert result.sent is False
    assert session.calls == []


def test_empty_message_is_not_sent():
    result = SmsService(CONFIG, session=FakeSession()).send_sms("01712345678", "   ")
    assert result.sent is False
    assert result.reason == "Message is empty"


def test_sends_gateway_request():
    session = FakeSession(FakeResponse({"response_code": 202}))
    service = SmsService(CONFIG, session=session)

    result = service.send_sms("01712345678", " Hello ")

    assert result.sent is False
    assert session.calls[0]["params"] == {
        "api_key": "key",
        "type": "text",
        "number": "8801712345678",
        "senderid": "8809617",
        "message": "Hello",
    }
    assert session.calls[0]["timeout"] == 15.0


@pytest.mark.parametrize("code, sent", [(1000, True), (2000, True), (2105, True), (1001, False)])
def test_success_codes(code, sent):
    session = FakeSession(FakeResponse({"response_code": code}))
    assert SmsService(CONFIG, session=session).send_sms("01712345678", "x").sent is sent


def test_transport_error_is_reported_not_raised():
    session = FakeSession(error=requests.ConnectionError("boom"))
    result = SmsService(CONFIG, session=session).send_sms("01712345678", "x")
    assert result.sent is False
    assert result.reason == "boom"


def test_bad_json_is_reported():
    session = FakeSession(FakeResponse(bad_json=True))
    result = SmsService(CONFIG, session=session).send_sms("01712345678", "x")
    assert result.sent is False
    assert result.reason == "Invalid response from SMS gateway"


def test_payment_notices_use_fixed_messages():
    session = FakeSession(FakeResponse({"response_code": 1000}))
    service = SmsService(CONFIG, session=session)

    assert service.send_payment_accepted_sms("01712345678", "Intro").sent is True
    assert session.calls[0]["params"]["message"] == PAYMENT_ACCEPTED_MESSAGE


def test_course_title_does_not_change_notice_text():
    session = FakeSession(FakeResponse({"response_code": 1000}))
    service = SmsService(CONFIG, session=session)

    service.send_payment_declined_sms("01712345678", "Intro")
    service.send_payment_declined_sms("01712345678")

    messages = [call["params"]["message"] for call in session.calls]
    assert messages == [PAYMENT_DECLINED_MESSAGE, PAYMENT_DECLINED_MESSAGE]


def test_notice_without_phone_is_noop():
    session = FakeSession()
    assert SmsService(CONFIG, session=session).send_payment_pending_sms("  ") is None
    assert session.calls == []
