# app/utils/sms_service.py
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

PAYMENT_PENDING_MESSAGE = "Order pending. Please wait."
PAYMENT_ACCEPTED_MESSAGE = "Payment accepted. You have access now."
PAYMENT_DECLINED_MESSAGE = "Payment declined. Contact support if needed."


@dataclass(frozen=True)
class SmsConfig:
    api_key: str = ""
    sender_id: str = ""
    base_url: str = "https://bulksmsbd.net/api/smsapi"
    timeout: float = 15.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.sender_id)

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "SmsConfig":
        return cls(
            api_key=app_settings.bulksms_api_key.strip(),
            sender_id=app_settings.bulksms_sender_id.strip(),
            base_url=app_settings.bulksms_base_url,
            timeout=app_settings.sms_timeout_seconds,
        )


@dataclass
class SmsResult:
    sent: bool
    skipped: bool = False
    reason: Optional[str] = None
    response_code: Optional[int] = None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a Bangladeshi number to 880XXXXXXXXXX.

    Accepts 017..., 01..., 88017... with any punctuation. Returns None when
    the number cannot be mapped.
    """
    if not phone or not isinstance(phone, str):
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 10:
        return None
    if len(digits) in (10, 11) and digits.startswith("0"):
        return "88" + digits
    if len(digits) >= 11 and digits.startswith("88"):
        return digits[:13]
    if len(digits) == 11:
        return "88" + digits
    return None


class SmsService:
    """Best-effort client for the BulkSMS BD HTTP API."""

    def __init__(self, config: SmsConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def send_sms(self, phone: str, message: str) -> SmsResult:
        """
        Send a single text message.

        Never raises for delivery problems; the outcome is reported in the
        returned SmsResult.
        """
        if not self.config.enabled:
            return SmsResult(
                sent=False,
                skipped=True,
                reason="SMS not configured (missing api key or sender id)",
            )

        normalized = normalize_phone(phone)
        if not normalized:
            return SmsResult(sent=False, reason="Invalid or unsupported phone number format")

        text = message.strip() if isinstance(message, str) else ""
        if not text:
            return SmsResult(sent=False, reason="Message is empty")

        params = {
            "api_key": self.config.api_key,
            "type": "text",
            "number": normalized,
            "senderid": self.config.sender_id,
            "message": text,
        }

        try:
            response = self.session.get(
                self.config.base_url, params=params, timeout=self.config.timeout
            )
            data = response.json() or {}
        except requests.RequestException as e:
            return SmsResult(sent=False, reason=str(e) or "Request failed")
        except ValueError:
            return SmsResult(sent=False, reason="Invalid response from SMS gateway")

        code = data.get("response_code")
        # 1000 / 2000 and above mean the gateway accepted the message
        sent = isinstance(code, int) and (code == 1000 or code >= 2000)

        return SmsResult(
            sent=sent,
            response_code=code,
            reason=None if sent else (data.get("error_message") or "Gateway rejected message"),
        )

    def _send_notice(self, label: str, phone: Optional[str], message: str) -> Optional[SmsResult]:
        if not phone or not str(phone).strip():
            return None
        result = self.send_sms(str(phone).strip(), message)
        if not result.skipped and not result.sent:
            logger.warning(
                f"SMS ({label}) not sent: {result.reason or result.response_code}"
            )
        return result

    def send_payment_pending_sms(self, phone: Optional[str]) -> Optional[SmsResult]:
        return self._send_notice("payment pending", phone, PAYMENT_PENDING_MESSAGE)

    def send_payment_accepted_sms(
        self, phone: Optional[str], course_title: Optional[str] = None
    ) -> Optional[SmsResult]:
        """course_title is accepted for caller compatibility; the text is fixed."""
        return self._send_notice("payment accepted", phone, PAYMENT_ACCEPTED_MESSAGE)

    def send_payment_declined_sms(
        self, phone: Optional[str], course_title: Optional[str] = None
    ) -> Optional[SmsResult]:
        """course_title is accepted for caller compatibility; the text is fixed."""
        return self._send_notice("payment declined", phone, PAYMENT_DECLINED_MESSAGE)


sms_service = SmsService(SmsConfig.from_settings(settings))


def get_sms_service() -> SmsService:
    return sms_service
