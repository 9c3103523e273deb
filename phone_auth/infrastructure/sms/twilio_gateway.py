import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...application.ports.sms_gateway import SmsGateway
from ...config import Settings
from ...exceptions import UpstreamFailure
from ...utils import mask_phone

logger = logging.getLogger(__name__)


class TwilioSmsGateway(SmsGateway):
    def __init__(self, from_number: str, client: Optional[Client] = None, account_sid: str = "",
                 auth_token: str = "", timeout: int = 15, max_retries: int = 3):
        if client is None:
            http_client = TwilioHttpClient(timeout=timeout, max_retries=max_retries)
            client = Client(account_sid, auth_token, http_client=http_client)
        self.client = client
        self.from_number = from_number

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwilioSmsGateway":
        return cls(
            from_number=settings.TWILIO_PHONE_NUMBER,
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            timeout=settings.TWILIO_TIMEOUT_SECONDS,
            max_retries=settings.TWILIO_MAX_RETRIES,
        )

    def send_sms(self, to: str, body: str) -> str:
        if not self.from_number:
            logger.error("Twilio sender number not configured")
            raise UpstreamFailure()
        try:
            message = self.client.messages.create(to=to, from_=self.from_number, body=body)
        except TwilioException:
            logger.exception("Twilio failed to deliver SMS to %s", mask_phone(to))
            raise UpstreamFailure("Failed to send verification code")
        return message.sid
