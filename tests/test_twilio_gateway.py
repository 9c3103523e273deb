from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioException

from phone_auth.config import Settings
from phone_auth.exceptions import UpstreamFailure
from phone_auth.infrastructure.sms.twilio_gateway import TwilioSmsGateway


class FakeMessages:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def create(self, to, from_, body):
        if self.fail:
            raise TwilioException("unreachable")
        self.sent.append({"to": to, "from_": from_, "body": body})
        return SimpleNamespace(sid=f"SM{len(self.sent)}")


def make_gateway(fail: bool = False, from_number: str = "+15550001111"):
    messages = FakeMessages(fail=fail)
    client = SimpleNamespace(messages=messages)
    return TwilioSmsGateway(from_number=from_number, client=client), messages


def test_send_sms_uses_configured_sender():
    gateway, messages = make_gateway()
    sid = gateway.send_sms("+15551230000", "Your code is 123456")
    assert sid == "SM1"
    assert messages.sent == [{"to": "+15551230000", "from_": "+15550001111", "body": "Your code is 123456"}]


def test_twilio_error_becomes_upstream_failure():
    gateway, _ = make_gateway(fail=True)
    with pytest.raises(UpstreamFailure) as exc_info:
        gateway.send_sms("+15551230000", "hello")
    assert exc_info.value.message == "Failed to send verification code"


def test_missing_sender_number_is_upstream_failure():
    gateway, messages = make_gateway(from_number="")
    with pytest.raises(UpstreamFailure):
        gateway.send_sms("+15551230000", "hello")
    assert messages.sent == []


def test_from_settings_reads_twilio_config():
    settings = Settings(
        _env_file=None,
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="token",
        TWILIO_PHONE_NUMBER="+15550002222",
    )
    assert settings.twilio_configured
    gateway = TwilioSmsGateway.from_settings(settings)
    assert gateway.from_number == "+15550002222"
