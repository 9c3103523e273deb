from typing import Protocol


class SmsGateway(Protocol):
    def send_sms(self, to: str, body: str) -> str:
        """Deliver a text message and return the gateway message id."""
        ...
