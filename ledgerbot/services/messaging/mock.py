"""
Mock transport, used when Twilio credentials are not configured.

Messages are logged and kept in memory instead of being sent.
"""

import time
from typing import Mapping, Optional

import structlog

from ledgerbot.models.transaction import DeliveryReceipt, DeliveryStatus
from ledgerbot.services.messaging.interface import (
    MessengerInterface,
    WebhookAuthenticator,
)
from ledgerbot.services.messaging.twilio_whatsapp import strip_whatsapp_prefix


logger = structlog.get_logger(__name__)


class MockMessenger(MessengerInterface):
    """Records outbound messages instead of delivering them."""

    def __init__(self):
        self.sent: list[DeliveryReceipt] = []

    def messages_to(self, to: str) -> list[str]:
        number = strip_whatsapp_prefix(to)
        return [receipt.body for receipt in self.sent if receipt.to == number]

    async def send(self, to: str, body: str) -> DeliveryReceipt:
        receipt = DeliveryReceipt(
            sid=f"MOCK_MESSAGE_{int(time.time() * 1000)}",
            status=DeliveryStatus.MOCK,
            to=strip_whatsapp_prefix(to),
            body=body,
        )
        self.sent.append(receipt)
        logger.info("mock_message_sent", to=receipt.to, body=body)
        return receipt


class PermissiveAuthenticator(WebhookAuthenticator):
    """Accepts every webhook. Only used without Twilio credentials."""

    def validate(
        self,
        url: str,
        params: Mapping[str, str],
        signature: Optional[str],
    ) -> bool:
        return True
