"""
WhatsApp Messaging via Twilio

DESIGN DECISION: Twilio is used both ways:
1. Outbound messages go through the REST API (messages.create)
2. Inbound webhooks are authenticated with Twilio's RequestValidator,
   which signs the full URL plus the sorted form parameters

The Twilio SDK is blocking, so sends run in a worker thread.
"""

import asyncio
import time
from typing import Mapping, Optional

import structlog
from twilio.base.exceptions import TwilioException
from twilio.request_validator import RequestValidator
from twilio.rest import Client

from ledgerbot.config import TwilioSettings
from ledgerbot.models.transaction import DeliveryReceipt, DeliveryStatus
from ledgerbot.services.messaging.interface import (
    DeliveryError,
    MessengerInterface,
    WebhookAuthenticator,
)


logger = structlog.get_logger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def strip_whatsapp_prefix(value: str) -> str:
    return value.replace(WHATSAPP_PREFIX, "").strip()


def _redact_phone(value: str) -> str:
    if not value:
        return ""
    # last 3 digits only
    tail = value[-3:] if len(value) >= 3 else value
    return f"***{tail}"


class TwilioWhatsAppMessenger(MessengerInterface):
    """Sends WhatsApp messages through the Twilio REST API."""

    def __init__(
        self,
        settings: TwilioSettings,
        client: Optional[Client] = None,
    ):
        self._settings = settings
        self._client = client or Client(settings.account_sid, settings.auth_token)

    def _deliver(self, to: str, body: str):
        try:
            return self._client.messages.create(
                from_=self._settings.from_number,
                to=f"{WHATSAPP_PREFIX}{to}",
                body=body,
            )
        except TwilioException as e:
            raise DeliveryError(str(e)) from e

    async def send(self, to: str, body: str) -> DeliveryReceipt:
        number = strip_whatsapp_prefix(to)
        try:
            message = await asyncio.to_thread(self._deliver, number, body)
        except Exception as e:
            logger.error(
                "delivery_failed",
                to=_redact_phone(number),
                error=str(e),
            )
            return DeliveryReceipt(
                sid=f"ERROR_{int(time.time() * 1000)}",
                status=DeliveryStatus.ERROR,
                to=number,
                body=body,
                error=str(e),
            )

        status = (
            DeliveryStatus.QUEUED
            if str(getattr(message, "status", "")).lower() == "queued"
            else DeliveryStatus.SENT
        )
        logger.info("message_sent", to=_redact_phone(number), sid=message.sid)
        return DeliveryReceipt(
            sid=message.sid,
            status=status,
            to=number,
            body=body,
        )


class TwilioSignatureValidator(WebhookAuthenticator):
    """Validates the X-Twilio-Signature header."""

    def __init__(self, auth_token: str):
        self._validator = RequestValidator(auth_token)

    def validate(
        self,
        url: str,
        params: Mapping[str, str],
        signature: Optional[str],
    ) -> bool:
        if not signature:
            return False
        try:
            return bool(self._validator.validate(url, dict(params), signature))
        except Exception as e:
            logger.error("signature_validation_error", url=url, error=str(e))
            return False
