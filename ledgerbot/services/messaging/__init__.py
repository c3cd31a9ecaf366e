"""Messaging services package."""

from ledgerbot.services.messaging.interface import (
    AuthenticationFailedError,
    DeliveryError,
    MessagingError,
    MessengerInterface,
    WebhookAuthenticator,
)
from ledgerbot.services.messaging.twilio_whatsapp import (
    TwilioSignatureValidator,
    TwilioWhatsAppMessenger,
    strip_whatsapp_prefix,
)
from ledgerbot.services.messaging.mock import (
    MockMessenger,
    PermissiveAuthenticator,
)

__all__ = [
    # Interfaces
    "MessengerInterface",
    "WebhookAuthenticator",
    # Exceptions
    "AuthenticationFailedError",
    "DeliveryError",
    "MessagingError",
    # Twilio
    "TwilioSignatureValidator",
    "TwilioWhatsAppMessenger",
    "strip_whatsapp_prefix",
    # Mock
    "MockMessenger",
    "PermissiveAuthenticator",
]
