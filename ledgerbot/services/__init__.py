"""Services package."""

from ledgerbot.services.messaging import (
    AuthenticationFailedError,
    DeliveryError,
    MessengerInterface,
    MockMessenger,
    PermissiveAuthenticator,
    TwilioSignatureValidator,
    TwilioWhatsAppMessenger,
    WebhookAuthenticator,
)
from ledgerbot.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
    InMemoryAuditStorage,
    InMemoryLedger,
    LedgerInterface,
    StorageError,
)

__all__ = [
    # Messaging services
    "AuthenticationFailedError",
    "DeliveryError",
    "MessengerInterface",
    "MockMessenger",
    "PermissiveAuthenticator",
    "TwilioSignatureValidator",
    "TwilioWhatsAppMessenger",
    "WebhookAuthenticator",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedger",
    "InMemoryAuditStorage",
    "InMemoryLedger",
    "LedgerInterface",
    "StorageError",
]
