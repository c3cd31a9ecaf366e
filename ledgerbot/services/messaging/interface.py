"""
Messaging Interfaces

Two seams to the chat transport:
1. MessengerInterface - outbound delivery
2. WebhookAuthenticator - inbound request authentication

CONTRACT: Messenger.send NEVER raises. A failed delivery is logged and
reported through the receipt. A confirmed transaction is never rolled
back because its receipt could not be delivered.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

from ledgerbot.models.transaction import DeliveryReceipt


class MessengerInterface(ABC):
    """Outbound message delivery."""

    @abstractmethod
    async def send(self, to: str, body: str) -> DeliveryReceipt:
        """
        Deliver a text message.

        Args:
            to: Sender identity (transport prefix optional)
            body: Message text

        Returns:
            A receipt; status=ERROR on failure
        """
        pass


class WebhookAuthenticator(ABC):
    """Validates that an inbound webhook really comes from the transport."""

    @abstractmethod
    def validate(
        self,
        url: str,
        params: Mapping[str, str],
        signature: Optional[str],
    ) -> bool:
        """
        Check a webhook signature.

        Args:
            url: The full public URL the transport posted to
            params: Form (or JSON) parameters of the request
            signature: Value of the signature header, if any

        Returns:
            True if the request is authentic
        """
        pass

    def authenticate(
        self,
        url: str,
        params: Mapping[str, str],
        signature: Optional[str],
    ) -> None:
        """Raise AuthenticationFailedError unless the request validates."""
        if not self.validate(url, params, signature):
            raise AuthenticationFailedError("Invalid webhook signature")


class MessagingError(Exception):
    """Base exception for messaging."""
    pass


class DeliveryError(MessagingError):
    """Outbound message could not be delivered."""
    pass


class AuthenticationFailedError(MessagingError):
    """Inbound webhook failed signature validation."""
    pass
