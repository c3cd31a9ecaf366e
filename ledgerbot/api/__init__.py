"""HTTP API package."""

from ledgerbot.api.webhook import MessageValidationError, create_app, parse_inbound

__all__ = ["MessageValidationError", "create_app", "parse_inbound"]
