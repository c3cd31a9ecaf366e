"""Conversation state machine package."""

from ledgerbot.conversation.engine import (
    Command,
    ConversationEngine,
    ConversationOutcome,
    ConversationState,
    OutcomeAction,
)
from ledgerbot.conversation.store import (
    InMemoryPendingStore,
    PendingStore,
    SenderLocks,
)

__all__ = [
    "Command",
    "ConversationEngine",
    "ConversationOutcome",
    "ConversationState",
    "OutcomeAction",
    "InMemoryPendingStore",
    "PendingStore",
    "SenderLocks",
]
