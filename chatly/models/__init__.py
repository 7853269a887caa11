"""Data models for the application."""

from chatly.models.conversation import Conversation
from chatly.models.knowledge import KnowledgeEntry, KnowledgeEntryType, KnowledgeSource
from chatly.models.message import Message, MessageSender, MessageStatus, SortOrder
from chatly.models.tenant import AIConfig, WidgetSettings

__all__ = [
    # Tenant
    "AIConfig",
    "WidgetSettings",
    # Conversation
    "Conversation",
    # Message
    "Message",
    "MessageSender",
    "MessageStatus",
    "SortOrder",
    # Knowledge
    "KnowledgeEntry",
    "KnowledgeEntryType",
    "KnowledgeSource",
]
