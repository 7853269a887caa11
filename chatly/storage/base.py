"""Abstract base class for storage backends.

Every method that reads or writes conversations, messages or knowledge takes the
calling tenant's id and must refuse to touch records owned by another tenant.
"""

from abc import ABC, abstractmethod

from chatly.models import (
    AIConfig,
    Conversation,
    KnowledgeEntry,
    Message,
    MessageSender,
    MessageStatus,
    SortOrder,
    WidgetSettings,
)


class StorageBackend(ABC):
    """Abstract storage backend interface."""

    # ==================== Widget Operations ====================

    @abstractmethod
    async def get_widget_settings(self, tenant_id: str) -> WidgetSettings | None:
        """Get the widget settings for a tenant."""
        ...

    @abstractmethod
    async def save_widget_settings(self, widget: WidgetSettings) -> WidgetSettings:
        """Save or update widget settings."""
        ...

    async def get_ai_config(self, tenant_id: str) -> AIConfig:
        """Get the tenant's AI configuration, falling back to defaults."""
        widget = await self.get_widget_settings(tenant_id)
        if widget is None:
            return AIConfig()
        return widget.ai_settings

    # ==================== Knowledge Operations ====================

    @abstractmethod
    async def list_knowledge_entries(
        self,
        tenant_id: str,
        limit: int | None = None,
    ) -> list[KnowledgeEntry]:
        """List a tenant's knowledge entries, most recently updated first."""
        ...

    @abstractmethod
    async def get_knowledge_entry(self, tenant_id: str, entry_id: str) -> KnowledgeEntry | None:
        """Get a knowledge entry owned by the tenant."""
        ...

    @abstractmethod
    async def save_knowledge_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Create or update a knowledge entry."""
        ...

    @abstractmethod
    async def delete_knowledge_entry(self, tenant_id: str, entry_id: str) -> bool:
        """Delete a knowledge entry owned by the tenant."""
        ...

    # ==================== Conversation Operations ====================

    @abstractmethod
    async def get_conversation(
        self,
        tenant_id: str,
        conversation_id: str,
    ) -> Conversation | None:
        """Get a conversation owned by the tenant."""
        ...

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> Conversation:
        """Save or update a conversation."""
        ...

    @abstractmethod
    async def list_conversations(
        self,
        tenant_id: str,
        limit: int = 50,
    ) -> list[Conversation]:
        """List conversations for a tenant, most recently updated first."""
        ...

    @abstractmethod
    async def touch_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        """Advance a conversation's updated_at to now.

        Raises:
            NotFound: If the conversation is not owned by the tenant
        """
        ...

    # ==================== Message Operations ====================

    @abstractmethod
    async def append_message(
        self,
        tenant_id: str,
        conversation_id: str,
        sender: MessageSender,
        content: str,
        status: MessageStatus = MessageStatus.SENT,
    ) -> Message:
        """Append a message to the end of a conversation.

        Raises:
            NotFound: If the conversation is not owned by the tenant
        """
        ...

    @abstractmethod
    async def list_messages(
        self,
        tenant_id: str,
        conversation_id: str,
        limit: int = 50,
        order: SortOrder = SortOrder.ASC,
    ) -> list[Message]:
        """List messages of a conversation.

        ASC returns the oldest ``limit`` messages oldest first, DESC the newest
        ``limit`` messages newest first.
        """
        ...

    @abstractmethod
    async def get_message(self, tenant_id: str, message_id: str) -> Message | None:
        """Get a message owned by the tenant."""
        ...

    @abstractmethod
    async def update_message_status(
        self,
        tenant_id: str,
        message_id: str,
        status: MessageStatus,
    ) -> Message:
        """Advance a message's status.

        Raises:
            NotFound: If the message is not owned by the tenant
            InvalidInput: If the status would move backwards
        """
        ...

    async def get_recent_messages(
        self,
        tenant_id: str,
        conversation_id: str,
        limit: int = 10,
    ) -> list[Message]:
        """Get the newest messages in chronological order."""
        messages = await self.list_messages(
            tenant_id, conversation_id, limit=limit, order=SortOrder.DESC
        )
        return list(reversed(messages))

    # ==================== Health Check ====================

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage is healthy."""
        ...
