"""In-memory storage backend for development and testing."""

from datetime import datetime
from uuid import uuid4

from chatly.core.exceptions import NotFound
from chatly.models import (
    Conversation,
    KnowledgeEntry,
    KnowledgeEntryType,
    Message,
    MessageSender,
    MessageStatus,
    SortOrder,
    WidgetSettings,
)
from chatly.storage.base import StorageBackend


class InMemoryStorage(StorageBackend):
    """In-memory storage implementation for development."""

    def __init__(self) -> None:
        self._widgets: dict[str, WidgetSettings] = {}
        self._knowledge: dict[str, KnowledgeEntry] = {}
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, Message] = {}
        # conversation id -> message ids in insertion order
        self._timeline: dict[str, list[str]] = {}

    # ==================== Widget Operations ====================

    async def get_widget_settings(self, tenant_id: str) -> WidgetSettings | None:
        return self._widgets.get(tenant_id)

    async def save_widget_settings(self, widget: WidgetSettings) -> WidgetSettings:
        widget.updated_at = datetime.utcnow()
        self._widgets[widget.tenant_id] = widget
        return widget

    # ==================== Knowledge Operations ====================

    async def list_knowledge_entries(
        self,
        tenant_id: str,
        limit: int | None = None,
    ) -> list[KnowledgeEntry]:
        entries = [e for e in self._knowledge.values() if e.tenant_id == tenant_id]
        entries.sort(key=lambda x: x.updated_at, reverse=True)
        return entries[:limit] if limit is not None else entries

    async def get_knowledge_entry(self, tenant_id: str, entry_id: str) -> KnowledgeEntry | None:
        entry = self._knowledge.get(entry_id)
        if entry is None or entry.tenant_id != tenant_id:
            return None
        return entry

    async def save_knowledge_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        existing = self._knowledge.get(entry.id)
        if existing is not None and existing.tenant_id != entry.tenant_id:
            raise NotFound("knowledge entry", entry.id, entry.tenant_id)
        entry.updated_at = datetime.utcnow()
        self._knowledge[entry.id] = entry
        return entry

    async def delete_knowledge_entry(self, tenant_id: str, entry_id: str) -> bool:
        if await self.get_knowledge_entry(tenant_id, entry_id) is None:
            return False
        del self._knowledge[entry_id]
        return True

    # ==================== Conversation Operations ====================

    async def get_conversation(
        self,
        tenant_id: str,
        conversation_id: str,
    ) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.tenant_id != tenant_id:
            return None
        return conversation

    async def save_conversation(self, conversation: Conversation) -> Conversation:
        existing = self._conversations.get(conversation.id)
        if existing is not None and existing.tenant_id != conversation.tenant_id:
            raise NotFound("conversation", conversation.id, conversation.tenant_id)
        self._conversations[conversation.id] = conversation
        self._timeline.setdefault(conversation.id, [])
        return conversation

    async def list_conversations(
        self,
        tenant_id: str,
        limit: int = 50,
    ) -> list[Conversation]:
        convs = [c for c in self._conversations.values() if c.tenant_id == tenant_id]
        convs.sort(key=lambda x: x.updated_at, reverse=True)
        return convs[:limit]

    async def touch_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        conversation = await self._require_conversation(tenant_id, conversation_id)
        conversation.touch()
        return conversation

    async def _require_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        conversation = await self.get_conversation(tenant_id, conversation_id)
        if conversation is None:
            raise NotFound("conversation", conversation_id, tenant_id)
        return conversation

    # ==================== Message Operations ====================

    async def append_message(
        self,
        tenant_id: str,
        conversation_id: str,
        sender: MessageSender,
        content: str,
        status: MessageStatus = MessageStatus.SENT,
    ) -> Message:
        await self._require_conversation(tenant_id, conversation_id)
        message = Message(
            id=str(uuid4()),
            conversation_id=conversation_id,
            tenant_id=tenant_id,
            content=content,
            sender=sender,
            status=status,
        )
        self._messages[message.id] = message
        self._timeline.setdefault(conversation_id, []).append(message.id)
        return message

    async def list_messages(
        self,
        tenant_id: str,
        conversation_id: str,
        limit: int = 50,
        order: SortOrder = SortOrder.ASC,
    ) -> list[Message]:
        await self._require_conversation(tenant_id, conversation_id)
        messages = [self._messages[mid] for mid in self._timeline.get(conversation_id, [])]
        if order == SortOrder.DESC:
            messages.reverse()
        return messages[:limit]

    async def get_message(self, tenant_id: str, message_id: str) -> Message | None:
        message = self._messages.get(message_id)
        if message is None or message.tenant_id != tenant_id:
            return None
        return message

    async def update_message_status(
        self,
        tenant_id: str,
        message_id: str,
        status: MessageStatus,
    ) -> Message:
        message = await self.get_message(tenant_id, message_id)
        if message is None:
            raise NotFound("message", message_id, tenant_id)
        message.advance_status(status)
        return message

    # ==================== Health Check ====================

    async def health_check(self) -> bool:
        return True

    # ==================== Development Helpers ====================

    async def seed_demo_tenant(self, tenant_id: str = "demo") -> WidgetSettings:
        """Create a demo tenant with a welcome conversation and a few facts."""
        widget = await self.save_widget_settings(
            WidgetSettings(
                tenant_id=tenant_id,
                welcome_text="Welcome to Demo Company! How can I help you today?",
            )
        )
        await self.save_knowledge_entry(
            KnowledgeEntry(
                id=str(uuid4()),
                tenant_id=tenant_id,
                type=KnowledgeEntryType.QA,
                question="What are your opening hours?",
                answer="We are open Monday to Friday, 9am to 6pm.",
            )
        )
        await self.save_knowledge_entry(
            KnowledgeEntry(
                id=str(uuid4()),
                tenant_id=tenant_id,
                type=KnowledgeEntryType.TEXT,
                content="Demo Company ships worldwide. Returns are accepted within 30 days.",
            )
        )
        await self.save_conversation(Conversation(id="demo-conversation", tenant_id=tenant_id))
        return widget
