"""Firestore storage backend for production."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator
from uuid import uuid4

import structlog
from google.api_core.exceptions import AlreadyExists, FailedPrecondition
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chatly.core.exceptions import AppException, NotFound, StoreError
from chatly.models import (
    Conversation,
    KnowledgeEntry,
    Message,
    MessageSender,
    MessageStatus,
    SortOrder,
    WidgetSettings,
)
from chatly.storage.base import StorageBackend

logger = structlog.get_logger()

# Re-runs a read-check-write when another writer committed in between
retry_on_write_conflict = retry(
    retry=retry_if_exception_type((AlreadyExists, FailedPrecondition)),
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.05, max=1),
    reraise=True,
)


class FirestoreStorage(StorageBackend):
    """Firestore storage implementation for production.

    Collection structure (flat, every document carries tenant_id):
    - widgets/{tenant_id}
    - knowledge/{entry_id}
    - conversations/{conversation_id}
    - messages/{message_id}

    Writes that depend on a prior read (ownership, status order) are
    preconditioned on the snapshot they checked and retried on conflict.
    """

    def __init__(self, project_id: str | None = None, client=None) -> None:
        self._project_id = project_id
        self._db = client
        self._initialized = client is not None

    async def _ensure_initialized(self) -> None:
        """Lazy initialization of Firestore client."""
        if self._initialized:
            return

        from google.cloud import firestore

        self._db = firestore.AsyncClient(project=self._project_id)
        self._initialized = True
        logger.info("Firestore client initialized", project=self._project_id)

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Initialize the client and wrap backend failures in StoreError."""
        try:
            await self._ensure_initialized()
            yield
        except AppException:
            raise
        except Exception as e:
            logger.error("Firestore operation failed", operation=name, error=str(e))
            raise StoreError(f"Firestore {name} failed: {e}", operation=name) from e

    async def _get_owned(self, collection: str, doc_id: str, tenant_id: str) -> dict | None:
        doc = await self._db.collection(collection).document(doc_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        if data.get("tenant_id") != tenant_id:
            return None
        return data

    @retry_on_write_conflict
    async def _save_owned(
        self,
        collection: str,
        resource: str,
        doc_id: str,
        tenant_id: str,
        data: dict,
    ) -> None:
        """Create or replace a document only if the tenant owns it.

        New documents go through ``create``, existing ones through an
        ``update`` preconditioned on the snapshot that was checked.

        Raises:
            NotFound: If the document belongs to another tenant
        """
        ref = self._db.collection(collection).document(doc_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            await ref.create(data)
            return
        if snapshot.to_dict().get("tenant_id") != tenant_id:
            raise NotFound(resource, doc_id, tenant_id)
        await ref.update(data, option=self._db.write_option(last_update_time=snapshot.update_time))

    # ==================== Widget Operations ====================

    async def get_widget_settings(self, tenant_id: str) -> WidgetSettings | None:
        async with self._operation("get_widget_settings"):
            doc = await self._db.collection("widgets").document(tenant_id).get()
            if not doc.exists:
                return None
            return WidgetSettings(**doc.to_dict())

    async def save_widget_settings(self, widget: WidgetSettings) -> WidgetSettings:
        async with self._operation("save_widget_settings"):
            widget.updated_at = datetime.utcnow()
            await self._db.collection("widgets").document(widget.tenant_id).set(
                widget.model_dump(mode="json")
            )
            return widget

    # ==================== Knowledge Operations ====================

    async def list_knowledge_entries(
        self,
        tenant_id: str,
        limit: int | None = None,
    ) -> list[KnowledgeEntry]:
        async with self._operation("list_knowledge_entries"):
            query = (
                self._db.collection("knowledge")
                .where("tenant_id", "==", tenant_id)
                .order_by("updated_at", direction="DESCENDING")
            )
            if limit is not None:
                query = query.limit(limit)
            docs = await query.get()
            return [KnowledgeEntry(**doc.to_dict()) for doc in docs]

    async def get_knowledge_entry(self, tenant_id: str, entry_id: str) -> KnowledgeEntry | None:
        async with self._operation("get_knowledge_entry"):
            data = await self._get_owned("knowledge", entry_id, tenant_id)
            return KnowledgeEntry(**data) if data else None

    async def save_knowledge_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        async with self._operation("save_knowledge_entry"):
            entry.updated_at = datetime.utcnow()
            await self._save_owned(
                "knowledge", "knowledge entry", entry.id, entry.tenant_id, entry.model_dump(mode="json")
            )
            return entry

    async def delete_knowledge_entry(self, tenant_id: str, entry_id: str) -> bool:
        async with self._operation("delete_knowledge_entry"):
            if await self._get_owned("knowledge", entry_id, tenant_id) is None:
                return False
            await self._db.collection("knowledge").document(entry_id).delete()
            return True

    # ==================== Conversation Operations ====================

    async def get_conversation(
        self,
        tenant_id: str,
        conversation_id: str,
    ) -> Conversation | None:
        async with self._operation("get_conversation"):
            data = await self._get_owned("conversations", conversation_id, tenant_id)
            return Conversation(**data) if data else None

    async def save_conversation(self, conversation: Conversation) -> Conversation:
        async with self._operation("save_conversation"):
            await self._save_owned(
                "conversations",
                "conversation",
                conversation.id,
                conversation.tenant_id,
                conversation.model_dump(mode="json"),
            )
            return conversation

    async def list_conversations(
        self,
        tenant_id: str,
        limit: int = 50,
    ) -> list[Conversation]:
        async with self._operation("list_conversations"):
            query = (
                self._db.collection("conversations")
                .where("tenant_id", "==", tenant_id)
                .order_by("updated_at", direction="DESCENDING")
                .limit(limit)
            )
            docs = await query.get()
            return [Conversation(**doc.to_dict()) for doc in docs]

    async def touch_conversation(self, tenant_id: str, conversation_id: str) -> Conversation:
        conversation = await self._require_conversation(tenant_id, conversation_id)
        async with self._operation("touch_conversation"):
            conversation.touch()
            await self._db.collection("conversations").document(conversation_id).update(
                {"updated_at": conversation.updated_at.isoformat()}
            )
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
        async with self._operation("append_message"):
            message = Message(
                id=str(uuid4()),
                conversation_id=conversation_id,
                tenant_id=tenant_id,
                content=content,
                sender=sender,
                status=status,
            )
            await self._db.collection("messages").document(message.id).set(
                message.model_dump(mode="json")
            )
            return message

    async def list_messages(
        self,
        tenant_id: str,
        conversation_id: str,
        limit: int = 50,
        order: SortOrder = SortOrder.ASC,
    ) -> list[Message]:
        await self._require_conversation(tenant_id, conversation_id)
        async with self._operation("list_messages"):
            direction = "DESCENDING" if order == SortOrder.DESC else "ASCENDING"
            query = (
                self._db.collection("messages")
                .where("conversation_id", "==", conversation_id)
                .order_by("created_at", direction=direction)
                .limit(limit)
            )
            docs = await query.get()
            return [Message(**doc.to_dict()) for doc in docs]

    async def get_message(self, tenant_id: str, message_id: str) -> Message | None:
        async with self._operation("get_message"):
            data = await self._get_owned("messages", message_id, tenant_id)
            return Message(**data) if data else None

    async def update_message_status(
        self,
        tenant_id: str,
        message_id: str,
        status: MessageStatus,
    ) -> Message:
        async with self._operation("update_message_status"):
            return await self._advance_status(tenant_id, message_id, status)

    @retry_on_write_conflict
    async def _advance_status(
        self,
        tenant_id: str,
        message_id: str,
        status: MessageStatus,
    ) -> Message:
        # The update only lands if the document is unchanged since the read
        ref = self._db.collection("messages").document(message_id)
        snapshot = await ref.get()
        if not snapshot.exists or snapshot.to_dict().get("tenant_id") != tenant_id:
            raise NotFound("message", message_id, tenant_id)

        message = Message(**snapshot.to_dict())
        if not message.advance_status(status):
            return message
        await ref.update(
            {"status": message.status.value},
            option=self._db.write_option(last_update_time=snapshot.update_time),
        )
        return message

    # ==================== Health Check ====================

    async def health_check(self) -> bool:
        try:
            await self._ensure_initialized()
            await self._db.collection("_health").document("check").get()
            return True
        except Exception as e:
            logger.error("Firestore health check failed", error=str(e))
            return False
