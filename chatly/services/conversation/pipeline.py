"""Message pipeline - persists a visitor message and the assistant's reply."""

from dataclasses import dataclass

import structlog

from chatly.core.config import settings
from chatly.core.exceptions import InvalidInput, NotFound, StoreError
from chatly.models import AIConfig, Message, MessageSender, MessageStatus
from chatly.services.conversation.context import build_context
from chatly.services.conversation.responder import ReplySource, ResponseSelector
from chatly.services.llm.provider import get_llm_provider
from chatly.services.realtime.fanout import RealtimeFanout
from chatly.storage.base import StorageBackend

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    """Both sides of one exchange."""

    visitor_message: Message
    reply_message: Message
    reply_source: ReplySource


class MessagePipeline:
    """Handles an incoming visitor message end to end.

    Order of effects:
    1. visitor message persisted and published
    2. history, AI config and knowledge context loaded
    3. reply selected (remote model or local fallback)
    4. reply persisted and published
    5. conversation updated_at advanced

    Input errors (empty content, unknown conversation) are raised before any
    write. After the visitor message is stored, failures while preparing the
    reply are absorbed into a fallback reply.
    """

    def __init__(
        self,
        storage: StorageBackend,
        fanout: RealtimeFanout | None = None,
        selector: ResponseSelector | None = None,
        history_limit: int | None = None,
        context_limit: int | None = None,
    ) -> None:
        self.storage = storage
        self.fanout = fanout
        self.selector = selector or ResponseSelector(llm_provider=get_llm_provider())
        self.history_limit = history_limit or settings.history_limit
        self.context_limit = context_limit or settings.knowledge_context_limit

    async def handle_incoming_message(
        self,
        tenant_id: str,
        conversation_id: str,
        content: str,
    ) -> PipelineResult:
        """Store a visitor message, generate and store the reply.

        Raises:
            InvalidInput: If content is empty after trimming
            NotFound: If the conversation is not owned by the tenant
            StoreError: If the visitor message or the reply cannot be written
        """
        text = (content or "").strip()
        if not text:
            raise InvalidInput("Message content must not be empty", field="content")

        conversation = await self.storage.get_conversation(tenant_id, conversation_id)
        if conversation is None:
            raise NotFound("conversation", conversation_id, tenant_id)

        log = logger.bind(tenant_id=tenant_id, conversation_id=conversation_id)

        visitor_message = await self.storage.append_message(
            tenant_id, conversation_id, MessageSender.VISITOR, text, MessageStatus.SENT
        )
        self._publish(tenant_id, visitor_message)

        reply_text, source = await self._prepare_reply(tenant_id, conversation_id, log)

        try:
            reply_message = await self.storage.append_message(
                tenant_id, conversation_id, MessageSender.AGENT_AI, reply_text, MessageStatus.SENT
            )
        except StoreError:
            log.error("Failed to store reply", visitor_message_id=visitor_message.id)
            raise
        self._publish(tenant_id, reply_message)

        try:
            await self.storage.touch_conversation(tenant_id, conversation_id)
        except (StoreError, NotFound) as e:
            log.error("Failed to update conversation timestamp", error=str(e))

        log.info(
            "Processed message",
            visitor_message_id=visitor_message.id,
            reply_message_id=reply_message.id,
            reply_source=source.value,
            response_length=len(reply_text),
        )

        return PipelineResult(
            visitor_message=visitor_message,
            reply_message=reply_message,
            reply_source=source,
        )

    async def _prepare_reply(
        self,
        tenant_id: str,
        conversation_id: str,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[str, ReplySource]:
        config: AIConfig | None = None
        try:
            recent = await self.storage.get_recent_messages(
                tenant_id, conversation_id, limit=self.history_limit
            )
            history = [m.to_llm_message() for m in recent]

            config = await self.storage.get_ai_config(tenant_id)

            entries = []
            if config.knowledge_base_enabled:
                entries = await self.storage.list_knowledge_entries(tenant_id)
            context = build_context(entries, config, max_entries=self.context_limit)

            return await self.selector.select_response_with_source(history, context, config)
        except Exception as e:
            log.error("Reply preparation failed, using fallback", error=str(e), exc_info=True)
            return self.selector.failure_reply(config), ReplySource.FAILURE_FALLBACK

    async def update_message_status(
        self,
        tenant_id: str,
        message_id: str,
        status: MessageStatus | str,
    ) -> Message:
        """Advance a message's delivery status and broadcast the change.

        Raises:
            InvalidInput: If the status is unknown or would move backwards
            NotFound: If the message is not owned by the tenant
        """
        try:
            new_status = MessageStatus(status)
        except ValueError:
            raise InvalidInput(
                "Invalid status. Must be sent, delivered, or seen.", field="status"
            ) from None

        message = await self.storage.get_message(tenant_id, message_id)
        if message is None:
            raise NotFound("message", message_id, tenant_id)
        previous = message.status

        message = await self.storage.update_message_status(tenant_id, message_id, new_status)
        if message.status != previous and self.fanout is not None:
            self.fanout.publish_status_update(tenant_id, message.id, message.status)

        logger.info(
            "Message status updated",
            tenant_id=tenant_id,
            message_id=message_id,
            status=message.status.value,
        )
        return message

    def _publish(self, tenant_id: str, message: Message) -> None:
        if self.fanout is not None:
            self.fanout.publish_new_message(tenant_id, message)
