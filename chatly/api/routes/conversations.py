"""Conversation endpoints - listing, message exchange and status updates."""

from typing import Any
from uuid import uuid4

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel

from chatly.api.dependencies import PipelineDep, StorageDep, TenantDep
from chatly.core.exceptions import NotFound
from chatly.models import Conversation, Message, SortOrder

logger = structlog.get_logger()

router = APIRouter(prefix="/api/conversations", tags=["Conversations"])


# ==================== Pydantic Schemas ====================


class ConversationCreate(BaseModel):
    """Schema for opening a conversation."""

    visitor_id: str | None = None


class MessageCreate(BaseModel):
    """Schema for a visitor message."""

    content: str = ""


class StatusUpdate(BaseModel):
    """Schema for a message status change."""

    status: str


class ExchangeResponse(BaseModel):
    """Both messages produced by one exchange."""

    visitor_message: Message
    reply_message: Message


class ConversationDetail(BaseModel):
    """A conversation with its messages, oldest first."""

    conversation: Conversation
    messages: list[Message]


# ==================== Endpoints ====================


@router.get("")
async def list_conversations(
    tenant_id: TenantDep,
    storage: StorageDep,
    limit: int = 50,
) -> dict[str, Any]:
    """List the tenant's conversations, most recently active first."""
    conversations = await storage.list_conversations(tenant_id, limit=limit)

    items = []
    for c in conversations:
        last = await storage.list_messages(tenant_id, c.id, limit=1, order=SortOrder.DESC)
        items.append(
            {
                **c.model_dump(mode="json"),
                "last_message": last[0].model_dump(mode="json") if last else None,
            }
        )

    return {"tenant_id": tenant_id, "count": len(items), "conversations": items}


@router.post("", response_model=Conversation, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    data: ConversationCreate,
    tenant_id: TenantDep,
    storage: StorageDep,
) -> Conversation:
    """Open a new conversation for a visitor."""
    conversation = Conversation(id=str(uuid4()), tenant_id=tenant_id, visitor_id=data.visitor_id)
    await storage.save_conversation(conversation)
    logger.info("Created conversation", tenant_id=tenant_id, conversation_id=conversation.id)
    return conversation


@router.get("/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    tenant_id: TenantDep,
    storage: StorageDep,
    limit: int = 500,
) -> ConversationDetail:
    """Get a conversation with its messages."""
    conversation = await storage.get_conversation(tenant_id, conversation_id)
    if conversation is None:
        raise NotFound("conversation", conversation_id, tenant_id)

    messages = await storage.list_messages(tenant_id, conversation_id, limit=limit)
    return ConversationDetail(conversation=conversation, messages=messages)


@router.post(
    "/{conversation_id}/messages",
    response_model=ExchangeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    conversation_id: str,
    data: MessageCreate,
    tenant_id: TenantDep,
    pipeline: PipelineDep,
) -> ExchangeResponse:
    """Add a visitor message and return it with the assistant's reply."""
    result = await pipeline.handle_incoming_message(tenant_id, conversation_id, data.content)
    return ExchangeResponse(
        visitor_message=result.visitor_message,
        reply_message=result.reply_message,
    )


@router.patch("/messages/{message_id}/status", response_model=Message)
async def update_message_status(
    message_id: str,
    data: StatusUpdate,
    tenant_id: TenantDep,
    pipeline: PipelineDep,
) -> Message:
    """Advance a message's delivery status (sent -> delivered -> seen)."""
    return await pipeline.update_message_status(tenant_id, message_id, data.status)
