"""Message models for widget conversations."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chatly.core.exceptions import InvalidInput


class MessageSender(str, Enum):
    """Who authored the message."""

    VISITOR = "visitor"
    AGENT_AI = "agent-ai"


class MessageStatus(str, Enum):
    """Delivery status of a message. Only ever moves forward."""

    SENT = "sent"
    DELIVERED = "delivered"
    SEEN = "seen"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [MessageStatus.SENT, MessageStatus.DELIVERED, MessageStatus.SEEN]


class SortOrder(str, Enum):
    """Ordering for message listings."""

    ASC = "asc"
    DESC = "desc"


class Message(BaseModel):
    """A single message inside a conversation."""

    id: str = Field(..., description="Unique message identifier")
    conversation_id: str = Field(..., description="Parent conversation ID")
    tenant_id: str = Field(..., description="Tenant ID")

    content: str = Field(..., description="Message text content")
    sender: MessageSender
    status: MessageStatus = MessageStatus.SENT

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_llm_message(self) -> dict[str, str]:
        """Convert to LLM message format for context."""
        if self.sender == MessageSender.VISITOR:
            return {"role": "user", "content": self.content}
        return {"role": "assistant", "content": self.content}

    def advance_status(self, status: MessageStatus) -> bool:
        """Move the status forward.

        Returns False when the message already has this status.

        Raises:
            InvalidInput: If the new status would move backwards
        """
        if status == self.status:
            return False
        if status.rank < self.status.rank:
            raise InvalidInput(
                f"Cannot change message status from {self.status.value} to {status.value}",
                field="status",
            )
        self.status = status
        return True

    def to_event_payload(self) -> dict[str, Any]:
        """Serialize for realtime delivery."""
        return self.model_dump(mode="json")
