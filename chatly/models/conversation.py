"""Conversation model."""

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field


class Conversation(BaseModel):
    """A chat thread between one visitor and a tenant's assistant."""

    id: str = Field(..., description="Unique conversation identifier")
    tenant_id: str = Field(..., description="Tenant this conversation belongs to")
    visitor_id: str | None = Field(default=None, description="Widget visitor identifier")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Metadata
    metadata: dict[str, Any] = Field(default_factory=dict)

    def touch(self, now: datetime | None = None) -> datetime:
        """Advance updated_at, strictly past its previous value."""
        now = now or datetime.utcnow()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now
        return now
