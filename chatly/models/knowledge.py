"""Knowledge base entry models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class KnowledgeEntryType(str, Enum):
    """Shape of a knowledge entry."""

    TEXT = "text"
    QA = "qa"


class KnowledgeSource(BaseModel):
    """Provenance for entries that did not come from an operator."""

    source: str = "website_crawler"
    url: str | None = None
    title: str | None = None
    crawled_at: datetime | None = None
    selector: str | None = None


class KnowledgeEntry(BaseModel):
    """A tenant-authored fact used to ground AI replies."""

    id: str = Field(..., description="Unique entry identifier")
    tenant_id: str = Field(..., description="Owning tenant")
    type: KnowledgeEntryType

    # Free text
    content: str | None = None

    # Q&A pair
    question: str | None = None
    answer: str | None = None

    metadata: KnowledgeSource | None = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_variant(self) -> "KnowledgeEntry":
        """Keep only the fields of the entry's type, stripped and non-blank."""
        if self.type == KnowledgeEntryType.QA:
            self.question = (self.question or "").strip()
            self.answer = (self.answer or "").strip()
            if not self.question or not self.answer:
                raise ValueError("Question and answer are required for qa entries")
            self.content = None
        else:
            self.content = (self.content or "").strip()
            if not self.content:
                raise ValueError("Content is required for text entries")
            self.question = None
            self.answer = None
        return self

    def render(self) -> str:
        """Render the entry as prompt context."""
        if self.type == KnowledgeEntryType.QA:
            return f"Question: {self.question}\nAnswer: {self.answer}"
        return self.content or ""
