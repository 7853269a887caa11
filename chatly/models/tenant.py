"""Per-tenant widget settings and AI configuration."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AIConfig(BaseModel):
    """Tenant-level AI configuration.

    Every field is optional in storage; missing values take the defaults below.
    ``model`` of None means the deployment-wide default chat model.
    """

    remote_model_enabled: bool = True
    model: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1, le=16000)
    knowledge_base_enabled: bool = True
    default_responses: list[str] = Field(default_factory=list)


class WidgetSettings(BaseModel):
    """Widget appearance plus the AI configuration for one tenant."""

    tenant_id: str = Field(..., description="Owning tenant")

    # Branding
    color: str = "#3B82F6"
    position: Literal["left", "right"] = "right"
    welcome_text: str = "Hello! How can I help you today?"
    logo_url: str | None = None

    ai_settings: AIConfig = Field(default_factory=AIConfig)

    updated_at: datetime = Field(default_factory=datetime.utcnow)
