"""Widget configuration endpoints."""

from typing import Literal

import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from chatly.api.dependencies import StorageDep, TenantDep
from chatly.core.exceptions import NotFound
from chatly.models import AIConfig, WidgetSettings

logger = structlog.get_logger()

router = APIRouter(prefix="/api/widget", tags=["Widget"])


class WidgetUpdate(BaseModel):
    """Schema for updating widget settings. Omitted fields are left unchanged."""

    color: str | None = None
    position: Literal["left", "right"] | None = None
    welcome_text: str | None = None
    logo_url: str | None = None
    ai_settings: AIConfig | None = None


class PublicWidgetConfig(BaseModel):
    """Appearance settings the embed script may read without authentication."""

    color: str
    position: str
    welcome_text: str
    logo_url: str | None = None


@router.get("", response_model=WidgetSettings)
async def get_widget(
    tenant_id: TenantDep,
    storage: StorageDep,
) -> WidgetSettings:
    """Get the tenant's widget settings (defaults when never saved)."""
    widget = await storage.get_widget_settings(tenant_id)
    return widget or WidgetSettings(tenant_id=tenant_id)


@router.put("", response_model=WidgetSettings)
async def update_widget(
    data: WidgetUpdate,
    tenant_id: TenantDep,
    storage: StorageDep,
) -> WidgetSettings:
    """Update widget appearance and AI settings."""
    widget = await storage.get_widget_settings(tenant_id) or WidgetSettings(tenant_id=tenant_id)

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "ai_settings" in updates:
        updates["ai_settings"] = data.ai_settings
    widget = widget.model_copy(update=updates)

    await storage.save_widget_settings(widget)
    logger.info("Updated widget settings", tenant_id=tenant_id, fields=sorted(updates))
    return widget


@router.get("/public/{tenant_id}", response_model=PublicWidgetConfig)
async def get_public_widget(
    tenant_id: str,
    storage: StorageDep,
) -> PublicWidgetConfig:
    """Public appearance settings for the embed script."""
    widget = await storage.get_widget_settings(tenant_id)
    if widget is None:
        raise NotFound("widget configuration", tenant_id)
    return PublicWidgetConfig(
        color=widget.color,
        position=widget.position,
        welcome_text=widget.welcome_text,
        logo_url=widget.logo_url,
    )
