"""Knowledge base endpoints - CRUD and website crawling."""

from typing import Any
from uuid import uuid4

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, ValidationError

from chatly.api.dependencies import CrawlerDep, StorageDep, TenantDep
from chatly.core.exceptions import InvalidInput, NotFound
from chatly.models import KnowledgeEntry, KnowledgeEntryType

logger = structlog.get_logger()

router = APIRouter(prefix="/api/knowledge-base", tags=["Knowledge Base"])


# ==================== Pydantic Schemas ====================


class KnowledgeEntryWrite(BaseModel):
    """Schema for creating or replacing a knowledge entry."""

    type: KnowledgeEntryType
    content: str | None = None
    question: str | None = None
    answer: str | None = None


class CrawlRequest(BaseModel):
    """Schema for crawling a page into the knowledge base."""

    url: str
    selector: str | None = None


def _build_entry(entry_id: str, tenant_id: str, data: KnowledgeEntryWrite, **extra: Any) -> KnowledgeEntry:
    try:
        return KnowledgeEntry(
            id=entry_id,
            tenant_id=tenant_id,
            type=data.type,
            content=data.content,
            question=data.question,
            answer=data.answer,
            **extra,
        )
    except ValidationError as e:
        raise InvalidInput(e.errors()[0]["msg"], field="type") from None


# ==================== Endpoints ====================


@router.get("", response_model=list[KnowledgeEntry])
async def list_entries(
    tenant_id: TenantDep,
    storage: StorageDep,
) -> list[KnowledgeEntry]:
    """List the tenant's knowledge entries, most recently updated first."""
    return await storage.list_knowledge_entries(tenant_id)


@router.post("", response_model=KnowledgeEntry, status_code=status.HTTP_201_CREATED)
async def create_entry(
    data: KnowledgeEntryWrite,
    tenant_id: TenantDep,
    storage: StorageDep,
) -> KnowledgeEntry:
    """Create a free-text or Q&A knowledge entry."""
    entry = _build_entry(str(uuid4()), tenant_id, data)
    await storage.save_knowledge_entry(entry)
    logger.info("Created knowledge entry", tenant_id=tenant_id, entry_id=entry.id, type=entry.type)
    return entry


@router.put("/{entry_id}", response_model=KnowledgeEntry)
async def update_entry(
    entry_id: str,
    data: KnowledgeEntryWrite,
    tenant_id: TenantDep,
    storage: StorageDep,
) -> KnowledgeEntry:
    """Replace the body of a knowledge entry."""
    existing = await storage.get_knowledge_entry(tenant_id, entry_id)
    if existing is None:
        raise NotFound("knowledge entry", entry_id, tenant_id)

    entry = _build_entry(
        entry_id,
        tenant_id,
        data,
        metadata=existing.metadata,
        created_at=existing.created_at,
    )
    await storage.save_knowledge_entry(entry)
    logger.info("Updated knowledge entry", tenant_id=tenant_id, entry_id=entry_id)
    return entry


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    tenant_id: TenantDep,
    storage: StorageDep,
) -> None:
    """Delete a knowledge entry."""
    if not await storage.delete_knowledge_entry(tenant_id, entry_id):
        raise NotFound("knowledge entry", entry_id, tenant_id)
    logger.info("Deleted knowledge entry", tenant_id=tenant_id, entry_id=entry_id)


@router.post("/crawl", response_model=KnowledgeEntry, status_code=status.HTTP_201_CREATED)
async def crawl_website(
    data: CrawlRequest,
    tenant_id: TenantDep,
    crawler: CrawlerDep,
) -> KnowledgeEntry:
    """Extract a web page's text into a new knowledge entry."""
    return await crawler.crawl(tenant_id, data.url, data.selector)
