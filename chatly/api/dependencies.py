"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from chatly.core.config import settings
from chatly.core.exceptions import ConfigurationError
from chatly.services.conversation.pipeline import MessagePipeline
from chatly.services.conversation.responder import ResponseSelector
from chatly.services.knowledge.crawler import KnowledgeCrawler
from chatly.services.llm.provider import LLMProvider, get_llm_provider
from chatly.services.realtime.fanout import RealtimeFanout, get_fanout
from chatly.storage.base import StorageBackend
from chatly.storage.memory import InMemoryStorage


# Storage singleton
_storage: StorageBackend | None = None

# Pipeline singleton
_pipeline: MessagePipeline | None = None


def get_storage() -> StorageBackend:
    """Get the storage backend singleton.

    Uses in-memory storage unless Firestore is selected.
    """
    global _storage
    if _storage is None:
        if settings.storage_backend == "firestore":
            if not settings.gcp_project_id:
                raise ConfigurationError("GCP_PROJECT_ID is required for the Firestore backend")
            from chatly.storage.firestore import FirestoreStorage
            _storage = FirestoreStorage(project_id=settings.gcp_project_id)
        else:
            _storage = InMemoryStorage()
    return _storage


def get_pipeline() -> MessagePipeline:
    """Get the message pipeline bound to the process-wide storage and fanout."""
    global _pipeline
    if _pipeline is None:
        _pipeline = MessagePipeline(
            storage=get_storage(),
            fanout=get_fanout(),
            selector=ResponseSelector(llm_provider=get_llm_provider()),
        )
    return _pipeline


def reset_dependencies() -> None:
    """Reset storage and pipeline singletons (for testing)."""
    global _storage, _pipeline
    _storage = None
    _pipeline = None


# Type aliases for cleaner dependency injection
StorageDep = Annotated[StorageBackend, Depends(get_storage)]
FanoutDep = Annotated[RealtimeFanout, Depends(get_fanout)]
PipelineDep = Annotated[MessagePipeline, Depends(get_pipeline)]
LLMDep = Annotated[LLMProvider, Depends(get_llm_provider)]


def get_crawler(storage: StorageDep) -> KnowledgeCrawler:
    """Get a knowledge crawler writing into the storage backend."""
    return KnowledgeCrawler(storage=storage)


CrawlerDep = Annotated[KnowledgeCrawler, Depends(get_crawler)]


TENANT_HEADER = "X-Tenant-ID"


def resolve_tenant(value: str | None) -> str | None:
    """Normalise a tenant id forwarded by the upstream auth layer."""
    if not value or not value.strip():
        return None
    return value.strip()


async def get_tenant_id(x_tenant_id: str | None = Header(None)) -> str:
    """Resolve the calling tenant.

    Authentication happens upstream; it forwards the authenticated tenant in
    the X-Tenant-ID header. WebSocket handshakes carry the same header.
    """
    tenant_id = resolve_tenant(x_tenant_id)
    if tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing tenant",
        )
    return tenant_id


TenantDep = Annotated[str, Depends(get_tenant_id)]
