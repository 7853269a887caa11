"""API routes."""

from chatly.api.routes.conversations import router as conversations_router
from chatly.api.routes.health import router as health_router
from chatly.api.routes.knowledge import router as knowledge_router
from chatly.api.routes.realtime import router as realtime_router
from chatly.api.routes.widget import router as widget_router

__all__ = [
    "conversations_router",
    "health_router",
    "knowledge_router",
    "realtime_router",
    "widget_router",
]
