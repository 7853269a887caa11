"""Conversation service - message pipeline, context assembly and reply selection."""

from chatly.services.conversation.context import build_context
from chatly.services.conversation.pipeline import MessagePipeline, PipelineResult
from chatly.services.conversation.responder import ReplySource, ResponseSelector

__all__ = [
    "build_context",
    "MessagePipeline",
    "PipelineResult",
    "ReplySource",
    "ResponseSelector",
]
