"""Reply selection - remote model first, local rules otherwise."""

import asyncio
import random
import re
from enum import Enum

import structlog

from chatly.core.config import settings
from chatly.core.exceptions import ProviderError
from chatly.models import AIConfig
from chatly.services.llm.provider import LLMProvider

logger = structlog.get_logger()


HELP_REPLY = "I'd be happy to help! What specific assistance do you need today?"
THANKS_REPLY = "You're welcome! Is there anything else I can help you with?"
QUESTION_PREFIX = "That's a good question. Based on the information I have, "
QUESTION_WITH_CONTEXT_REPLY = QUESTION_PREFIX + "I can provide some insights from our knowledge base."
QUESTION_WITHOUT_CONTEXT_REPLY = (
    QUESTION_PREFIX + "I don't have specific information about that in my knowledge base yet."
)
GENERIC_REPLY = "I understand. Let me know if you have any specific questions I can help with."

DEFAULT_FAILURE_RESPONSES = [
    "I'm sorry, I couldn't process that request right now.",
    "It seems I'm having trouble connecting to my knowledge base. Could you try again?",
]

QUESTION_WORDS = ("what", "how", "why", "when", "where", "who", "can", "could", "would", "will")
_QUESTION_RE = re.compile(r"^\s*(?:%s)\b" % "|".join(QUESTION_WORDS), re.IGNORECASE)

SYSTEM_PROMPT_WITH_CONTEXT = (
    "You are a helpful customer support AI assistant. Use the following knowledge "
    "base information to answer the user's questions:\n\n{context}"
)
SYSTEM_PROMPT_WITHOUT_CONTEXT = (
    "You are a helpful customer support AI assistant. No relevant knowledge base "
    "information is available for this tenant, so answer from general knowledge "
    "and say so when you are not sure."
)


class ReplySource(str, Enum):
    """Which path produced a reply."""

    REMOTE = "remote"
    RULES = "rules"
    FAILURE_FALLBACK = "failure_fallback"


class ResponseSelector:
    """Chooses the assistant reply for a conversation turn.

    With a configured provider the reply comes from the remote model; if that
    call fails the reply is drawn at random from the tenant's default responses.
    Without a provider the reply comes from deterministic keyword rules.
    """

    def __init__(
        self,
        llm_provider: LLMProvider | None = None,
        rng: random.Random | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.llm = llm_provider
        self.rng = rng or random.Random()
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

    def remote_enabled(self, config: AIConfig) -> bool:
        return (
            self.llm is not None
            and self.llm.is_configured
            and config.remote_model_enabled
        )

    async def select_response(
        self,
        history: list[dict[str, str]],
        context: str,
        config: AIConfig,
    ) -> str:
        """Return the reply text for the newest visitor message in ``history``."""
        reply, _ = await self.select_response_with_source(history, context, config)
        return reply

    async def select_response_with_source(
        self,
        history: list[dict[str, str]],
        context: str,
        config: AIConfig,
    ) -> tuple[str, ReplySource]:
        if not self.remote_enabled(config):
            return self.rule_based_reply(history, context), ReplySource.RULES

        try:
            reply = await asyncio.wait_for(
                self.llm.complete(
                    messages=self.build_prompt(history, context),
                    model=config.model,
                    temperature=config.temperature,
                    max_tokens=config.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
            return reply, ReplySource.REMOTE
        except (ProviderError, asyncio.TimeoutError) as e:
            logger.warning("Remote reply failed, using default responses", error=str(e))
            return self.failure_reply(config), ReplySource.FAILURE_FALLBACK

    @staticmethod
    def build_prompt(history: list[dict[str, str]], context: str) -> list[dict[str, str]]:
        """System instruction followed by the conversation turns."""
        if context:
            system = SYSTEM_PROMPT_WITH_CONTEXT.format(context=context)
        else:
            system = SYSTEM_PROMPT_WITHOUT_CONTEXT
        return [{"role": "system", "content": system}, *history]

    @staticmethod
    def rule_based_reply(history: list[dict[str, str]], context: str) -> str:
        """Deterministic reply keyed on the newest visitor message."""
        text = ""
        for turn in reversed(history):
            if turn.get("role") == "user":
                text = turn.get("content", "")
                break
        lowered = text.lower()

        if "help" in lowered:
            return HELP_REPLY
        if "thank" in lowered:
            return THANKS_REPLY
        if _QUESTION_RE.match(lowered):
            return QUESTION_WITH_CONTEXT_REPLY if context else QUESTION_WITHOUT_CONTEXT_REPLY
        return GENERIC_REPLY

    def failure_reply(self, config: AIConfig | None = None) -> str:
        """Random pick from the tenant's default responses."""
        choices = [r for r in (config.default_responses if config else []) if r.strip()]
        return self.rng.choice(choices or DEFAULT_FAILURE_RESPONSES)
