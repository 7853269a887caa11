"""LLM Provider using LiteLLM for multi-provider abstraction."""

import time
from dataclasses import dataclass, field
from typing import Any

import litellm
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chatly.core.config import Settings, settings
from chatly.core.exceptions import ProviderError

logger = structlog.get_logger()

# Configure LiteLLM
litellm.set_verbose = settings.app_debug

# Set API keys from settings
if settings.openai_api_key:
    litellm.openai_key = settings.openai_api_key
if settings.anthropic_api_key:
    litellm.anthropic_key = settings.anthropic_api_key
if settings.google_api_key:
    litellm.google_key = settings.google_api_key


@dataclass
class LLMResponse:
    """Response from LLM completion."""

    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"
    latency_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


class LLMProvider:
    """Remote chat-completion client.

    Uses LiteLLM for a unified API across OpenAI, Anthropic, Google, and more.
    Every failure (transport, timeout, non-2xx, malformed payload) surfaces as
    ProviderError.
    """

    def __init__(
        self,
        config: Settings | None = None,
        default_model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.config = config or settings
        self.default_model = default_model or self.config.default_chat_model
        self.timeout_seconds = timeout_seconds or self.config.llm_timeout_seconds

        logger.info(
            "LLM Provider initialized",
            model=self.default_model,
            configured=self.is_configured,
        )

    @property
    def is_configured(self) -> bool:
        """Whether a remote model credential is available."""
        return self.config.has_llm_credentials

    @retry(
        retry=retry_if_exception_type(ProviderError),
        stop=stop_after_attempt(settings.llm_max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a completion.

        Args:
            messages: Message dicts with 'role' and 'content', system prompt first
            model: Override model selection
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens to generate

        Returns:
            The reply text

        Raises:
            ProviderError: On any failure to obtain reply text
        """
        response = await self.complete_with_metadata(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.content

    async def complete_with_metadata(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """Generate a completion and keep usage information."""
        model_to_use = model or self.default_model
        start_time = time.perf_counter()

        try:
            response = await litellm.acompletion(
                model=model_to_use,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning("LLM completion failed", model=model_to_use, error=str(e))
            raise ProviderError(f"Completion request failed: {e}", provider=model_to_use) from e

        try:
            content = response.choices[0].message.content
            finish_reason = response.choices[0].finish_reason or "stop"
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            raise ProviderError(f"Malformed completion payload: {e}", provider=model_to_use) from e

        if not content or not content.strip():
            raise ProviderError("Completion returned no text", provider=model_to_use)

        latency_ms = (time.perf_counter() - start_time) * 1000
        usage = getattr(response, "usage", None)
        tokens_input = getattr(usage, "prompt_tokens", 0) or 0
        tokens_output = getattr(usage, "completion_tokens", 0) or 0

        logger.info(
            "LLM completion successful",
            model=model_to_use,
            tokens_in=tokens_input,
            tokens_out=tokens_output,
            latency_ms=round(latency_ms, 2),
        )

        return LLMResponse(
            content=content,
            model=model_to_use,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
            metadata={"raw_response_id": getattr(response, "id", None)},
        )


# Singleton instance
_llm_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """Get or create the LLM provider singleton."""
    global _llm_provider
    if _llm_provider is None:
        _llm_provider = LLMProvider()
    return _llm_provider
