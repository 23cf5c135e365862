"""
LLM Provider Base - Abstract base for all text-generation providers.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, AsyncGenerator
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class LLMMessage:
    """Represents a message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Any] = None


class LLMProvider(ABC):
    """
    Abstract base class for text-generation providers.

    Subclasses implement ``chat_completion``; streaming providers also
    override ``chat_completion_stream`` and set ``supports_streaming``.
    ``generate`` is the fault-isolated entry point used by the fallback
    chain: any failure is logged and reported as None.
    """

    name: str = "provider"
    supports_streaming: bool = False
    # Whether a session-selected model name is forwarded to this provider
    accepts_model_override: bool = False

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 512):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            **kwargs: ``model`` override and provider-specific parameters

        Returns:
            LLMResponse with the generated content

        Raises:
            ProviderUnavailable: On network error, non-2xx status or empty output
        """
        pass

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """
        Stream chat completion tokens.

        Providers without a streaming endpoint yield the buffered reply as
        a single token.
        """
        response = await self.chat_completion(
            messages, temperature=temperature, max_tokens=max_tokens, **kwargs
        )
        yield response.content

    async def generate(
        self,
        messages: List[LLMMessage],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        """Return generated text, or None if this provider failed in any way."""
        try:
            response = await self.chat_completion(
                messages, temperature=temperature, max_tokens=max_tokens, model=model
            )
        except Exception as e:
            logger.warning(
                f"Provider {self.name} failed: {str(e)}",
                extra={"extra_fields": {"provider": self.name, "error": str(e)}}
            )
            return None

        content = (response.content or "").strip()
        if not content:
            logger.warning(f"Provider {self.name} returned empty content")
            return None
        return content

    def resolve_model(self, override: Optional[str]) -> str:
        if override and self.accepts_model_override:
            return override
        return self.model

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [{"role": m.role, "content": m.content} for m in messages]
