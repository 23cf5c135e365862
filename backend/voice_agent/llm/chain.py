"""
Provider Fallback Chain - Tries generation providers in priority order.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .base import LLMProvider, LLMMessage
from ..core.canned import fallback_response
from ..core.exceptions import AllProvidersExhausted

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER = "fallback"


@dataclass
class ChainReply:
    """Generated text together with the provider that produced it."""
    text: str
    provider: str
    model: str = ""

    @property
    def is_fallback(self) -> bool:
        return self.provider == FALLBACK_PROVIDER


def last_user_text(messages: Sequence[LLMMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


class ProviderChain:
    """
    Ordered list of providers behind one ``generate`` capability.

    Each provider is fault-isolated: an exception, non-success status or
    empty output counts as no answer and the next provider is tried.
    """

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.providers: List[LLMProvider] = list(providers)
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    async def generate_strict(
        self,
        messages: List[LLMMessage],
        model: Optional[str] = None,
    ) -> ChainReply:
        """
        Return the first provider's answer.

        Raises:
            AllProvidersExhausted: No provider produced text
        """
        attempted = []
        for provider in self.providers:
            attempted.append(provider.name)
            text = await provider.generate(
                messages, model=model, temperature=self.temperature, max_tokens=self.max_tokens
            )
            if text is not None:
                logger.info(
                    f"Reply generated by {provider.name}",
                    extra={"extra_fields": {"provider": provider.name, "attempts": len(attempted)}}
                )
                return ChainReply(text=text, provider=provider.name,
                                  model=provider.resolve_model(model))
            logger.warning(f"Provider {provider.name} produced no reply, advancing chain")

        raise AllProvidersExhausted(attempted)

    async def reply(
        self,
        messages: List[LLMMessage],
        model: Optional[str] = None,
    ) -> ChainReply:
        """Like ``generate_strict`` but never fails: falls back to a canned reply."""
        try:
            return await self.generate_strict(messages, model=model)
        except AllProvidersExhausted as e:
            logger.warning(f"{e}; using canned reply")
            return ChainReply(
                text=fallback_response(last_user_text(messages)),
                provider=FALLBACK_PROVIDER,
                model="",
            )

    def streaming_provider(self) -> Optional[LLMProvider]:
        """The provider a live stream is opened against: first one able to stream, else first."""
        for provider in self.providers:
            if provider.supports_streaming:
                return provider
        return self.providers[0] if self.providers else None
