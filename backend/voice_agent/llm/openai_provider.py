"""
OpenAI-compatible chat completion providers.

Covers OpenAI itself and any service exposing the same
``/chat/completions`` endpoint (Groq's fast-inference API among them).
Streaming responses are server-sent events carrying
``choices[0].delta.content`` and terminated by ``data: [DONE]``.
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, AsyncGenerator

from .base import LLMProvider, LLMMessage, LLMResponse
from ..core.exceptions import ProviderUnavailable, StreamError

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """Provider for OpenAI-style chat/completions endpoints."""

    name = "openai-compatible"
    supports_streaming = True

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        default_temperature: float = 0.7,
        default_max_tokens: int = 512,
        timeout: float = 60.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens)
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float],
        max_tokens: Optional[int],
        model: Optional[str],
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.resolve_model(model),
            "messages": self._format_messages(messages),
            "temperature": temperature if temperature is not None else self.default_temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, temperature, max_tokens, kwargs.get("model"))

        logger.debug(
            f"LLM API call starting: provider={self.name}, model={payload['model']}, "
            f"temperature={payload['temperature']}, {len(messages)} messages"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise ProviderUnavailable(self.name, f"network error: {e}") from e

        if resp.status_code >= 400:
            raise ProviderUnavailable(
                self.name, f"HTTP {resp.status_code}: {resp.text[:200]}", status=resp.status_code
            )

        try:
            data = resp.json()
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderUnavailable(self.name, f"malformed response: {e}") from e

        if choice.get("finish_reason") == "content_filter" or not content.strip():
            raise ProviderUnavailable(self.name, "empty or blocked response")

        usage = data.get("usage") or {}
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "LLM API call completed",
            extra={"extra_fields": {
                "provider": self.name,
                "model": data.get("model", payload["model"]),
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "duration_ms": round(duration_ms, 2),
            }}
        )

        return LLMResponse(
            content=content,
            model=data.get("model", payload["model"]),
            usage=usage,
            raw=data,
        )

    async def chat_completion_stream(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> AsyncGenerator[str, None]:
        """
        Stream tokens from the Chat Completions endpoint.

        Raises:
            StreamError: Upstream answered non-2xx before any token
            ProviderUnavailable: Transport failure at any point
        """
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(
            messages, temperature, max_tokens, kwargs.get("model"), stream=True
        )

        logger.debug(
            f"LLM API stream starting: provider={self.name}, model={payload['model']}, "
            f"{len(messages)} messages"
        )

        content_length = 0
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream('POST', url, json=payload, headers=self._get_headers()) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="ignore")
                        raise StreamError(response.status_code, body, provider=self.name)

                    async for line in response.aiter_lines():
                        if not line or not line.startswith("data:"):
                            continue

                        data_str = line[5:].strip()
                        if data_str == "[DONE]":
                            break

                        try:
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            # Skip malformed chunks
                            continue

                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        token = (choices[0].get("delta") or {}).get("content")
                        if token:
                            content_length += len(token)
                            yield token
        except httpx.HTTPError as e:
            raise ProviderUnavailable(self.name, f"stream network error: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "LLM API stream completed",
            extra={"extra_fields": {
                "provider": self.name,
                "model": payload["model"],
                "duration_ms": round(duration_ms, 2),
                "content_length": content_length,
            }}
        )


class OpenAIProvider(OpenAICompatibleProvider):
    """Primary provider: OpenAI chat completions."""

    name = "openai"
    accepts_model_override = True

    def __init__(self, api_key: str, model: str = "gpt-4o-mini",
                 base_url: str = "https://api.openai.com/v1", **kwargs):
        super().__init__(api_key, model, base_url, **kwargs)


class GroqProvider(OpenAICompatibleProvider):
    """Fast-inference provider: Groq's OpenAI-compatible endpoint."""

    name = "groq"

    def __init__(self, api_key: str, model: str = "llama-3.1-8b-instant",
                 base_url: str = "https://api.groq.com/openai/v1", **kwargs):
        super().__init__(api_key, model, base_url, **kwargs)
