"""
Hugging Face hosted-inference provider.

Text-generation models on the Inference API take a flat prompt rather
than a message list, so the conversation is rendered as a transcript.
Candidate models are tried in order until one returns text.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from .base import LLMProvider, LLMMessage, LLMResponse
from ..core.exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

ROLE_LABELS = {"system": "System", "user": "User", "assistant": "Assistant"}


def render_prompt(messages: List[LLMMessage]) -> str:
    """Render a message list as a plain-text transcript ending with an assistant cue."""
    lines = [f"{ROLE_LABELS.get(m.role, m.role.title())}: {m.content}" for m in messages]
    lines.append("Assistant:")
    return "\n".join(lines)


def extract_generated_text(data: Any) -> Optional[str]:
    """Pull ``generated_text`` out of either response shape the API uses."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0].get("generated_text")
    if isinstance(data, dict):
        return data.get("generated_text")
    return None


class HuggingFaceProvider(LLMProvider):
    """Provider for the Hugging Face Inference API, across candidate models."""

    name = "huggingface"

    def __init__(
        self,
        api_key: str,
        models: Optional[List[str]] = None,
        base_url: str = "https://api-inference.huggingface.co",
        default_temperature: float = 0.7,
        default_max_tokens: int = 512,
        timeout: float = 60.0,
    ):
        models = list(models or ["microsoft/DialoGPT-medium"])
        super().__init__(api_key, models[0], base_url, default_temperature, default_max_tokens)
        self.models = models
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def candidate_models(self, override: Optional[str] = None) -> List[str]:
        # Only repository ids ("org/name") make sense as overrides here
        if override and "/" in override and override not in self.models:
            return [override] + self.models
        return list(self.models)

    async def _call_model(
        self,
        client: httpx.AsyncClient,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> Optional[str]:
        payload = {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": max_tokens,
                "temperature": temperature,
                "return_full_text": False,
            },
            "options": {"wait_for_model": True},
        }
        resp = await client.post(
            f"{self.base_url}/models/{model}", json=payload, headers=self._get_headers()
        )
        if resp.status_code >= 400:
            logger.warning(
                f"Hugging Face model {model} returned HTTP {resp.status_code}",
                extra={"extra_fields": {"provider": self.name, "model": model,
                                        "status": resp.status_code}}
            )
            return None
        try:
            text = extract_generated_text(resp.json())
        except ValueError:
            return None
        if text and text.startswith(prompt):
            text = text[len(prompt):]
        return text.strip() if text and text.strip() else None

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Try each candidate model in turn; the first non-empty text wins."""
        start_time = time.time()
        prompt = render_prompt(messages)
        temperature = temperature if temperature is not None else self.default_temperature
        max_tokens = max_tokens or self.default_max_tokens

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for model in self.candidate_models(kwargs.get("model")):
                try:
                    text = await self._call_model(client, model, prompt, temperature, max_tokens)
                except httpx.HTTPError as e:
                    logger.warning(f"Hugging Face model {model} network error: {e}")
                    continue
                if text:
                    logger.info(
                        "LLM API call completed",
                        extra={"extra_fields": {
                            "provider": self.name,
                            "model": model,
                            "duration_ms": round((time.time() - start_time) * 1000, 2),
                        }}
                    )
                    return LLMResponse(content=text, model=model)

        raise ProviderUnavailable(self.name, "no candidate model produced text")
