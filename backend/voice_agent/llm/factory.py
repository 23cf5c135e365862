"""
LLM Provider Factory - Creates configured provider instances and the fallback chain.
"""

import logging
from typing import Any, List, Optional

from .base import LLMProvider
from .chain import ProviderChain
from .openai_provider import OpenAIProvider, GroqProvider
from .huggingface_provider import HuggingFaceProvider

logger = logging.getLogger(__name__)


def create_llm_provider(
    provider: str = "openai",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance.

    Args:
        provider: Provider name ("openai", "huggingface" or "groq")
        api_key: API key for the provider
        model: Model name (uses provider default if not specified); for
            "huggingface" pass ``models`` instead
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider-specific parameters

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    params = {"api_key": api_key}
    if base_url:
        params["base_url"] = base_url
    params.update(kwargs)

    if provider == "openai":
        if model:
            params["model"] = model
        return OpenAIProvider(**params)

    elif provider == "groq":
        if model:
            params["model"] = model
        return GroqProvider(**params)

    elif provider == "huggingface":
        return HuggingFaceProvider(**params)

    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def build_provider_chain(config: Any) -> ProviderChain:
    """
    Build the fallback chain in ``config.provider_order``, skipping
    providers without an API key.
    """
    common = {
        "default_temperature": config.generation_temperature,
        "default_max_tokens": config.generation_max_tokens,
        "timeout": config.provider_timeout,
    }
    specs = {
        "openai": dict(api_key=config.openai_api_key,
                       model=config.openai_model or config.default_model,
                       base_url=config.openai_base_url),
        "huggingface": dict(api_key=config.hf_api_key,
                            base_url=config.hf_base_url,
                            models=config.hf_models),
        "groq": dict(api_key=config.groq_api_key,
                     model=config.groq_model,
                     base_url=config.groq_base_url),
    }

    providers: List[LLMProvider] = []
    for name in config.provider_order:
        if name not in specs:
            raise ValueError(f"Unsupported LLM provider: {name}")
        instance = create_llm_provider(provider=name, **specs[name], **common)
        if instance is None:
            logger.info(f"Provider {name} not configured, skipping")
            continue
        providers.append(instance)

    logger.info(f"Provider chain: {[p.name for p in providers] or 'canned replies only'}")
    return ProviderChain(
        providers,
        temperature=config.generation_temperature,
        max_tokens=config.generation_max_tokens,
    )
