"""LLM module - provides unified interface for text-generation providers."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .chain import ProviderChain, ChainReply
from .openai_provider import OpenAICompatibleProvider, OpenAIProvider, GroqProvider
from .huggingface_provider import HuggingFaceProvider
from .factory import create_llm_provider, build_provider_chain

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'ProviderChain',
    'ChainReply',
    'OpenAICompatibleProvider',
    'OpenAIProvider',
    'GroqProvider',
    'HuggingFaceProvider',
    'create_llm_provider',
    'build_provider_chain',
]
