"""Builds the configured remote text generator."""

from __future__ import annotations

from ..config import GenerationSettings
from .providers.base import TextGenerator
from .providers.gemini_provider import GeminiProvider
from .providers.openai_provider import OpenAIProvider

PROVIDERS = {
    GeminiProvider.name: GeminiProvider,
    OpenAIProvider.name: OpenAIProvider,
}


def build_provider(settings: GenerationSettings) -> TextGenerator:
    provider_cls = PROVIDERS.get(settings.provider)
    if provider_cls is None:
        raise ValueError(f"Unknown LLM provider: {settings.provider}")
    return provider_cls(api_key=settings.api_key)
