"""
AI Provider Abstraction Layer
==============================
Provider-agnostic interface for stepwise code generation.
Supports Grok and Groq (OpenAI-compatible), Claude, Gemini, and Ollama.
"""

from metatron.providers.base import BaseProvider, ProviderConfig, ProviderResponse
from metatron.providers.registry import (
    PROVIDER_PRESETS, ProviderPreset, config_from_preset, get_preset,
    get_provider, list_providers, register_provider,
)

__all__ = [
    "BaseProvider", "ProviderConfig", "ProviderResponse",
    "PROVIDER_PRESETS", "ProviderPreset", "config_from_preset", "get_preset",
    "get_provider", "list_providers", "register_provider",
]
