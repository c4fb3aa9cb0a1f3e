"""
Provider Registry — Presets, Registration, and Instantiation
==============================================================
Maps backend names to their implementation classes, and the menu
presets (Grok, Ollama, Groq, Claude, Gemini) to ready-made configs.
Backends are imported lazily so that choosing Ollama never needs an SDK.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Type, Optional

from metatron.errors import ProviderError
from metatron.providers.base import BaseProvider, ProviderConfig, DEFAULT_CONTEXT_WINDOW

# ─────────────────────────────────────────────────────────────
#  Presets
# ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProviderPreset:
    """One entry of the provider selection menu."""

    name: str                   # Stored in the session as the selection
    label: str                  # Menu text
    backend: str                # Registry key of the implementation
    model: str = ""
    base_url: str = ""
    key_env: str = ""           # Env var holding the API key ("" = no key needed)
    model_env: str = ""         # Env var overriding the model
    context_window: int = DEFAULT_CONTEXT_WINDOW

    @property
    def needs_key(self) -> bool:
        return bool(self.key_env)


PROVIDER_PRESETS: list[ProviderPreset] = [
    ProviderPreset(
        name="grok",
        label="Grok (xAI) - Requires API key",
        backend="openai",
        model="grok-4",
        base_url="https://api.x.ai/v1",
        key_env="GROK_API_KEY",
    ),
    ProviderPreset(
        name="ollama",
        label="Ollama - Local models, no API key needed",
        backend="ollama",
        model="llama2",
        base_url="http://localhost:11434",
        model_env="OLLAMA_MODEL",
    ),
    ProviderPreset(
        name="groq",
        label="Groq - Fast inference, requires API key",
        backend="openai",
        model="mixtral-8x7b-32768",
        base_url="https://api.groq.com/openai/v1",
        key_env="GROQ_API_KEY",
        context_window=32768,
    ),
    ProviderPreset(
        name="claude",
        label="Claude (Anthropic) - Requires API key",
        backend="anthropic",
        model="claude-3-sonnet-20240229",
        key_env="CLAUDE_API_KEY",
        context_window=200000,
    ),
    ProviderPreset(
        name="gemini",
        label="Gemini (Google) - Requires API key",
        backend="gemini",
        model="gemini-2.0-flash",
        key_env="GOOGLE_API_KEY",
        context_window=1048576,
    ),
]


def get_preset(name: str) -> ProviderPreset:
    """Look up a preset by name (case-insensitive)."""
    for preset in PROVIDER_PRESETS:
        if preset.name == name.lower():
            return preset
    raise ProviderError(
        f"Unknown provider '{name}'. "
        f"Available: {[p.name for p in PROVIDER_PRESETS]}"
    )


def config_from_preset(preset: ProviderPreset, api_key: str = "", model: str = "",
                       base_url: str = "",
                       context_window: Optional[int] = None) -> ProviderConfig:
    """Build a ProviderConfig from a preset; explicit values win."""
    return ProviderConfig(
        provider_name=preset.backend,
        model=model or preset.model,
        api_key=api_key,
        base_url=base_url or preset.base_url,
        context_window=context_window or preset.context_window,
    )


# ─────────────────────────────────────────────────────────────
#  Registry
# ─────────────────────────────────────────────────────────────

_REGISTRY: dict[str, Type[BaseProvider]] = {}


def register_provider(name: str, provider_class: Type[BaseProvider]):
    """Register a provider class under a backend name."""
    _REGISTRY[name.lower()] = provider_class


def get_provider(config: ProviderConfig) -> BaseProvider:
    """Instantiate a provider from config.

    Raises:
        ProviderError: If the backend is not supported.
    """
    name = config.provider_name.lower()

    if name not in _REGISTRY:
        _lazy_register(name)

    if name not in _REGISTRY:
        raise ProviderError(
            f"Unknown provider backend '{name}'. "
            f"Available: {list_providers()}"
        )

    return _REGISTRY[name](config)


def list_providers() -> list[str]:
    """List all backend names, built-in and registered."""
    for name in ("openai", "anthropic", "gemini", "ollama"):
        if name not in _REGISTRY:
            _lazy_register(name)
    return sorted(_REGISTRY.keys())


def _lazy_register(name: str):
    """Import and register a built-in backend. SDKs load on first call."""
    if name == "openai":
        from metatron.providers.openai_provider import OpenAIProvider
        register_provider("openai", OpenAIProvider)
    elif name == "anthropic":
        from metatron.providers.anthropic_provider import AnthropicProvider
        register_provider("anthropic", AnthropicProvider)
    elif name == "gemini":
        from metatron.providers.gemini_provider import GeminiProvider
        register_provider("gemini", GeminiProvider)
    elif name == "ollama":
        from metatron.providers.ollama_provider import OllamaProvider
        register_provider("ollama", OllamaProvider)
