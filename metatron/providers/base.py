"""
AI Provider Base — Abstract Interface
=======================================
Provider-agnostic interface for one step of code generation.
All backends (OpenAI-compatible, Anthropic, Gemini, Ollama) implement this.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Any

DEFAULT_CONTEXT_WINDOW = 128000


@dataclass
class ProviderConfig:
    """Configuration for an AI provider.

    The step loop never looks inside this object: it is handed to the
    provider and written into session snapshots as-is. Only
    ``context_window`` is read, as the ceiling for the context budget.
    """

    provider_name: str          # Backend: "openai", "anthropic", "gemini", "ollama"
    model: str = ""             # Model name (e.g., "grok-4", "claude-3-sonnet-20240229")
    api_key: str = ""           # API key (not needed for Ollama)
    base_url: str = ""          # Custom endpoint (x.ai, Groq, local Ollama, proxies)
    temperature: float = 0.2
    max_tokens: int = 4096      # Maximum response tokens
    context_window: int = DEFAULT_CONTEXT_WINDOW
    extra: dict[str, Any] = field(default_factory=dict)  # Provider-specific options

    @classmethod
    def from_dict(cls, data: dict) -> ProviderConfig:
        return cls(**{k: v for k, v in data.items()
                      if k in cls.__dataclass_fields__})


@dataclass
class ProviderResponse:
    """Standardized response from any AI provider."""

    content: str                # The generated text
    model: str = ""
    provider: str = ""
    tokens_used: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: str = ""     # "stop", "length", "error", etc.
    raw_response: Any = None
    error: Optional[str] = None # Transport or API error, if any

    @property
    def success(self) -> bool:
        return self.error is None and len(self.content) > 0


class BaseProvider(ABC):
    """Abstract base class for AI providers.

    All providers must implement:
        - generate(): Send a prompt with system instruction, get text back
        - is_available(): Check if the provider is configured and reachable

    ``generate`` reports failures through ``ProviderResponse.error`` and
    does not raise.
    """

    def __init__(self, config: ProviderConfig):
        self.config = config

    @abstractmethod
    def generate(self, prompt: str, system_instruction: str = "") -> ProviderResponse:
        """Generate a response from the AI model.

        Args:
            prompt: The user prompt (context so far + next-step request).
            system_instruction: The response contract system prompt.

        Returns:
            ProviderResponse with the generated content.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and reachable."""
        ...

    @property
    def name(self) -> str:
        return self.config.provider_name

    @property
    def model(self) -> str:
        return self.config.model

    def _reply(self, text: Optional[str], prompt_tokens: int = 0,
               completion_tokens: int = 0, finish_reason: str = "stop",
               raw: Any = None) -> ProviderResponse:
        """Wrap a model reply. Surrounding whitespace is dropped so the
        EXPLANATION marker can sit at the very start."""
        return ProviderResponse(
            content=(text or "").strip(),
            model=self.model,
            provider=self.name,
            tokens_used=prompt_tokens + completion_tokens,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            finish_reason=finish_reason,
            raw_response=raw,
        )

    def _failure(self, detail: str) -> ProviderResponse:
        return ProviderResponse(
            content="",
            model=self.model,
            provider=self.name,
            finish_reason="error",
            error=detail,
        )
