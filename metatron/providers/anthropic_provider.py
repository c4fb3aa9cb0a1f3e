"""
Anthropic Provider — Claude
=============================
Install: pip install anthropic
"""

from __future__ import annotations

from metatron.providers.base import BaseProvider, ProviderConfig, ProviderResponse


class AnthropicProvider(BaseProvider):
    """Claude over the messages API. The contract prompt goes in ``system``."""

    DEFAULT_MODEL = "claude-3-sonnet-20240229"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.config.model = config.model or self.DEFAULT_MODEL
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "Claude needs the 'anthropic' package. "
                "Install with: pip install anthropic"
            )
        options = {"api_key": self.config.api_key}
        if self.config.base_url:
            options["base_url"] = self.config.base_url
        self._client = anthropic.Anthropic(**options)
        return self._client

    def generate(self, prompt: str, system_instruction: str = "") -> ProviderResponse:
        request = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            request["system"] = system_instruction

        try:
            message = self._get_client().messages.create(**request)
        except Exception as e:
            return self._failure(str(e))

        # Tool-use and thinking blocks carry no contract sections
        text = "".join(getattr(block, "text", "") for block in message.content or [])
        usage = message.usage
        return self._reply(
            text,
            prompt_tokens=usage.input_tokens if usage else 0,
            completion_tokens=usage.output_tokens if usage else 0,
            finish_reason=message.stop_reason or "stop",
            raw=message,
        )

    def is_available(self) -> bool:
        return bool(self.config.api_key)
