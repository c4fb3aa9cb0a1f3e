"""
OpenAI-Compatible Provider — Grok (xAI), Groq, OpenAI
=======================================================
One chat-completions client for every endpoint that speaks the OpenAI
wire format. The preset picks the endpoint through ``base_url``.
Install: pip install openai
"""

from __future__ import annotations

from metatron.providers.base import BaseProvider, ProviderConfig, ProviderResponse


class OpenAIProvider(BaseProvider):
    """Chat-completions provider for Grok, Groq and OpenAI itself."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.config.model = config.model or self.DEFAULT_MODEL
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        try:
            import openai
        except ImportError:
            raise ImportError(
                "Grok and Groq need the 'openai' package. "
                "Install with: pip install openai"
            )
        options = {"api_key": self.config.api_key}
        if self.config.base_url:
            options["base_url"] = self.config.base_url
        self._client = openai.OpenAI(**options)
        return self._client

    def generate(self, prompt: str, system_instruction: str = "") -> ProviderResponse:
        messages = [{"role": "user", "content": prompt}]
        if system_instruction:
            messages.insert(0, {"role": "system", "content": system_instruction})

        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as e:
            return self._failure(str(e))

        if not completion.choices:
            return self._failure("reply contained no choices")
        choice = completion.choices[0]
        usage = completion.usage
        return self._reply(
            choice.message.content,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            finish_reason=choice.finish_reason or "stop",
            raw=completion,
        )

    def is_available(self) -> bool:
        return bool(self.config.api_key)
