"""
Gemini Provider — Google AI
=============================
Install: pip install google-genai
"""

from __future__ import annotations

from metatron.providers.base import BaseProvider, ProviderConfig, ProviderResponse


class GeminiProvider(BaseProvider):
    """Gemini through google-genai. Uses GOOGLE_API_KEY from the preset."""

    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.config.model = config.model or self.DEFAULT_MODEL
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client
        try:
            from google import genai
        except ImportError:
            raise ImportError(
                "Gemini needs the 'google-genai' package. "
                "Install with: pip install google-genai"
            )
        self._client = genai.Client(api_key=self.config.api_key)
        return self._client

    def generate(self, prompt: str, system_instruction: str = "") -> ProviderResponse:
        try:
            from google.genai import types

            response = self._get_client().models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_tokens,
                    system_instruction=system_instruction or None,
                ),
            )
            # .text raises when the reply was blocked
            text = response.text
        except Exception as e:
            return self._failure(str(e))

        usage = getattr(response, "usage_metadata", None)
        return self._reply(
            text,
            prompt_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            completion_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            raw=response,
        )

    def is_available(self) -> bool:
        return bool(self.config.api_key)
