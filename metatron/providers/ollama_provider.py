"""
Ollama Provider — Local LLMs
==============================
Posts one non-streaming request per step to a local Ollama server.
No API key and no pip dependency: model name comes from OLLAMA_MODEL
or the prompt, server from ``base_url``.
"""

from __future__ import annotations

import json
import urllib.request
import urllib.error

from metatron.providers.base import BaseProvider, ProviderConfig, ProviderResponse


class OllamaProvider(BaseProvider):

    DEFAULT_MODEL = "llama2"
    DEFAULT_BASE_URL = "http://localhost:11434"
    TIMEOUT = 300  # local models can take minutes on a long context

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self.config.model = config.model or self.DEFAULT_MODEL
        self.config.base_url = config.base_url or self.DEFAULT_BASE_URL

    def _url(self, path: str) -> str:
        return self.config.base_url.rstrip("/") + path

    def _call(self, path: str, payload: dict = None, timeout: float = TIMEOUT) -> dict:
        data = None if payload is None else json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(
            self._url(path),
            data=data,
            headers={"Content-Type": "application/json"},
            method="GET" if payload is None else "POST",
        )
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def generate(self, prompt: str, system_instruction: str = "") -> ProviderResponse:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        if system_instruction:
            payload["system"] = system_instruction

        try:
            result = self._call("/api/generate", payload)
        except urllib.error.HTTPError as e:
            return self._failure(f"API request failed: {e.code} {e.reason}")
        except urllib.error.URLError as e:
            return self._failure(f"Cannot reach Ollama at {self.config.base_url}: {e.reason}")
        except (OSError, ValueError) as e:
            return self._failure(str(e))

        return self._reply(
            result.get("response", ""),
            prompt_tokens=result.get("prompt_eval_count", 0),
            completion_tokens=result.get("eval_count", 0),
            finish_reason="stop" if result.get("done") else "length",
            raw=result,
        )

    def is_available(self) -> bool:
        """True when the server answers and the model has been pulled."""
        try:
            result = self._call("/api/tags", timeout=5)
        except (OSError, ValueError):
            return False
        return any(self.model in m.get("name", "") for m in result.get("models", []))
