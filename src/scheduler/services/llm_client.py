"""HTTP clients for the remote LLM providers used by the smart extractor."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    DEEPSEEK = "deepseek"
    GEMINI = "gemini"


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider."""

    text: str
    provider: LLMProvider
    model: str
    latency_ms: int = 0
    raw_response: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    provider: LLMProvider
    default_model: str

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        if client is None:
            import httpx

            self._client = httpx.Client(timeout=timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            self._client.close()

    @abstractmethod
    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send a completion request and return standardized response."""
        ...


class DeepSeekProvider(BaseLLMProvider):
    """DeepSeek chat completions (OpenAI-compatible)."""

    provider = LLMProvider.DEEPSEEK
    default_model = "deepseek-chat"
    endpoint = "https://api.deepseek.com/v1/chat/completions"

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        start_time = time.time()

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request_body: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            request_body["response_format"] = {"type": "json_object"}

        response = self._client.post(
            self.endpoint,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=request_body,
        )
        response.raise_for_status()
        data = response.json()

        text = ""
        choices = data.get("choices", [])
        if choices:
            text = choices[0].get("message", {}).get("content") or ""

        return LLMResponse(
            text=text,
            provider=self.provider,
            model=self.model,
            latency_ms=int((time.time() - start_time) * 1000),
            raw_response=data,
        )


class GeminiProvider(BaseLLMProvider):
    """Google Gemini API provider."""

    provider = LLMProvider.GEMINI
    default_model = "gemini-2.0-flash"

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_mode: bool = False,
    ) -> LLMResponse:
        start_time = time.time()
        endpoint = (
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
        )

        contents = []
        if system_prompt:
            contents.append({"role": "user", "parts": [{"text": system_prompt}]})
            contents.append(
                {"role": "model", "parts": [{"text": "Understood. Following instructions."}]}
            )
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        generation_config: dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        response = self._client.post(
            endpoint,
            params={"key": self.api_key},
            json={"contents": contents, "generationConfig": generation_config},
        )
        response.raise_for_status()
        data = response.json()

        text = ""
        candidates = data.get("candidates", [])
        if candidates:
            parts = candidates[0].get("content", {}).get("parts", [])
            for part in parts:
                if "text" in part:
                    text = part["text"]
                    break

        return LLMResponse(
            text=text,
            provider=self.provider,
            model=self.model,
            latency_ms=int((time.time() - start_time) * 1000),
            raw_response=data,
        )


PROVIDERS: dict[LLMProvider, type[BaseLLMProvider]] = {
    LLMProvider.DEEPSEEK: DeepSeekProvider,
    LLMProvider.GEMINI: GeminiProvider,
}


def create_provider(
    provider: LLMProvider | str,
    api_key: str,
    *,
    model: str | None = None,
    client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> BaseLLMProvider:
    """Instantiate the provider class registered for ``provider``.

    Raises:
        ValueError: If the provider name is not supported.
    """
    provider_cls = PROVIDERS[LLMProvider(provider)]
    return provider_cls(api_key=api_key, model=model, client=client, timeout=timeout)
