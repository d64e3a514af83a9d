"""HTTP adapters for the supported text-completion vendors.

Each adapter performs exactly one outbound request per call.  Non-2xx
responses propagate as :class:`httpx.HTTPStatusError`, request-layer failures
as :class:`httpx.TransportError` and missing text as
:class:`EmptyCompletionError`; turning those into typed errors and retrying is
left to the application layer.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

import httpx

from resume_enhancer.domain.errors import AIError, EmptyCompletionError, ErrorKind
from resume_enhancer.domain.providers import ModelInfo, Provider, describe_model

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(slots=True)
class Completion:
    """Text returned by a vendor along with its token accounting."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ProviderAdapter(Protocol):
    """Contract implemented once per vendor."""

    provider: Provider

    async def send_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        """Send one completion request and return the extracted text."""

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        """Return the models available to ``api_key``."""

    async def aclose(self) -> None: ...


def _dig(payload: Any, *path: str | int) -> Any:
    node = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
    return node


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class _HTTPAdapter:
    provider: Provider
    api_base: str

    def __init__(
        self,
        *,
        api_base: str | None = None,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_base = (api_base or self.api_base).rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self, api_key: str) -> dict[str, str]:
        raise NotImplementedError

    def _resolve_model(self, model: str | None) -> str:
        return model or self.provider.info.default_model

    def _family_match(self, model_id: str) -> bool:
        return any(family in model_id for family in self.provider.info.model_families)

    async def _post(self, url: str, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("%s completion request to %s", self.provider.value, url)
        response = await self._client.post(url, headers=self._headers(api_key), json=payload)
        response.raise_for_status()
        return response.json()

    async def _get(self, url: str, api_key: str) -> dict[str, Any]:
        response = await self._client.get(url, headers=self._headers(api_key))
        response.raise_for_status()
        return response.json()

    def _completion(
        self,
        text: Any,
        model: str,
        system_prompt: str,
        user_prompt: str,
        input_tokens: Any,
        output_tokens: Any,
    ) -> Completion:
        if not isinstance(text, str) or not text.strip():
            raise EmptyCompletionError(self.provider)
        prompt_tokens = _as_int(input_tokens)
        if prompt_tokens is None:
            prompt_tokens = estimate_tokens(system_prompt) + estimate_tokens(user_prompt)
        completion_tokens = _as_int(output_tokens)
        if completion_tokens is None:
            completion_tokens = estimate_tokens(text)
        return Completion(text=text, model=model, input_tokens=prompt_tokens, output_tokens=completion_tokens)

    @staticmethod
    def _sort_models(models: Iterable[ModelInfo]) -> list[ModelInfo]:
        return sorted(models, key=lambda item: (not item.is_recommended, item.is_deprecated, item.id))

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


class OpenAIAdapter(_HTTPAdapter):
    provider = Provider.OPENAI
    api_base = "https://api.openai.com/v1"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    async def send_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        resolved = self._resolve_model(model)
        payload = {
            "model": resolved,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self._post(f"{self._api_base}/chat/completions", api_key, payload)
        return self._completion(
            _dig(data, "choices", 0, "message", "content"),
            data.get("model") or resolved,
            system_prompt,
            user_prompt,
            _dig(data, "usage", "prompt_tokens"),
            _dig(data, "usage", "completion_tokens"),
        )

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        data = await self._get(f"{self._api_base}/models", api_key)
        models = [
            describe_model(self.provider, item["id"])
            for item in data.get("data") or []
            if isinstance(item, dict) and item.get("id") and self._family_match(item["id"])
        ]
        return self._sort_models(models)


class AnthropicAdapter(_HTTPAdapter):
    provider = Provider.ANTHROPIC
    api_base = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    async def send_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        resolved = self._resolve_model(model)
        payload = {
            "model": resolved,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self._post(f"{self._api_base}/messages", api_key, payload)
        return self._completion(
            _dig(data, "content", 0, "text"),
            data.get("model") or resolved,
            system_prompt,
            user_prompt,
            _dig(data, "usage", "input_tokens"),
            _dig(data, "usage", "output_tokens"),
        )

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        data = await self._get(f"{self._api_base}/models", api_key)
        models = [
            describe_model(self.provider, item["id"], name=item.get("display_name"))
            for item in data.get("data") or []
            if isinstance(item, dict) and item.get("id") and self._family_match(item["id"])
        ]
        return self._sort_models(models)


class GeminiAdapter(_HTTPAdapter):
    provider = Provider.GEMINI
    api_base = "https://generativelanguage.googleapis.com/v1beta"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    async def send_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        resolved = self._resolve_model(model).removeprefix("models/")
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        data = await self._post(f"{self._api_base}/models/{resolved}:generateContent", api_key, payload)
        return self._completion(
            _dig(data, "candidates", 0, "content", "parts", 0, "text"),
            data.get("modelVersion") or resolved,
            system_prompt,
            user_prompt,
            _dig(data, "usageMetadata", "promptTokenCount"),
            _dig(data, "usageMetadata", "candidatesTokenCount"),
        )

    async def list_models(self, api_key: str) -> list[ModelInfo]:
        data = await self._get(f"{self._api_base}/models", api_key)
        models: list[ModelInfo] = []
        for item in data.get("models") or []:
            if not isinstance(item, dict):
                continue
            name = str(item.get("name") or "")
            methods = item.get("supportedGenerationMethods") or []
            if "generateContent" not in methods or not self._family_match(name):
                continue
            model_id = name.removeprefix("models/")
            models.append(
                describe_model(
                    self.provider,
                    model_id,
                    name=item.get("displayName"),
                    context_length=_as_int(item.get("inputTokenLimit")),
                    description=item.get("description"),
                )
            )
        return self._sort_models(models)


class ProviderRegistry:
    """Maps provider identifiers to their adapter, resolved once at start-up."""

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()) -> None:
        self._adapters: dict[Provider, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.provider] = adapter

    def get(self, provider: Provider) -> ProviderAdapter:
        try:
            return self._adapters[provider]
        except KeyError:
            raise AIError(
                provider,
                ErrorKind.MODEL_UNAVAILABLE,
                f"No adapter registered for provider {provider.value!r}",
                suggestion="Choose one of the configured providers",
            ) from None

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters

    def providers(self) -> list[Provider]:
        return list(self._adapters)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()


def build_default_registry(*, timeout: float = 60.0, http_client: httpx.AsyncClient | None = None) -> ProviderRegistry:
    """Register the three stock vendors, optionally sharing one HTTP client."""

    return ProviderRegistry(
        [
            OpenAIAdapter(timeout=timeout, http_client=http_client),
            AnthropicAdapter(timeout=timeout, http_client=http_client),
            GeminiAdapter(timeout=timeout, http_client=http_client),
        ]
    )


__all__ = [
    "AnthropicAdapter",
    "Completion",
    "GeminiAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "build_default_registry",
    "estimate_tokens",
]
