"""API key storage capability.

The enhancement pipeline only ever reads a key right before issuing a call;
storage and encryption belong to whichever store is installed here.
"""
from __future__ import annotations

import os
from typing import Mapping, Protocol

from resume_enhancer.domain.providers import Provider

ENV_KEYS: dict[Provider, tuple[str, ...]] = {
    Provider.OPENAI: ("OPENAI_API_KEY",),
    Provider.ANTHROPIC: ("ANTHROPIC_API_KEY",),
    Provider.GEMINI: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
}


class KeyStore(Protocol):
    """Contract for credential stores."""

    def get_api_key(self, provider: Provider) -> str | None: ...

    def store_api_key(self, provider: Provider, key: str) -> None: ...

    def remove_api_key(self, provider: Provider) -> None: ...


class InMemoryKeyStore:
    """Process-local key store, optionally seeded from the environment."""

    def __init__(self, keys: Mapping[Provider, str] | None = None) -> None:
        self._keys: dict[Provider, str] = {provider: key for provider, key in (keys or {}).items() if key}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "InMemoryKeyStore":
        environ = os.environ if environ is None else environ
        keys: dict[Provider, str] = {}
        for provider, names in ENV_KEYS.items():
            for name in names:
                value = (environ.get(name) or "").strip()
                if value:
                    keys[provider] = value
                    break
        return cls(keys)

    def get_api_key(self, provider: Provider) -> str | None:
        return self._keys.get(provider)

    def store_api_key(self, provider: Provider, key: str) -> None:
        key = key.strip()
        if not key:
            raise ValueError("API key must not be empty")
        self._keys[provider] = key

    def remove_api_key(self, provider: Provider) -> None:
        self._keys.pop(provider, None)

    def has_api_key(self, provider: Provider) -> bool:
        return provider in self._keys
