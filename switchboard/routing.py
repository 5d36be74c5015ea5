"""
Model Route Selector — decide which provider serves a model id.

Pure and deterministic, no I/O. Given a model id and the user's resolved
CredentialSet, pick {provider, use_direct_api, api_key}:

  1. Provider tag: text before the first "/" if there is one, otherwise
     the legacy prefixes gpt- / claude- / gemini-.
  2. Tag is a direct provider AND the user holds a key for it → direct.
  3. Anything else → OpenRouter, carrying the aggregator key if present.

A direct key always wins over the aggregator; there is no override.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from switchboard.credentials import CredentialSet


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OPENROUTER = "openrouter"

    def __str__(self) -> str:
        return self.value

    @property
    def is_direct(self) -> bool:
        return self is not Provider.OPENROUTER

    @property
    def title(self) -> str:
        return _TITLES[self]


_TITLES = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GOOGLE: "Google",
    Provider.OPENROUTER: "OpenRouter",
}

DIRECT_PROVIDERS = (Provider.OPENAI, Provider.ANTHROPIC, Provider.GOOGLE)

# Checked in this order for ids without a namespace
LEGACY_PREFIXES = (
    ("gpt-", Provider.OPENAI),
    ("claude-", Provider.ANTHROPIC),
    ("gemini-", Provider.GOOGLE),
)

PROVIDER_ENDPOINTS = {
    Provider.OPENAI: "https://api.openai.com/v1/chat/completions",
    Provider.ANTHROPIC: "https://api.anthropic.com/v1/messages",
    Provider.GOOGLE: "https://generativelanguage.googleapis.com/v1beta/models",
    Provider.OPENROUTER: "https://openrouter.ai/api/v1/chat/completions",
}


@dataclass(frozen=True)
class RouteDecision:
    """Where a request goes and with which key."""
    provider: Provider
    use_direct_api: bool
    api_key: str | None = None
    model_provider: Provider = Provider.OPENROUTER  # provider the model id names

    def to_dict(self, redact: bool = True) -> dict:
        key = self.api_key
        if key and redact:
            key = redact_key(key)
        return {
            "provider": self.provider.value,
            "use_direct_api": self.use_direct_api,
            "api_key": key,
            "model_provider": self.model_provider.value,
        }


def provider_tag(model_id: str) -> Provider:
    """Map a model id to the provider it names. Unknown ids map to OpenRouter."""
    model_id = (model_id or "").strip()
    if "/" in model_id:
        tag = model_id.split("/", 1)[0]
        for provider in DIRECT_PROVIDERS:
            if tag == provider.value:
                return provider
        return Provider.OPENROUTER
    for prefix, provider in LEGACY_PREFIXES:
        if model_id.startswith(prefix):
            return provider
    return Provider.OPENROUTER


def strip_namespace(model_id: str, provider: Provider) -> str:
    """Drop a leading "<provider>/" for upstreams that want bare model names."""
    prefix = f"{provider.value}/"
    if model_id.startswith(prefix):
        return model_id[len(prefix):]
    return model_id


def select_route(model_id: str, credentials: "CredentialSet") -> RouteDecision:
    """Pick the route for model_id given the user's credentials."""
    tag = provider_tag(model_id)
    if tag.is_direct:
        direct_key = credentials.get(tag)
        if direct_key:
            return RouteDecision(
                provider=tag, use_direct_api=True, api_key=direct_key, model_provider=tag,
            )
    return RouteDecision(
        provider=Provider.OPENROUTER,
        use_direct_api=False,
        api_key=credentials.get(Provider.OPENROUTER),
        model_provider=tag,
    )


_GOOGLE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_api_key(provider: Provider | str, api_key: str | None) -> bool:
    """Format check for a key before it is stored. Does not contact the provider."""
    if not api_key or not api_key.strip():
        return False
    api_key = api_key.strip()
    provider = Provider(provider)
    if provider is Provider.OPENAI:
        return api_key.startswith("sk-")
    if provider is Provider.ANTHROPIC:
        return api_key.startswith("sk-ant-")
    if provider is Provider.GOOGLE:
        return len(api_key) > 10 and bool(_GOOGLE_KEY_RE.match(api_key))
    return len(api_key) > 20


def redact_key(api_key: str) -> str:
    """sk-abcdef123 → sk-a…23"""
    if len(api_key) <= 8:
        return "…"
    return f"{api_key[:4]}…{api_key[-2:]}"
