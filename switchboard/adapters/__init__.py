"""
Provider adapters for Switchboard.
One per upstream: OpenAI, Anthropic, Google, and the OpenRouter fallback.
"""
from __future__ import annotations

import logging

from switchboard.adapters.anthropic import AnthropicAdapter
from switchboard.adapters.base import AdapterResponse, BaseAdapter
from switchboard.adapters.google import GoogleAdapter
from switchboard.adapters.openai import OpenAIAdapter
from switchboard.adapters.openrouter import OpenRouterAdapter
from switchboard.routing import Provider

logger = logging.getLogger(__name__)

# Provider → adapter class. Exhaustive over Provider.
ADAPTERS: dict[Provider, type[BaseAdapter]] = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.GOOGLE: GoogleAdapter,
    Provider.OPENROUTER: OpenRouterAdapter,
}


def build_adapters(cfg: dict) -> dict[Provider, BaseAdapter]:
    """Instantiate every adapter from the providers / generation / dispatch config."""
    providers_cfg = cfg.get("providers", {})
    generation = cfg.get("generation", {})
    timeout = cfg.get("dispatch", {}).get("timeout", 30)

    adapters: dict[Provider, BaseAdapter] = {}
    for provider, cls in ADAPTERS.items():
        adapters[provider] = cls.from_config(providers_cfg.get(provider.value) or {}, generation, timeout)

    logger.debug("Adapters: %s", ", ".join(f"{p}={a!r}" for p, a in adapters.items()))
    return adapters


__all__ = [
    "ADAPTERS",
    "AdapterResponse",
    "BaseAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "OpenRouterAdapter",
    "build_adapters",
]
