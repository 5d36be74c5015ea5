"""
OpenRouter adapter — the aggregator / fallback line.

OpenAI-shaped wire format, but the model id goes out fully namespaced
("anthropic/claude-sonnet-4-0") since OpenRouter routes on it.
Extracts cost_usd from the response body for cost tracking.
"""

from __future__ import annotations

from switchboard.adapters.openai import OpenAIAdapter
from switchboard.routing import Provider

DEFAULT_REFERER = "https://github.com/switchboard-chat/switchboard"
DEFAULT_TITLE = "Switchboard"


class OpenRouterAdapter(OpenAIAdapter):
    """Adapter for the OpenRouter API."""

    provider = Provider.OPENROUTER
    default_url = "https://openrouter.ai/api/v1"
    bare_model_names = False

    def __init__(self, *args, referer: str = DEFAULT_REFERER, title: str = DEFAULT_TITLE, **kwargs):
        super().__init__(*args, **kwargs)
        self.referer = referer
        self.title = title

    @classmethod
    def from_config(cls, provider_cfg, generation, timeout):
        adapter = super().from_config(provider_cfg, generation, timeout)
        adapter.referer = provider_cfg.get("referer") or DEFAULT_REFERER
        adapter.title = provider_cfg.get("title") or DEFAULT_TITLE
        return adapter

    def _headers(self, api_key: str) -> dict:
        """Bearer auth plus OpenRouter's app identification headers."""
        headers = super()._headers(api_key)
        headers["HTTP-Referer"] = self.referer
        headers["X-Title"] = self.title
        return headers

    def extract_cost(self, data: dict) -> float | None:
        """
        Extract cost from an OpenRouter response.
        Cost may be a top-level field or nested under usage.
        """
        if "cost_usd" in data:
            try:
                return float(data["cost_usd"])
            except (ValueError, TypeError):
                pass

        usage = data.get("usage") or {}
        if isinstance(usage, dict) and "cost" in usage:
            try:
                return float(usage["cost"])
            except (ValueError, TypeError):
                pass

        # No explicit cost; we don't keep pricing tables
        return None
