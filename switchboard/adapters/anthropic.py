"""
Anthropic adapter — Messages API over plain HTTP.

System turns are lifted out of the turn list into the top-level "system"
field. Only the first one is used; any later system turns are dropped.
"""

from __future__ import annotations

from switchboard.adapters.base import AdapterRequest, BaseAdapter, dig
from switchboard.routing import Provider
from switchboard.turns import first_system, without_system

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(BaseAdapter):
    """POST {url}/messages with x-api-key + anthropic-version headers."""

    provider = Provider.ANTHROPIC
    default_url = "https://api.anthropic.com/v1"

    def __init__(self, *args, version: str = ANTHROPIC_VERSION, **kwargs):
        super().__init__(*args, **kwargs)
        self.version = version

    @classmethod
    def from_config(cls, provider_cfg, generation, timeout):
        adapter = super().from_config(provider_cfg, generation, timeout)
        adapter.version = provider_cfg.get("version") or ANTHROPIC_VERSION
        return adapter

    def build_request(self, turns, model, api_key):
        body = {
            "model": model,
            "messages": [t.to_dict() for t in without_system(turns)],
            "max_tokens": self.max_tokens,
        }
        system = first_system(turns)
        if system is not None:
            body["system"] = system
        return AdapterRequest(
            url=f"{self.url}/messages",
            headers={
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": self.version,
            },
            json=body,
        )

    def parse_response(self, data):
        return dig(self.provider, data, "content", 0, "text")
