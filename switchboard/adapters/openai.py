"""
OpenAI adapter — Chat Completions over plain HTTP.
Turns go out verbatim: system, user and assistant roles all inline.
"""

from __future__ import annotations

from switchboard.adapters.base import AdapterRequest, BaseAdapter, dig
from switchboard.routing import Provider


class OpenAIAdapter(BaseAdapter):
    """POST {url}/chat/completions with a bearer token."""

    provider = Provider.OPENAI
    default_url = "https://api.openai.com/v1"

    def _headers(self, api_key: str) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def build_request(self, turns, model, api_key):
        return AdapterRequest(
            url=f"{self.url}/chat/completions",
            headers=self._headers(api_key),
            json={
                "model": model,
                "messages": [t.to_dict() for t in turns],
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        )

    def parse_response(self, data):
        return dig(self.provider, data, "choices", 0, "message", "content")
