"""
Google adapter — Gemini generateContent over plain HTTP.

Roles map assistant → "model", everything else → "user". System turns are
kept out of "contents"; the first one becomes systemInstruction.
The key travels as the ?key= query parameter.
"""

from __future__ import annotations

from switchboard.adapters.base import AdapterRequest, BaseAdapter, dig
from switchboard.routing import Provider
from switchboard.turns import ASSISTANT, first_system, without_system


class GoogleAdapter(BaseAdapter):
    """POST {url}/models/{model}:generateContent?key=..."""

    provider = Provider.GOOGLE
    default_url = "https://generativelanguage.googleapis.com/v1beta"

    def build_request(self, turns, model, api_key):
        body = {
            "contents": [
                {
                    "role": "model" if t.role == ASSISTANT else "user",
                    "parts": [{"text": t.content}],
                }
                for t in without_system(turns)
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        system = first_system(turns)
        if system is not None:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return AdapterRequest(
            url=f"{self.url}/models/{model}:generateContent",
            headers={"Content-Type": "application/json"},
            params={"key": api_key},
            json=body,
        )

    def parse_response(self, data):
        return dig(self.provider, data, "candidates", 0, "content", "parts", 0, "text")
