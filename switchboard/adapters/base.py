"""
Base adapter abstraction.
Every upstream implements this interface so the dispatcher can treat them uniformly.

An adapter turns (turns, model id, api key) into one provider's wire request,
executes it, and pulls the single completion text back out. It never retries
and never falls back; failures are raised as AdapterError subclasses.
"""

from __future__ import annotations

import abc
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from switchboard.errors import (
    AdapterRequestError,
    AdapterResponseShapeError,
    AdapterTimeoutError,
)
from switchboard.routing import Provider, strip_namespace
from switchboard.turns import Turn, normalize_turns

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TIMEOUT = 30.0


@dataclass
class AdapterRequest:
    """A fully built upstream request, before it hits the wire."""
    url: str
    json: dict
    headers: dict = field(default_factory=dict)
    params: dict = field(default_factory=dict)


@dataclass
class AdapterResponse:
    """Normalized response from any provider."""
    content: str
    provider: Provider
    model: str
    status_code: int = 200
    latency_ms: float = 0.0
    cost_usd: float | None = None  # Only populated by OpenRouter
    data: dict = field(default_factory=dict)


def dig(provider: Provider, data: Any, *path) -> str:
    """
    Walk a nested response (dict keys / list indexes) down to a text field.
    Anything missing or not a string is a malformed response.
    """
    node = data
    walked = []
    for step in path:
        walked.append(str(step))
        try:
            node = node[step]
        except (KeyError, IndexError, TypeError):
            raise AdapterResponseShapeError(provider, f"missing {'.'.join(walked)}") from None
    if not isinstance(node, str):
        raise AdapterResponseShapeError(provider, f"{'.'.join(walked)} is not text")
    return node


class BaseAdapter(abc.ABC):
    """
    Abstract base for provider adapters.
    Subclasses build the request and parse the response; send() does the I/O.
    """

    provider: Provider
    default_url: str = ""
    # OpenAI / Anthropic / Google want "gpt-4.1", not "openai/gpt-4.1"
    bare_model_names: bool = True

    def __init__(
        self,
        url: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.url = (url or self.default_url).rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, provider_cfg: dict, generation: dict, timeout: float) -> "BaseAdapter":
        """Instantiate from the providers.<name> and generation config blocks."""
        return cls(
            url=provider_cfg.get("url", ""),
            timeout=timeout,
            temperature=generation.get("temperature", DEFAULT_TEMPERATURE),
            max_tokens=provider_cfg.get("max_tokens") or generation.get("max_tokens", DEFAULT_MAX_TOKENS),
        )

    def model_name(self, model_id: str) -> str:
        """The model name as this upstream expects it."""
        if self.bare_model_names:
            return strip_namespace(model_id, self.provider)
        return model_id

    @abc.abstractmethod
    def build_request(self, turns: tuple[Turn, ...], model: str, api_key: str) -> AdapterRequest:
        """Translate normalized turns into this provider's wire request."""
        ...

    @abc.abstractmethod
    def parse_response(self, data: dict) -> str:
        """
        Extract the completion text from a 2xx body.
        Raises AdapterResponseShapeError if the expected fields are absent.
        """
        ...

    def extract_cost(self, data: dict) -> float | None:
        return None

    async def send(self, turns: Iterable[Turn | dict], model_id: str, api_key: str) -> AdapterResponse:
        """Execute one completion call. Raises an AdapterError on any failure."""
        snapshot = normalize_turns(turns)
        model = self.model_name(model_id)
        request = self.build_request(snapshot, model, api_key)

        logger.debug("→ %s %s (model=%s, turns=%d)", self.provider, request.url, model, len(snapshot))
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    request.url,
                    headers=request.headers,
                    params=request.params or None,
                    json=request.json,
                )
        except httpx.TimeoutException as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("%s adapter timed out after %.0fms", self.provider, latency)
            raise AdapterTimeoutError(self.provider, self.timeout) from e
        except httpx.HTTPError as e:
            logger.warning("%s adapter request failed: %s", self.provider, type(e).__name__)
            raise AdapterRequestError(self.provider, None, self._scrub(str(e), api_key)) from e

        latency = (time.monotonic() - t0) * 1000
        if resp.status_code >= 400:
            logger.warning(
                "%s adapter got HTTP %d after %.0fms", self.provider, resp.status_code, latency,
            )
            raise AdapterRequestError(self.provider, resp.status_code, resp.reason_phrase or "")

        try:
            data = resp.json()
        except ValueError as e:
            raise AdapterResponseShapeError(self.provider, "body is not JSON") from e

        content = self.parse_response(data)
        return AdapterResponse(
            content=content,
            provider=self.provider,
            model=model,
            status_code=resp.status_code,
            latency_ms=latency,
            cost_usd=self.extract_cost(data),
            data=data,
        )

    @staticmethod
    def _scrub(text: str, api_key: str) -> str:
        # Google carries the key in the query string; keep it out of messages
        if api_key:
            text = text.replace(api_key, "***")
        return text

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} url={self.url!r} timeout={self.timeout}>"
