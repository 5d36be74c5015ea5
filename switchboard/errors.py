"""
Error taxonomy for the dispatch core.

Adapter errors are caught one level up by the Dispatcher and turned into
either a fallback attempt or a terminal error. Everything here renders to
a {"error": ..., "type": ...} dict for callers; upstream bodies never leak.
"""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base for every error the core raises on purpose."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "type": type(self).__name__}


class InvalidRequest(SwitchboardError):
    """Malformed inbound request (bad turns, missing model id)."""
    status_code = 400


class InvalidApiKey(SwitchboardError):
    """A credential offered for storage fails its provider's format check."""
    status_code = 400


class CredentialResolutionError(SwitchboardError):
    """The credential store could not be read. Retryable by the caller."""
    status_code = 503


class MessagePersistenceError(SwitchboardError):
    """The assistant reply was produced but could not be stored. Retryable."""
    status_code = 503


class ContextAccessDenied(SwitchboardError):
    """The context exists and belongs to another user."""
    status_code = 403

    def __init__(self, context_id: str):
        self.context_id = context_id
        super().__init__(f"Context {context_id} belongs to another user")


class NoCredentialAvailable(SwitchboardError):
    """Neither a direct nor an aggregator credential exists for the route."""
    status_code = 400

    def __init__(self, provider: str, model_id: str):
        self.provider = str(provider)
        self.model_id = model_id
        super().__init__(
            f"No API key configured for {self.provider} (model '{model_id}') and no "
            f"OpenRouter fallback available. Please add an API key in settings."
        )


class UnsupportedProvider(SwitchboardError):
    """A route resolved to a provider with no registered adapter."""

    def __init__(self, provider: str):
        self.provider = str(provider)
        super().__init__(f"Unsupported provider: {self.provider}")


class AdapterError(SwitchboardError):
    """Base for upstream call failures. Eligible for fallback."""
    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = str(provider)
        super().__init__(message)


class AdapterRequestError(AdapterError):
    """Upstream returned a non-success status, or the request never completed."""

    def __init__(self, provider: str, status: int | None, detail: str = ""):
        self.status = status
        self.detail = detail
        label = f"HTTP {status}" if status is not None else "request failed"
        summary = f"{label} {detail}".strip() if status is not None else f"{label}: {detail}"
        super().__init__(provider, f"{_title(provider)} API error: {summary}")


class AdapterTimeoutError(AdapterRequestError):
    """Upstream call exceeded the configured timeout."""

    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(provider, None, f"timed out after {timeout:g}s")


class AdapterResponseShapeError(AdapterError):
    """Upstream answered 2xx but the body lacks the expected completion fields."""

    def __init__(self, provider: str, detail: str = ""):
        self.detail = detail
        msg = f"{_title(provider)} API returned a malformed response"
        if detail:
            msg += f": {detail}"
        super().__init__(provider, msg)


class FallbackUnavailable(SwitchboardError):
    """Direct call failed and there is no aggregator credential to fall back to."""
    status_code = 400

    def __init__(self, primary: AdapterError):
        self.primary = primary
        super().__init__(
            f"Direct API failed: {primary.message}. No OpenRouter fallback available. "
            f"Please add your API keys in settings."
        )


class FallbackFailed(SwitchboardError):
    """Direct call failed, then the aggregator call failed too."""
    status_code = 502

    def __init__(self, primary: AdapterError, fallback: AdapterError):
        self.primary = primary
        self.fallback = fallback
        super().__init__(
            f"Direct API failed: {primary.message}. OpenRouter fallback failed: {fallback.message}"
        )


_TITLES = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "google": "Google",
    "openrouter": "OpenRouter",
}


def _title(provider: str) -> str:
    return _TITLES.get(str(provider), str(provider))
