"""
Store interfaces the dispatch core talks through.

The core only ever reads credentials and appends assistant messages.
How they are persisted (and protected at rest) is the store's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from switchboard.storage.models import Message


class CredentialStore(ABC):
    """Read side of the per-user credential records."""

    @abstractmethod
    def get_profile_credentials(self, user_id: str) -> dict:
        """
        Direct provider keys from the user's profile.

        Returns a dict with any of the keys "openai", "anthropic", "google".
        A user without a profile row gets {}.
        """
        ...

    @abstractmethod
    def get_aggregator_credential(self, user_id: str) -> str | None:
        """The user's OpenRouter key, or None if no row exists."""
        ...


class MessageStore(ABC):
    """Write side of conversation messages."""

    @abstractmethod
    def append_message(
        self,
        context_id: str,
        role: str,
        content: str,
        *,
        user_id: str | None = None,
        model: str = "",
        provider: str = "",
        latency_ms: float | None = None,
        cost_usd: float | None = None,
    ) -> Message:
        """Persist one message at the end of a context and return it."""
        ...
