"""
Data models for conversation storage.
These define the shape of rows flowing between the store and its callers.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    """A single persisted message in a context."""
    id: str = field(default_factory=lambda: uuid4().hex)
    context_id: str = ""
    role: str = ""           # "user", "assistant", "system"
    content: str = ""
    created_at: str = field(default_factory=_now)
    user_id: str | None = None
    model: str = ""
    provider: str = ""       # who actually served an assistant turn
    latency_ms: float | None = None
    cost_usd: float | None = None  # only reported by OpenRouter

    def to_turn(self) -> dict:
        """Export as a {role, content} turn for the next dispatch."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "context_id": self.context_id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at,
            "user_id": self.user_id,
            "model": self.model,
            "provider": self.provider,
        }


@dataclass
class Context:
    """A conversation thread owned by one user."""
    id: str = field(default_factory=lambda: uuid4().hex)
    user_id: str = ""
    title: str = "New Chat"
    selected_model: str | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)


@dataclass
class UserProfile:
    """Personalisation fields. Keys are stored separately and never exposed here."""
    user_id: str = ""
    preferred_name: str | None = None
    occupation: str | None = None
    chat_traits: list[str] = field(default_factory=list)
